"""
Offline console demo: runs full scheduling conversations without any API keys.

Drives the real orchestrator (guardrails, flow controller, slot allocator,
booking service) with the keyword NLU instead of an LLM. Bookings are
kept in memory so demo runs leave nothing behind.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario reschedule
    python console_demo.py --scenario guardrails
"""

import argparse
import asyncio
import uuid
from typing import Optional

from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.config import settings
from advisor_scheduler.conversation.orchestrator import ConversationOrchestrator
from advisor_scheduler.schemas.conversation_schema import OrchestratorResponse
from advisor_scheduler.wiring import build_orchestrator

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

BOOKING_STEPS = [
    "Hi, I'd like to book a consultation",
    "I have questions about my SIP mandate",
    "yes",
    "tomorrow afternoon",
    "1",
    "yes",
]


class ConsoleSession:
    """One terminal conversation against the real orchestrator."""

    # "{code}" is replaced with the booking code issued earlier in the run.
    SCENARIOS: dict[str, list[str]] = {
        "booking": BOOKING_STEPS + ["what should I prepare?"],
        "reschedule": BOOKING_STEPS + [
            "I need to reschedule",
            "{code}",
            "next friday morning",
            "second",
            "yes",
        ],
        "cancel": BOOKING_STEPS + [
            "please cancel my booking {code}",
            "yes",
        ],
        "guardrails": [
            "hello",
            "my number is 9876543210, call me",
            "should I invest in mutual funds?",
            "KYC",
            "yes",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, orchestrator: Optional[ConversationOrchestrator] = None) -> None:
        self.orchestrator = orchestrator or build_orchestrator(
            settings, repository=BookingRepository()
        )
        self.session_id = str(uuid.uuid4())
        self.last_booking_code: Optional[str] = None

    def agent_say(self, response: OrchestratorResponse) -> None:
        text = response.display_message or response.message
        print(f"{GREEN}{BOLD}[Advisor Desk]{RESET} {GREEN}{text}{RESET}")
        for link in response.educational_links:
            print(f"{YELLOW}  - {link}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def send(self, text: str) -> OrchestratorResponse:
        response = await self.orchestrator.process_message(self.session_id, text)
        if response.booking_code:
            self.last_booking_code = response.booking_code
        self.agent_say(response)
        if response.pii_detected:
            self.system_log("PII detected, message redacted")
        if response.investment_advice_detected:
            self.system_log("Investment advice request refused")
        if response.state_transition:
            self.system_log(
                f"State: {response.state_transition.from_step.value} -> "
                f"{response.state_transition.to_step.value}"
            )
        else:
            self.system_log(f"State: {response.current_step.value}")
        for line in response.integration_status:
            self.system_log(line)
        return response

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"ADVISOR SCHEDULER - Scenario: {scenario}")
        for step in steps:
            text = step.replace("{code}", self.last_booking_code or "NL-X000")
            print(f"\n{BLUE}[User] {RESET}{text}")
            await self.send(text)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        self._print_trace()
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("ADVISOR SCHEDULER - Console Demo", "Type 'quit' to exit")
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[User] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                self._print_trace()
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{GREEN}That was quite long. Could you keep it brief for me?{RESET}")
                continue
            await self.send(user_input)

    def _banner(self, title: str, subtitle: Optional[str] = None) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        if subtitle:
            print(f"{BOLD}  {subtitle}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _print_trace(self) -> None:
        session = self.orchestrator.sessions.get_session(self.session_id)
        if session is None:
            return
        trace = [
            turn.metadata.state_transition.to_step.value
            for turn in session.history
            if turn.role.value == "system" and turn.metadata and turn.metadata.state_transition
        ]
        print(f"{DIM}  State trace: {' -> '.join(['INITIAL'] + trace)}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
