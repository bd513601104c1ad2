"""
Advisor scheduler entry point.

Starts an interactive console conversation backed by the configured
booking store, together with the background sweep that evicts idle
sessions.

Usage:
    python main.py
    python main.py --scenario booking
"""

import argparse
import asyncio
import logging

from advisor_scheduler.config import settings
from advisor_scheduler.wiring import build_orchestrator
from console_demo import ConsoleSession

logger = logging.getLogger(__name__)


async def _run(scenario: str | None) -> None:
    orchestrator = build_orchestrator(settings)
    stop = asyncio.Event()
    sweeper = asyncio.create_task(
        orchestrator.sessions.run_sweeper(stop, settings.session.sweep_interval_seconds)
    )
    logger.info("Session sweeper started (every %.0fs)", settings.session.sweep_interval_seconds)
    try:
        session = ConsoleSession(orchestrator)
        if scenario:
            await session.run_scenario(scenario)
        else:
            await session.run()
    finally:
        stop.set()
        await sweeper


def main() -> None:
    parser = argparse.ArgumentParser(description="Advisor scheduler console")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Replay a scripted conversation instead of reading from stdin",
    )
    args = parser.parse_args()
    asyncio.run(_run(args.scenario))


if __name__ == "__main__":
    main()
