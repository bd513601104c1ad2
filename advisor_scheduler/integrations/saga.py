"""
Best-effort side effects after a booking change.

A booking is already persisted by the time its calendar hold, sheet row
and notification email are attempted. Each step runs with its own
timeout; a failure is logged and recorded but never stops later steps or
rolls back the booking.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from advisor_scheduler.schemas.booking_schema import IntegrationOutcome

logger = logging.getLogger(__name__)

SagaStep = tuple[str, Callable[[], Awaitable[Optional[str]]]]

STEP_LABELS: dict[str, str] = {
    "create_hold": "Calendar hold",
    "update_hold": "Calendar hold update",
    "delete_hold": "Calendar hold removal",
    "append_record": "Bookings sheet",
    "update_record": "Bookings sheet update",
    "mark_cancelled": "Bookings sheet cancellation",
    "draft_notification_email": "Advisor email draft",
}


class IntegrationSaga:
    """Runs named async steps in order, one timeout each."""

    def __init__(self, timeout_seconds: float = 30.0) -> None:
        self.timeout_seconds = timeout_seconds

    async def run(
        self, steps: list[SagaStep], booking_code: str = ""
    ) -> list[IntegrationOutcome]:
        outcomes: list[IntegrationOutcome] = []
        for name, action in steps:
            try:
                reference = await asyncio.wait_for(action(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Integration step %s timed out after %.1fs for %s",
                    name, self.timeout_seconds, booking_code,
                )
                outcomes.append(IntegrationOutcome(
                    step=name, succeeded=False,
                    error=f"timed out after {self.timeout_seconds:g}s",
                ))
            except Exception as e:
                logger.error("Integration step %s failed for %s: %s", name, booking_code, e)
                outcomes.append(IntegrationOutcome(step=name, succeeded=False, error=str(e)))
            else:
                outcomes.append(IntegrationOutcome(step=name, succeeded=True, reference=reference))
        return outcomes


def reference_for(outcomes: list[IntegrationOutcome], step: str) -> Optional[str]:
    """The reference returned by a successful step, if any."""
    for outcome in outcomes:
        if outcome.step == step and outcome.succeeded:
            return outcome.reference
    return None


def describe_outcomes(outcomes: list[IntegrationOutcome], enabled: bool = True) -> list[str]:
    """Display-only status lines for the chat surface."""
    if not enabled:
        return []
    lines = []
    for outcome in outcomes:
        label = STEP_LABELS.get(outcome.step, outcome.step)
        if outcome.succeeded:
            lines.append(f"[{label}: done]")
        else:
            lines.append(f"[{label}: failed - {outcome.error}]")
    return lines
