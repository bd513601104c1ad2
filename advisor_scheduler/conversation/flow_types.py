"""Turn input and stage result types shared by the flow controller and its helpers."""

from dataclasses import dataclass, field
from typing import Any, Optional

from advisor_scheduler.prompts import messages
from advisor_scheduler.schemas.booking_schema import Slot
from advisor_scheduler.schemas.conversation_schema import ConversationStep, Intent
from advisor_scheduler.schemas.nlu_schema import FunctionCall


@dataclass
class FlowInput:
    """One user message plus what the NLU extracted from it."""
    message: str
    intent: Optional[Intent] = None
    function_calls: list[FunctionCall] = field(default_factory=list)
    booking_code: Optional[str] = None
    confirmed: bool = False


@dataclass
class FlowResult:
    """What one pipeline stage (or the whole pipeline) decided.

    ``handled`` means no later stage should run for this turn.
    """
    response: str = ""
    next_step: Optional[ConversationStep] = None
    context_updates: dict[str, Any] = field(default_factory=dict)
    slots: list[Slot] = field(default_factory=list)
    booking_code: Optional[str] = None
    educational_links: list[str] = field(default_factory=list)
    display_message: Optional[str] = None
    integration_status: list[str] = field(default_factory=list)
    handled: bool = False

    def merge(self, later: "FlowResult") -> "FlowResult":
        """Combine with a later stage's result.

        A later non-empty value overrides; context updates accumulate with
        the later stage winning on conflicting keys.
        """
        return FlowResult(
            response=later.response or self.response,
            next_step=later.next_step or self.next_step,
            context_updates={**self.context_updates, **later.context_updates},
            slots=later.slots or self.slots,
            booking_code=later.booking_code or self.booking_code,
            educational_links=later.educational_links or self.educational_links,
            display_message=later.display_message or self.display_message,
            integration_status=later.integration_status or self.integration_status,
            handled=self.handled or later.handled,
        )


def slot_offer(
    available: list[Slot], offered_count: int, context_updates: Optional[dict[str, Any]] = None
) -> FlowResult:
    """Offer the first ``offered_count`` slots, or end on the waitlist when none exist."""
    updates = dict(context_updates or {})
    if not available:
        return FlowResult(
            response=messages.waitlist(),
            next_step=ConversationStep.COMPLETE,
            context_updates=updates,
        )
    offered = available[:offered_count]
    updates["selected_slots"] = offered
    return FlowResult(
        response=messages.slot_offering(offered),
        next_step=ConversationStep.SLOT_OFFERING,
        context_updates=updates,
        slots=offered,
    )
