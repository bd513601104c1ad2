"""
Reschedule path of the booking flow.

Runs inside the ordinary step vocabulary: once a booking code has been
validated for a reschedule the session sits in TIME_PREFERENCE with
``booking_id`` and ``rescheduling`` set in its context, and the flow
controller hands slot offering and confirmation to this helper instead
of the new-booking logic. Later keyword intents leave the flag alone;
only completion, an invalid code or a restart clears it.
"""

import logging
from typing import Optional

from advisor_scheduler.booking.service import (
    RESCHEDULE_STEPS,
    BookingService,
    SlotUnavailableError,
    latest_outcomes,
)
from advisor_scheduler.booking.slot_allocator import SlotAllocator
from advisor_scheduler.conversation.flow_types import FlowResult, slot_offer
from advisor_scheduler.integrations.saga import describe_outcomes
from advisor_scheduler.prompts import messages
from advisor_scheduler.schemas.booking_schema import Slot
from advisor_scheduler.schemas.conversation_schema import ConversationStep, Session

logger = logging.getLogger(__name__)


def _invalid_code() -> FlowResult:
    return FlowResult(
        response=messages.INVALID_CODE,
        next_step=ConversationStep.GREET,
        context_updates={"booking_code": None, "booking_id": None, "rescheduling": False},
    )


class RescheduleHelper:
    def __init__(
        self, allocator: SlotAllocator, bookings: BookingService, slots_offered: int = 2
    ) -> None:
        self.allocator = allocator
        self.bookings = bookings
        self.slots_offered = slots_offered

    async def offer_slots(self, view: Session) -> FlowResult:
        """Offer new slots for the booking in ``view.context``."""
        context = view.context
        if not context.booking_code or self.bookings.get_by_code(context.booking_code) is None:
            return _invalid_code()

        if not context.date_preference and not context.time_preference:
            return FlowResult(
                response=messages.time_preference_prompt(),
                next_step=ConversationStep.TIME_PREFERENCE,
            )

        available = await self.allocator.list_available(
            context.date_preference, context.time_preference
        )
        return slot_offer(available, self.slots_offered)

    async def confirm(self, view: Session, slot: Optional[Slot]) -> FlowResult:
        """Move the booking to ``slot``, or re-offer when no slot is chosen."""
        code = view.context.booking_code
        if not code or self.bookings.get_by_code(code) is None:
            return _invalid_code()
        if slot is None:
            return await self.offer_slots(view)

        try:
            booking = await self.bookings.reschedule_booking(code, slot)
        except SlotUnavailableError:
            logger.info("Reschedule target %s was taken", slot.id)
            return FlowResult(
                response=messages.SLOT_TAKEN,
                next_step=ConversationStep.TIME_PREFERENCE,
                context_updates={"selected_slots": []},
            )
        if booking is None:
            return _invalid_code()

        enabled = self.bookings.integrations_enabled
        return FlowResult(
            response=messages.booking_rescheduled(code, booking.selected_slot, enabled),
            next_step=ConversationStep.COMPLETE,
            booking_code=booking.booking_code,
            integration_status=describe_outcomes(latest_outcomes(booking, RESCHEDULE_STEPS), enabled),
            context_updates={"selected_slots": [booking.selected_slot], "rescheduling": False},
        )
