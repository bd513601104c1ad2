"""
Booking lifecycle: create, reschedule and cancel.

The slot allocator and the repository are the source of truth and are
always updated first. Calendar holds, sheet rows and email drafts follow
through the integration saga; their outcomes are stored on the booking
but can never undo it.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from advisor_scheduler.booking.codes import generate_unique_booking_code
from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.booking.slot_allocator import SlotAllocator
from advisor_scheduler.integrations.ports import BookingSystemPort, NullBookingSystem
from advisor_scheduler.integrations.saga import IntegrationSaga, reference_for
from advisor_scheduler.schemas.booking_schema import (
    Booking,
    BookingStatus,
    IntegrationOutcome,
    Slot,
    Topic,
)

logger = logging.getLogger(__name__)


class SlotUnavailableError(Exception):
    """The chosen slot was taken between offering and confirmation."""


CREATE_STEPS = ("create_hold", "append_record", "draft_notification_email")
RESCHEDULE_STEPS = ("update_hold", "update_record")
CANCEL_STEPS = ("delete_hold", "mark_cancelled")


def latest_outcomes(booking: Booking, steps: tuple[str, ...]) -> list[IntegrationOutcome]:
    """Outcomes recorded by the most recent operation that ran ``steps``."""
    return booking.integration_log[-len(steps):]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    def __init__(
        self,
        allocator: SlotAllocator,
        repository: BookingRepository,
        booking_system: Optional[BookingSystemPort] = None,
        saga: Optional[IntegrationSaga] = None,
        secure_url_base: str = "",
        link_ttl_hours: int = 24,
        code_max_attempts: int = 50,
    ) -> None:
        self.allocator = allocator
        self.repository = repository
        self.booking_system = booking_system or NullBookingSystem()
        self.saga = saga or IntegrationSaga()
        self.secure_url_base = secure_url_base.rstrip("/")
        self.link_ttl = timedelta(hours=link_ttl_hours)
        self.code_max_attempts = code_max_attempts
        self.restore_slot_holds()

    def restore_slot_holds(self) -> int:
        """Mark the slot of every live persisted booking as booked.

        The allocator keeps its index in memory only, so a fresh process
        would otherwise offer slots that stored bookings still hold.
        """
        restored = 0
        for booking in self.repository.all():
            if booking.status == BookingStatus.CANCELLED:
                continue
            self.allocator.book_by_value(booking.selected_slot, booking.booking_code)
            restored += 1
        if restored:
            logger.info("Restored %d slot hold(s) from stored bookings", restored)
        return restored

    @property
    def integrations_enabled(self) -> bool:
        return self.booking_system.enabled

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        return self.repository.get_by_code(booking_code)

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        return self.repository.get(booking_id)

    async def create_booking(
        self,
        topic: Topic,
        slot: Slot,
        preferred_date: Optional[str] = None,
        preferred_time: Optional[str] = None,
    ) -> Booking:
        """Reserve ``slot`` and persist a tentative booking for it.

        Raises:
            SlotUnavailableError: if the slot is already booked.
            BookingCodeExhaustedError: if no free code could be generated.
        """
        code = generate_unique_booking_code(self.repository.code_in_use, self.code_max_attempts)
        booked = self.allocator.reserve(slot, code)
        if booked is None:
            raise SlotUnavailableError(f"Slot {slot.id} is no longer available")

        now = _utcnow()
        booking = Booking(
            id=str(uuid.uuid4()),
            booking_code=code,
            topic=topic,
            selected_slot=booked,
            preferred_date=preferred_date,
            preferred_time=preferred_time,
            secure_url=f"{self.secure_url_base}/booking/{code}",
            expires_at=now + self.link_ttl,
            timezone=self.allocator.tz.key,
            created_at=now,
            updated_at=now,
        )
        self.repository.add(booking)
        logger.info("Booking %s created for slot %s", code, booked.id)

        outcomes = await self.saga.run([
            ("create_hold", lambda: self.booking_system.create_hold(booking)),
            ("append_record", lambda: self.booking_system.append_record(booking)),
            ("draft_notification_email", lambda: self.booking_system.draft_notification_email(booking)),
        ], booking_code=code)
        booking.calendar_hold_id = reference_for(outcomes, "create_hold")
        booking.notes_doc_id = reference_for(outcomes, "append_record")
        booking.email_draft_id = reference_for(outcomes, "draft_notification_email")
        return self._record_outcomes(booking, outcomes)

    async def reschedule_booking(self, booking_code: str, new_slot: Slot) -> Optional[Booking]:
        """Move a booking to ``new_slot``, keeping its code.

        The new slot is reserved before the old one is released, so a
        refused reservation leaves the original booking untouched.

        Returns None for an unknown code.

        Raises:
            SlotUnavailableError: if the new slot is already booked.
        """
        booking = self.repository.get_by_code(booking_code)
        if booking is None:
            return None

        old_slot_id = booking.selected_slot.id
        if new_slot.id == old_slot_id:
            booked = booking.selected_slot
        else:
            booked = self.allocator.reserve(new_slot, booking.booking_code)
            if booked is None:
                raise SlotUnavailableError(f"Slot {new_slot.id} is no longer available")
            self.allocator.release(old_slot_id)

        booking.selected_slot = booked
        booking.status = BookingStatus.TENTATIVE
        booking.updated_at = _utcnow()
        self.repository.update(booking)
        logger.info("Booking %s moved from %s to %s", booking.booking_code, old_slot_id, booked.id)

        outcomes = await self.saga.run([
            ("update_hold", lambda: self.booking_system.update_hold(booking.calendar_hold_id, booking)),
            ("update_record", lambda: self.booking_system.update_record(booking)),
        ], booking_code=booking.booking_code)
        hold_id = reference_for(outcomes, "update_hold")
        if hold_id:
            booking.calendar_hold_id = hold_id
        return self._record_outcomes(booking, outcomes)

    async def cancel_booking(self, booking_code: str) -> Optional[Booking]:
        """Release the slot and mark the booking cancelled. None for an unknown code."""
        booking = self.repository.get_by_code(booking_code)
        if booking is None:
            return None

        self.allocator.release(booking.selected_slot.id)
        booking.status = BookingStatus.CANCELLED
        booking.updated_at = _utcnow()
        self.repository.update(booking)
        logger.info("Booking %s cancelled", booking.booking_code)

        outcomes = await self.saga.run([
            ("delete_hold", lambda: self.booking_system.delete_hold(booking.calendar_hold_id)),
            ("mark_cancelled", lambda: self.booking_system.mark_cancelled(booking)),
        ], booking_code=booking.booking_code)
        return self._record_outcomes(booking, outcomes)

    def _record_outcomes(self, booking: Booking, outcomes: list[IntegrationOutcome]) -> Booking:
        if not self.integrations_enabled:
            return booking
        booking.integration_log.extend(outcomes)
        booking.updated_at = _utcnow()
        return self.repository.update(booking)
