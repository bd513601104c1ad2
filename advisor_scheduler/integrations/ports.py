"""
External booking-system and availability interfaces.

The booking service only ever talks to these abstractions. When
integrations are switched off the wiring injects ``NullBookingSystem``,
whose operations succeed without doing anything, so callers never need
to check a flag or import a provider SDK.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from advisor_scheduler.schemas.booking_schema import Booking, Slot

logger = logging.getLogger(__name__)


class BookingSystemPort(ABC):
    """Calendar holds, the bookings sheet and notification email drafts."""

    enabled: bool = True

    @abstractmethod
    async def create_hold(self, booking: Booking) -> Optional[str]:
        """Place a tentative calendar hold. Returns the hold id."""
        raise NotImplementedError

    @abstractmethod
    async def update_hold(self, hold_id: Optional[str], booking: Booking) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def delete_hold(self, hold_id: Optional[str]) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def append_record(self, booking: Booking) -> Optional[str]:
        """Append a row for the booking. Returns the record id."""
        raise NotImplementedError

    @abstractmethod
    async def update_record(self, booking: Booking) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def mark_cancelled(self, booking: Booking) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def draft_notification_email(self, booking: Booking) -> Optional[str]:
        """Draft the advisor notification email. Returns the draft id."""
        raise NotImplementedError


class NullBookingSystem(BookingSystemPort):
    """Integrations disabled: every operation is a successful no-op."""

    enabled = False

    async def create_hold(self, booking: Booking) -> Optional[str]:
        return None

    async def update_hold(self, hold_id: Optional[str], booking: Booking) -> Optional[str]:
        return None

    async def delete_hold(self, hold_id: Optional[str]) -> Optional[str]:
        return None

    async def append_record(self, booking: Booking) -> Optional[str]:
        return None

    async def update_record(self, booking: Booking) -> Optional[str]:
        return None

    async def mark_cancelled(self, booking: Booking) -> Optional[str]:
        return None

    async def draft_notification_email(self, booking: Booking) -> Optional[str]:
        return None


class InMemoryBookingSystem(BookingSystemPort):
    """Keeps holds, sheet rows and email drafts in dictionaries.

    Used by the console demo and the tests in place of real calendar,
    spreadsheet and mail providers.
    """

    def __init__(self) -> None:
        self.holds: dict[str, dict] = {}
        self.records: dict[str, dict] = {}
        self.drafts: dict[str, dict] = {}

    async def create_hold(self, booking: Booking) -> Optional[str]:
        hold_id = f"hold-{uuid.uuid4().hex[:12]}"
        self.holds[hold_id] = self._hold_payload(booking)
        logger.info("Calendar hold %s created for %s", hold_id, booking.booking_code)
        return hold_id

    async def update_hold(self, hold_id: Optional[str], booking: Booking) -> Optional[str]:
        if hold_id is None or hold_id not in self.holds:
            return await self.create_hold(booking)
        self.holds[hold_id] = self._hold_payload(booking)
        return hold_id

    async def delete_hold(self, hold_id: Optional[str]) -> Optional[str]:
        if hold_id is not None:
            self.holds.pop(hold_id, None)
        return hold_id

    async def append_record(self, booking: Booking) -> Optional[str]:
        record_id = f"row-{len(self.records) + 1}"
        self.records[record_id] = self._record_payload(booking)
        return record_id

    async def update_record(self, booking: Booking) -> Optional[str]:
        record_id = self._find_record(booking.booking_code)
        if record_id is None:
            return await self.append_record(booking)
        self.records[record_id] = self._record_payload(booking)
        return record_id

    async def mark_cancelled(self, booking: Booking) -> Optional[str]:
        record_id = self._find_record(booking.booking_code)
        if record_id is not None:
            self.records[record_id]["status"] = "cancelled"
        return record_id

    async def draft_notification_email(self, booking: Booking) -> Optional[str]:
        draft_id = f"draft-{uuid.uuid4().hex[:12]}"
        self.drafts[draft_id] = {
            "subject": f"Advisor Q&A {booking.topic.value} {booking.booking_code}",
            "body": f"New tentative booking {booking.booking_code} for {booking.topic.value}.",
        }
        return draft_id

    def _find_record(self, booking_code: str) -> Optional[str]:
        for record_id, row in self.records.items():
            if row["booking_code"] == booking_code:
                return record_id
        return None

    @staticmethod
    def _hold_payload(booking: Booking) -> dict:
        return {
            "title": f"Advisor Q&A {booking.topic.value} {booking.booking_code}",
            "start": booking.selected_slot.start_time.isoformat(),
            "end": booking.selected_slot.end_time.isoformat(),
        }

    @staticmethod
    def _record_payload(booking: Booking) -> dict:
        return {
            "booking_code": booking.booking_code,
            "topic": booking.topic.value,
            "slot": booking.selected_slot.start_time.isoformat(),
            "status": booking.status.value,
        }


class AvailabilitySource(ABC):
    """External calendar that can report free slots in a window."""

    @abstractmethod
    async def fetch_slots(self, start: datetime, end: datetime) -> list[Slot]:
        raise NotImplementedError
