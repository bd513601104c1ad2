"""
Slot allocator: availability and ownership of one-hour advisor slots.

Slots are generated lazily for the requested window (business days times
business hours) or taken from an external availability source. Every
slot the allocator has seen stays in one index for the life of the
process, and a single re-entrant lock serialises all reads and writes of
that index, so two sessions racing for the same slot id get exactly one
success.

Usage:
    allocator = SlotAllocator(timezone="Asia/Kolkata")
    slots = await allocator.list_available("2026-10-20", "afternoon")
    booked = allocator.book(slots[0].id, "NL-A742")   # None if refused
    allocator.release(booked.id)
"""

import logging
import threading
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from advisor_scheduler.date_parser import clock_hour
from advisor_scheduler.integrations.ports import AvailabilitySource
from advisor_scheduler.schemas.booking_schema import Slot, SlotStatus

logger = logging.getLogger(__name__)

SLOT_DURATION = timedelta(hours=1)

TIME_BUCKETS: dict[str, tuple[int, int]] = {
    "morning": (9, 12),
    "afternoon": (12, 15),
    "evening": (15, 18),
}


def is_business_day(day: date) -> bool:
    """Monday to Friday."""
    return day.weekday() < 5


def next_business_day(day: date) -> date:
    """The first business day strictly after ``day``."""
    candidate = day + timedelta(days=1)
    while not is_business_day(candidate):
        candidate += timedelta(days=1)
    return candidate


def time_bucket(time_preference: Optional[str]) -> Optional[tuple[int, int]]:
    """Map a time preference to a ``(start_hour, end_hour)`` window.

    Day-part words map directly; an explicit clock time maps to the bucket
    that contains its hour. Anything else means "no filter".
    """
    if not time_preference:
        return None
    lower = time_preference.lower()
    for name, bounds in TIME_BUCKETS.items():
        if name in lower:
            return bounds
    hour = clock_hour(lower)
    if hour is None:
        return None
    for start, end in TIME_BUCKETS.values():
        if start <= hour < end:
            return start, end
    return None


def slot_id_for(moment: datetime) -> str:
    return f"slot-{moment:%Y-%m-%d}-{moment.hour:02d}"


class SlotAllocator:
    """Owns the process-wide slot index."""

    def __init__(
        self,
        timezone: str = "Asia/Kolkata",
        open_hour: int = 9,
        close_hour: int = 18,
        window_days: int = 7,
        max_results: int = 10,
        availability_source: Optional[AvailabilitySource] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.tz = ZoneInfo(timezone)
        self.open_hour = open_hour
        self.close_hour = close_hour
        self.window_days = window_days
        self.max_results = max_results
        self.availability_source = availability_source
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._slots: dict[str, Slot] = {}
        self._lock = threading.RLock()

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    # -- Queries -----------------------------------------------------------

    async def list_available(
        self,
        date_preference: Optional[str] = None,
        time_preference: Optional[str] = None,
    ) -> list[Slot]:
        """Available future slots, chronologically, at most ``max_results``.

        ``date_preference`` is an ISO date; the window starts there (moved
        forward to a business day) or on the next business day when it is
        missing, unparseable or already past.
        """
        days = self._window(self._start_day(date_preference))
        candidates = await self._candidates(days)

        now = self.now()
        bucket = time_bucket(time_preference)
        with self._lock:
            tracked = [self._slots.setdefault(slot.id, slot) for slot in candidates]
            available = [
                slot.model_copy()
                for slot in tracked
                if slot.status == SlotStatus.AVAILABLE
                and slot.start_time > now
                and (bucket is None or bucket[0] <= slot.start_time.hour < bucket[1])
            ]
        available.sort(key=lambda slot: slot.start_time)
        return available[: self.max_results]

    def get(self, slot_id: str) -> Optional[Slot]:
        with self._lock:
            slot = self._slots.get(slot_id)
            return slot.model_copy() if slot else None

    # -- Mutations ---------------------------------------------------------

    def book(self, slot_id: str, booking_code: str) -> Optional[Slot]:
        """Move one tracked slot from available to booked.

        Returns the booked slot, or None when the slot is unknown or
        already taken. Callers must treat None as a failed booking.
        """
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                logger.warning("Slot %s is not tracked", slot_id)
                return None
            if slot.status != SlotStatus.AVAILABLE:
                logger.warning("Slot %s is not available (status=%s)", slot_id, slot.status.value)
                return None
            slot.status = SlotStatus.BOOKED
            slot.booking_code = booking_code
            return slot.model_copy()

    def book_by_value(self, slot: Slot, booking_code: str) -> Slot:
        """Insert a slot obtained elsewhere and book it in one step."""
        booked = slot.model_copy(
            update={"status": SlotStatus.BOOKED, "booking_code": booking_code}
        )
        with self._lock:
            self._slots[booked.id] = booked
            return booked.model_copy()

    def reserve(self, slot: Slot, booking_code: str) -> Optional[Slot]:
        """Book ``slot`` if tracked, insert-and-book if not, refuse if taken."""
        with self._lock:
            if slot.id in self._slots:
                return self.book(slot.id, booking_code)
            return self.book_by_value(slot, booking_code)

    def release(self, slot_id: str) -> None:
        """Return a slot to available. Unknown ids and repeat calls are no-ops."""
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                return
            slot.status = SlotStatus.AVAILABLE
            slot.booking_code = None

    # -- Internals ---------------------------------------------------------

    def _start_day(self, date_preference: Optional[str]) -> date:
        today = self.today()
        if date_preference:
            try:
                preferred = date.fromisoformat(date_preference[:10])
            except ValueError:
                logger.info("Ignoring unparseable date preference %r", date_preference)
            else:
                if preferred >= today:
                    return preferred if is_business_day(preferred) else next_business_day(preferred)
        return next_business_day(today)

    def _window(self, start: date) -> list[date]:
        days = [start]
        while len(days) < self.window_days:
            days.append(next_business_day(days[-1]))
        return days

    async def _candidates(self, days: list[date]) -> list[Slot]:
        if self.availability_source is not None:
            start = datetime.combine(days[0], time(self.open_hour), tzinfo=self.tz)
            end = datetime.combine(days[-1], time(self.close_hour), tzinfo=self.tz)
            try:
                return await self.availability_source.fetch_slots(start, end)
            except Exception as e:
                logger.warning("Availability source failed, using generated slots: %s", e)
        return self._generate(days)

    def _generate(self, days: list[date]) -> list[Slot]:
        slots = []
        for day in days:
            for hour in range(self.open_hour, self.close_hour):
                start = datetime.combine(day, time(hour), tzinfo=self.tz)
                slots.append(Slot(id=slot_id_for(start), start_time=start, end_time=start + SLOT_DURATION))
        return slots
