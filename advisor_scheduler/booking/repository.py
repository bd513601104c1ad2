"""
Durable booking repository.

Bookings live in memory, keyed by id, with a secondary index by booking
code. When a path is given, every mutation rewrites the whole JSON file
atomically (temp file then replace), and the file is reloaded on start.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from advisor_scheduler.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


class BookingRepository:
    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._path = Path(path) if path is not None else None
        self._by_id: dict[str, Booking] = {}
        self._id_by_code: dict[str, str] = {}
        self._lock = threading.RLock()
        if self._path is not None:
            self._load()

    def add(self, booking: Booking) -> Booking:
        with self._lock:
            self._put(booking)
            self._save()
            return booking.model_copy(deep=True)

    def update(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id not in self._by_id:
                raise KeyError(f"Unknown booking id {booking.id}")
            self._put(booking)
            self._save()
            return booking.model_copy(deep=True)

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._by_id.get(booking_id)
            return booking.model_copy(deep=True) if booking else None

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        with self._lock:
            booking_id = self._id_by_code.get(booking_code.upper())
            if booking_id is None:
                return None
            return self._by_id[booking_id].model_copy(deep=True)

    def remove(self, booking_id: str) -> bool:
        with self._lock:
            booking = self._by_id.pop(booking_id, None)
            if booking is None:
                return False
            if self._id_by_code.get(booking.booking_code) == booking_id:
                del self._id_by_code[booking.booking_code]
            self._save()
            return True

    def all(self) -> list[Booking]:
        with self._lock:
            return [b.model_copy(deep=True) for b in self._by_id.values()]

    def code_in_use(self, booking_code: str) -> bool:
        """True when a live (not cancelled) booking holds the code."""
        with self._lock:
            booking_id = self._id_by_code.get(booking_code)
            if booking_id is None:
                return False
            return self._by_id[booking_id].status != BookingStatus.CANCELLED

    def _put(self, booking: Booking) -> None:
        stored = booking.model_copy(deep=True)
        self._by_id[stored.id] = stored
        self._id_by_code[stored.booking_code] = stored.id

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            bookings = [Booking.model_validate(item) for item in raw.get("bookings", [])]
        except (json.JSONDecodeError, OSError, ValidationError, AttributeError) as e:
            logger.error("Could not load bookings from %s, starting empty: %s", self._path, e)
            return
        for booking in bookings:
            self._put(booking)
        logger.info("Loaded %d bookings from %s", len(bookings), self._path)

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        data = {"bookings": [b.model_dump(mode="json") for b in self._by_id.values()]}
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(self._path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
