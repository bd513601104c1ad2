from advisor_scheduler.booking.codes import (
    BookingCodeExhaustedError,
    extract_booking_code,
    generate_booking_code,
    generate_unique_booking_code,
    validate_booking_code,
)
from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.booking.service import BookingService, SlotUnavailableError
from advisor_scheduler.booking.slot_allocator import SlotAllocator

__all__ = [
    "BookingCodeExhaustedError",
    "BookingRepository",
    "BookingService",
    "SlotAllocator",
    "SlotUnavailableError",
    "extract_booking_code",
    "generate_booking_code",
    "generate_unique_booking_code",
    "validate_booking_code",
]
