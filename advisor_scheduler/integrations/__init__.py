from advisor_scheduler.integrations.ports import (
    AvailabilitySource,
    BookingSystemPort,
    InMemoryBookingSystem,
    NullBookingSystem,
)
from advisor_scheduler.integrations.saga import IntegrationSaga, describe_outcomes

__all__ = [
    "AvailabilitySource",
    "BookingSystemPort",
    "InMemoryBookingSystem",
    "IntegrationSaga",
    "NullBookingSystem",
    "describe_outcomes",
]
