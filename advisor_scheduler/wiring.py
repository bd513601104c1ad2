"""
Object graph assembly.

Builds one orchestrator with its allocator, repository, booking system,
saga, booking service, flow controller, session manager and NLU client,
all configured from ``AppConfig``. Any collaborator can be passed in to
replace the default (the tests use this for clocks and fake backends).
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.booking.service import BookingService
from advisor_scheduler.booking.slot_allocator import SlotAllocator
from advisor_scheduler.config import AppConfig
from advisor_scheduler.conversation.flow_controller import FlowController
from advisor_scheduler.conversation.guardrails import GuardrailPipeline
from advisor_scheduler.conversation.nlu import KeywordNLU, NLUClient
from advisor_scheduler.conversation.orchestrator import ConversationOrchestrator
from advisor_scheduler.conversation.session_store import InMemorySessionStore, SessionManager
from advisor_scheduler.integrations.ports import (
    AvailabilitySource,
    BookingSystemPort,
    InMemoryBookingSystem,
    NullBookingSystem,
)
from advisor_scheduler.integrations.saga import IntegrationSaga

logger = logging.getLogger(__name__)


def build_booking_system(config: AppConfig) -> BookingSystemPort:
    if config.integrations.enabled:
        return InMemoryBookingSystem()
    return NullBookingSystem()


def build_orchestrator(
    config: AppConfig,
    nlu: Optional[NLUClient] = None,
    booking_system: Optional[BookingSystemPort] = None,
    availability_source: Optional[AvailabilitySource] = None,
    repository: Optional[BookingRepository] = None,
    sessions: Optional[SessionManager] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ConversationOrchestrator:
    business = config.business
    allocator = SlotAllocator(
        timezone=business.timezone,
        open_hour=business.open_hour,
        close_hour=business.close_hour,
        window_days=business.slot_window_days,
        max_results=business.max_slots_returned,
        availability_source=availability_source,
        clock=clock,
    )
    bookings = BookingService(
        allocator=allocator,
        repository=repository or BookingRepository(config.storage.bookings_file),
        booking_system=booking_system or build_booking_system(config),
        saga=IntegrationSaga(config.integrations.timeout_seconds),
        secure_url_base=config.integrations.secure_url_base,
        link_ttl_hours=config.integrations.booking_link_ttl_hours,
        code_max_attempts=config.integrations.code_max_attempts,
    )
    flow = FlowController(allocator, bookings, slots_offered=business.slots_offered)
    sessions = sessions or SessionManager(
        InMemorySessionStore(), idle_timeout_minutes=config.session.idle_timeout_minutes
    )
    logger.info(
        "Orchestrator ready (integrations %s)",
        "enabled" if bookings.integrations_enabled else "disabled",
    )
    return ConversationOrchestrator(
        sessions=sessions,
        flow=flow,
        nlu=nlu or KeywordNLU(),
        guardrails=GuardrailPipeline(),
        nlu_timeout_seconds=config.integrations.timeout_seconds,
    )
