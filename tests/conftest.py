"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.booking.service import BookingService
from advisor_scheduler.booking.slot_allocator import SlotAllocator, slot_id_for
from advisor_scheduler.conversation.flow_controller import FlowController
from advisor_scheduler.conversation.guardrails import GuardrailPipeline
from advisor_scheduler.conversation.nlu import KeywordNLU
from advisor_scheduler.conversation.orchestrator import ConversationOrchestrator
from advisor_scheduler.conversation.session_store import InMemorySessionStore, SessionManager
from advisor_scheduler.integrations.ports import InMemoryBookingSystem
from advisor_scheduler.schemas.booking_schema import Slot, Topic
from advisor_scheduler.schemas.conversation_schema import (
    ConversationStep,
    Intent,
    Session,
    SessionContext,
)

IST = ZoneInfo("Asia/Kolkata")

# Monday morning; tomorrow is a business day.
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=IST)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def allocator():
    return SlotAllocator(timezone="Asia/Kolkata", clock=fixed_clock)


@pytest.fixture
def repository():
    return BookingRepository()


@pytest.fixture
def booking_service(allocator, repository):
    return BookingService(allocator, repository)


@pytest.fixture
def booking_system():
    return InMemoryBookingSystem()


@pytest.fixture
def integrated_service(allocator, repository, booking_system):
    return BookingService(
        allocator, repository, booking_system=booking_system, secure_url_base="https://advisor.example"
    )


@pytest.fixture
def flow(allocator, booking_service):
    return FlowController(allocator, booking_service)


@pytest.fixture
def session_manager():
    return SessionManager(InMemorySessionStore(), idle_timeout_minutes=30)


@pytest.fixture
def guardrail_pipeline():
    return GuardrailPipeline()


@pytest.fixture
def orchestrator(session_manager, flow):
    return ConversationOrchestrator(session_manager, flow, KeywordNLU())


def make_slot(day: int = 20, hour: int = 14, month: int = 10, year: int = 2026) -> Slot:
    """Helper to create an available one-hour slot in IST."""
    start = datetime(year, month, day, hour, 0, tzinfo=IST)
    return Slot(id=slot_id_for(start), start_time=start, end_time=start + timedelta(hours=1))


def make_session(
    step: ConversationStep = ConversationStep.INITIAL,
    intent: Optional[Intent] = None,
    session_id: str = "test-session",
    topic: Optional[Topic] = None,
    selected_slots: Optional[list[Slot]] = None,
    **context,
) -> Session:
    """Helper to create a session positioned at ``step`` with the given context."""
    return Session(
        session_id=session_id,
        current_step=step,
        intent=intent,
        context=SessionContext(topic=topic, selected_slots=selected_slots or [], **context),
    )


def seed_session(manager: SessionManager, session: Session) -> Session:
    """Store a prepared session so the orchestrator picks it up."""
    manager.store.set(session)
    return session
