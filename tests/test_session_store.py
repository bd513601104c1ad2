"""Tests for session storage, mutation rules and idle eviction."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from advisor_scheduler.conversation.session_store import InMemorySessionStore, SessionManager
from advisor_scheduler.schemas.booking_schema import Topic
from advisor_scheduler.schemas.conversation_schema import (
    ConversationStep,
    ConversationTurn,
    Intent,
    Role,
)


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 10, 19, 4, 30, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return SessionManager(InMemorySessionStore(), idle_timeout_minutes=30, clock=clock)


class TestSessionLifecycle:
    def test_create_session(self, manager):
        session = manager.create_session()
        assert session.current_step == ConversationStep.INITIAL
        assert session.history == []
        assert manager.get_session(session.session_id) is not None

    def test_create_with_id(self, manager):
        assert manager.create_session("abc").session_id == "abc"

    def test_get_or_create_existing(self, manager):
        created = manager.create_session("abc")
        manager.update_context("abc", {"topic": Topic.SIP_MANDATES})
        fetched = manager.get_or_create("abc")
        assert fetched.session_id == created.session_id
        assert fetched.context.topic == Topic.SIP_MANDATES

    def test_get_or_create_unknown_id(self, manager):
        assert manager.get_or_create("fresh").session_id == "fresh"

    def test_get_or_create_without_id(self, manager):
        assert manager.get_or_create(None).session_id

    def test_unknown_session(self, manager):
        assert manager.get_session("missing") is None
        assert manager.update_context("missing", {"topic": Topic.SIP_MANDATES}) is None

    def test_reads_are_copies(self, manager):
        session = manager.create_session("abc")
        session.context.topic = Topic.KYC_ONBOARDING
        session.history.append(ConversationTurn(role=Role.USER, content="sneaky"))
        stored = manager.get_session("abc")
        assert stored.context.topic is None
        assert stored.history == []


class TestMutations:
    def test_context_merge_is_shallow(self, manager):
        manager.create_session("abc")
        manager.update_context("abc", {"topic": Topic.SIP_MANDATES, "time_preference": "morning"})
        manager.update_context("abc", {"time_preference": "afternoon"})
        context = manager.get_session("abc").context
        assert context.topic == Topic.SIP_MANDATES
        assert context.time_preference == "afternoon"

    def test_explicit_none_clears(self, manager):
        manager.create_session("abc")
        manager.update_context("abc", {"booking_code": "NL-A742"})
        manager.update_context("abc", {"booking_code": None})
        assert manager.get_session("abc").context.booking_code is None

    def test_history_append_only(self, manager):
        manager.create_session("abc")
        manager.add_turn("abc", ConversationTurn(role=Role.USER, content="hi"))
        manager.add_turn("abc", ConversationTurn(role=Role.ASSISTANT, content="hello"))
        history = manager.get_session("abc").history
        assert [turn.content for turn in history] == ["hi", "hello"]

    def test_set_intent(self, manager):
        manager.create_session("abc")
        manager.set_intent("abc", Intent.CANCEL)
        assert manager.get_session("abc").intent == Intent.CANCEL

    def test_transition_logged_as_system_turn(self, manager):
        manager.create_session("abc")
        manager.transition_step("abc", ConversationStep.GREET)
        session = manager.get_session("abc")
        assert session.current_step == ConversationStep.GREET
        turn = session.history[-1]
        assert turn.role == Role.SYSTEM
        assert turn.content == "State transition: INITIAL → GREET"
        assert turn.metadata.state_transition.from_step == ConversationStep.INITIAL
        assert turn.metadata.state_transition.to_step == ConversationStep.GREET

    def test_mutation_refreshes_activity(self, manager, clock):
        manager.create_session("abc")
        clock.advance(minutes=5)
        manager.set_intent("abc", Intent.BOOK_NEW)
        assert manager.get_session("abc").last_activity == clock.now


class TestEviction:
    def test_idle_session_evicted(self, manager, clock):
        manager.create_session("old")
        clock.advance(minutes=31)
        assert manager.sweep_expired() == ["old"]
        assert manager.get_session("old") is None

    def test_active_session_kept(self, manager, clock):
        manager.create_session("abc")
        clock.advance(minutes=20)
        manager.set_intent("abc", Intent.BOOK_NEW)
        clock.advance(minutes=20)
        assert manager.sweep_expired() == []

    @pytest.mark.asyncio
    async def test_locked_session_not_evicted(self, manager, clock):
        manager.create_session("busy")
        clock.advance(hours=2)
        async with manager.lock("busy"):
            assert manager.sweep_expired() == []
        assert manager.sweep_expired() == ["busy"]

    @pytest.mark.asyncio
    async def test_sweeper_stops(self, manager, clock):
        manager.create_session("old")
        clock.advance(hours=1)
        stop = asyncio.Event()
        task = asyncio.create_task(manager.run_sweeper(stop, interval_seconds=0.01))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)
        assert manager.get_session("old") is None


class TestSessionLocks:
    @pytest.mark.asyncio
    async def test_same_lock_per_session(self, manager):
        manager.create_session("abc")
        assert manager.lock("abc") is manager.lock("abc")
        assert manager.lock("abc") is not manager.lock("other")
