"""
Conversation session storage and lifecycle.

``SessionStore`` is the storage interface; ``InMemorySessionStore`` keeps
sessions in a dict and hands out deep copies so no caller can mutate a
stored session behind the manager's back. Each session id also owns an
``asyncio.Lock``: the orchestrator holds it for the whole turn, which
keeps at most one message per session in flight.

``SessionManager`` applies the mutation rules on top of a store:
context updates merge shallowly, history is append-only, and every step
change leaves a system turn in the history.

Usage:
    manager = SessionManager(InMemorySessionStore(), idle_timeout_minutes=30)
    async with manager.lock(session_id):
        session = manager.get_or_create(session_id)
        manager.update_context(session.session_id, {"topic": Topic.SIP_MANDATES})
"""

import asyncio
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from advisor_scheduler.schemas.conversation_schema import (
    ConversationStep,
    ConversationTurn,
    Intent,
    Role,
    Session,
    StateTransition,
    TurnMetadata,
)

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    def set(self, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def ids(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def lock_for(self, session_id: str) -> asyncio.Lock:
        """The lock serialising turns for one session."""
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def get(self, session_id: str) -> Optional[Session]:
        with self._guard:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    def set(self, session: Session) -> None:
        with self._guard:
            self._sessions[session.session_id] = session.model_copy(deep=True)

    def delete(self, session_id: str) -> None:
        with self._guard:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)

    def ids(self) -> list[str]:
        with self._guard:
            return list(self._sessions)

    def lock_for(self, session_id: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[session_id] = lock
            return lock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(
        self,
        store: Optional[SessionStore] = None,
        idle_timeout_minutes: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store or InMemorySessionStore()
        self.idle_timeout = timedelta(minutes=idle_timeout_minutes)
        self._clock = clock or _utcnow

    def create_session(self, session_id: Optional[str] = None) -> Session:
        now = self._clock()
        session = Session(
            session_id=session_id or str(uuid.uuid4()),
            created_at=now,
            last_activity=now,
        )
        self.store.set(session)
        logger.info("Session %s created", session.session_id)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.store.get(session_id)

    def get_or_create(self, session_id: Optional[str] = None) -> Session:
        """Fetch a live session, or start one under ``session_id`` (or a new id)."""
        if session_id:
            session = self.store.get(session_id)
            if session is not None:
                return session
        return self.create_session(session_id)

    def update_context(self, session_id: str, updates: dict[str, Any]) -> Optional[Session]:
        return self._mutate(
            session_id, lambda s: setattr(s, "context", s.context.merged(updates))
        )

    def add_turn(self, session_id: str, turn: ConversationTurn) -> Optional[Session]:
        return self._mutate(session_id, lambda s: s.history.append(turn))

    def set_intent(self, session_id: str, intent: Optional[Intent]) -> Optional[Session]:
        return self._mutate(session_id, lambda s: setattr(s, "intent", intent))

    def transition_step(self, session_id: str, new_step: ConversationStep) -> Optional[Session]:
        """Move to ``new_step`` and log the transition as a system turn."""
        def apply(session: Session) -> None:
            old_step = session.current_step
            session.current_step = new_step
            session.history.append(ConversationTurn(
                role=Role.SYSTEM,
                content=f"State transition: {old_step.value} → {new_step.value}",
                timestamp=self._clock(),
                metadata=TurnMetadata(
                    state_transition=StateTransition(from_step=old_step, to_step=new_step),
                ),
            ))
            logger.debug("Session %s: %s -> %s", session_id, old_step.value, new_step.value)

        return self._mutate(session_id, apply)

    def lock(self, session_id: str) -> asyncio.Lock:
        return self.store.lock_for(session_id)

    def sweep_expired(self, now: Optional[datetime] = None) -> list[str]:
        """Evict sessions idle longer than the timeout.

        Sessions whose lock is held are mid-turn and are left alone.
        """
        now = now or self._clock()
        evicted = []
        for session_id in self.store.ids():
            if self.store.lock_for(session_id).locked():
                continue
            session = self.store.get(session_id)
            if session is None:
                continue
            if now - session.last_activity > self.idle_timeout:
                self.store.delete(session_id)
                evicted.append(session_id)
        if evicted:
            logger.info("Evicted %d idle sessions", len(evicted))
        return evicted

    async def run_sweeper(self, stop_event: asyncio.Event, interval_seconds: float = 300.0) -> None:
        """Sweep periodically until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                self.sweep_expired()

    def _mutate(self, session_id: str, apply: Callable[[Session], None]) -> Optional[Session]:
        session = self.store.get(session_id)
        if session is None:
            logger.warning("Session %s not found", session_id)
            return None
        apply(session)
        session.last_activity = self._clock()
        self.store.set(session)
        return session
