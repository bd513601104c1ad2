"""Conversation session, turn history and orchestrator response schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from advisor_scheduler.schemas.booking_schema import Slot, Topic


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStep(str, Enum):
    """Positions in the booking workflow."""
    INITIAL = "INITIAL"
    GREET = "GREET"
    DISCLAIMER = "DISCLAIMER"
    TOPIC_SELECTION = "TOPIC_SELECTION"
    TIME_PREFERENCE = "TIME_PREFERENCE"
    SLOT_OFFERING = "SLOT_OFFERING"
    CONFIRMATION = "CONFIRMATION"
    VALIDATE_CODE = "VALIDATE_CODE"
    CANCELLATION = "CANCELLATION"
    AVAILABILITY_LIST = "AVAILABILITY_LIST"
    COMPLETE = "COMPLETE"


ENTRY_STEPS = frozenset({ConversationStep.INITIAL, ConversationStep.GREET})


class Intent(str, Enum):
    """Coarse classification of what the user is trying to do."""
    BOOK_NEW = "book_new"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    WHAT_TO_PREPARE = "what_to_prepare"
    CHECK_AVAILABILITY = "check_availability"
    GREETING = "greeting"
    UNKNOWN = "unknown"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StateTransition(BaseModel):
    from_step: ConversationStep
    to_step: ConversationStep


class TurnMetadata(BaseModel):
    function_calls: list[dict[str, Any]] = Field(default_factory=list)
    state_transition: Optional[StateTransition] = None


class ConversationTurn(BaseModel):
    """A single entry in the append-only session history."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Optional[TurnMetadata] = None


class SessionContext(BaseModel):
    """Mutable bag of facts gathered during the conversation.

    ``selected_slots`` is ordered; the first entry is the preferred slot.
    ``rescheduling`` marks a validated booking that is being moved rather
    than a new booking being made.
    """

    topic: Optional[Topic] = None
    date_preference: Optional[str] = None
    time_preference: Optional[str] = None
    selected_slots: list[Slot] = Field(default_factory=list)
    booking_code: Optional[str] = None
    booking_id: Optional[str] = None
    rescheduling: bool = False

    def merged(self, updates: dict[str, Any]) -> "SessionContext":
        """Shallow merge: keys present in ``updates`` replace, others are kept."""
        if not updates:
            return self.model_copy(deep=True)
        data = self.model_dump()
        data.update(updates)
        return SessionContext.model_validate(data)


class Session(BaseModel):
    """One user's conversation: workflow position, context and history."""

    session_id: str
    current_step: ConversationStep = ConversationStep.INITIAL
    intent: Optional[Intent] = None
    context: SessionContext = Field(default_factory=SessionContext)
    history: list[ConversationTurn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity: datetime = Field(default_factory=_utcnow)


class SlotView(BaseModel):
    id: str
    start_time: str
    end_time: str


class OrchestratorResponse(BaseModel):
    """Everything a transport layer needs to render one assistant turn.

    ``message`` is safe to speak; ``display_message`` is the fuller text
    for chat surfaces and may carry URLs and integration status.
    """

    message: str
    session_id: str
    current_step: ConversationStep
    display_message: Optional[str] = None
    function_calls: list[dict[str, Any]] = Field(default_factory=list)
    state_transition: Optional[StateTransition] = None
    booking_code: Optional[str] = None
    slots: list[SlotView] = Field(default_factory=list)
    educational_links: list[str] = Field(default_factory=list)
    integration_status: list[str] = Field(default_factory=list)
    pii_detected: bool = False
    investment_advice_detected: bool = False
