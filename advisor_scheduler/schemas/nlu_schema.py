"""Normalized output of the external language-understanding step."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from advisor_scheduler.schemas.conversation_schema import Intent


class FunctionName(str, Enum):
    SELECT_TOPIC = "select_topic"
    COLLECT_TIME_PREFERENCE = "collect_time_preference"
    SELECT_SLOT = "select_slot"
    PROVIDE_BOOKING_CODE = "provide_booking_code"
    CONFIRM_ACTION = "confirm_action"


class ConfirmAction(str, Enum):
    CONFIRM_BOOKING = "confirm_booking"
    CONFIRM_RESCHEDULE = "confirm_reschedule"
    CONFIRM_CANCEL = "confirm_cancel"


class FunctionCall(BaseModel):
    """A structured call extracted by the NLU. Unknown names are kept and ignored."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class NLUResult(BaseModel):
    message: str = ""
    intent: Optional[Intent] = None
    function_calls: list[FunctionCall] = Field(default_factory=list)

    @field_validator("function_calls", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return value or []

    @field_validator("intent", mode="before")
    @classmethod
    def _unrecognised_intent_is_unknown(cls, value: Any) -> Any:
        if value is None or isinstance(value, Intent):
            return value
        try:
            return Intent(value)
        except ValueError:
            return Intent.UNKNOWN
