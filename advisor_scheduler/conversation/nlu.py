"""
Language-understanding port.

The orchestrator asks an ``NLUClient`` to classify each message into a
coarse intent plus structured function calls. Production deployments
plug in an LLM-backed client; ``KeywordNLU`` is the offline rule-based
client used by the console demo and the tests.
"""

import logging
import re
from abc import ABC, abstractmethod

from advisor_scheduler.booking.codes import extract_booking_code
from advisor_scheduler.schemas.conversation_schema import Intent, Session
from advisor_scheduler.schemas.nlu_schema import FunctionCall, FunctionName, NLUResult

logger = logging.getLogger(__name__)


class NLUUnavailableError(Exception):
    """The language-understanding service failed or timed out."""


class NLUClient(ABC):
    @abstractmethod
    async def interpret(self, message: str, session: Session) -> NLUResult:
        """Classify ``message`` given a snapshot of the session."""
        raise NotImplementedError


class KeywordNLU(NLUClient):
    """Keyword intent classifier. Step-specific parsing is left to the flow."""

    INTENT_KEYWORDS: list[tuple[Intent, list[str]]] = [
        (Intent.RESCHEDULE, ["reschedule", "change my booking", "move my booking", "different time"]),
        (Intent.CANCEL, ["cancel"]),
        (Intent.WHAT_TO_PREPARE, ["prepare", "what do i need", "what should i bring", "documents needed"]),
        (Intent.CHECK_AVAILABILITY, ["availability", "available slots", "when are you free", "free slots"]),
        (Intent.BOOK_NEW, ["book", "appointment", "schedule", "consultation"]),
        (Intent.GREETING, ["hello", "hi", "hey", "good morning", "good afternoon", "good evening"]),
    ]

    async def interpret(self, message: str, session: Session) -> NLUResult:
        lower = message.lower()
        intent = None
        for candidate, keywords in self.INTENT_KEYWORDS:
            if any(re.search(rf"\b{re.escape(k)}\b", lower) for k in keywords):
                intent = candidate
                break

        function_calls = []
        code = extract_booking_code(message)
        if code:
            function_calls.append(FunctionCall(
                name=FunctionName.PROVIDE_BOOKING_CODE.value,
                arguments={"bookingCode": code},
            ))

        logger.debug("Keyword NLU: intent=%s calls=%d", intent, len(function_calls))
        return NLUResult(message=message, intent=intent, function_calls=function_calls)
