"""Tests for the keyword NLU client and the NLU result schema."""

import pytest

from advisor_scheduler.conversation.nlu import KeywordNLU
from advisor_scheduler.schemas.conversation_schema import Intent
from advisor_scheduler.schemas.nlu_schema import NLUResult
from tests.conftest import make_session


class TestKeywordNLU:
    def setup_method(self):
        self.nlu = KeywordNLU()
        self.session = make_session()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message,intent", [
        ("I'd like to book a consultation", Intent.BOOK_NEW),
        ("I need to reschedule", Intent.RESCHEDULE),
        ("please cancel my appointment", Intent.CANCEL),
        ("what should I prepare?", Intent.WHAT_TO_PREPARE),
        ("show me available slots", Intent.CHECK_AVAILABILITY),
        ("hello", Intent.GREETING),
    ])
    async def test_intents(self, message, intent):
        result = await self.nlu.interpret(message, self.session)
        assert result.intent == intent

    @pytest.mark.asyncio
    async def test_no_intent(self):
        result = await self.nlu.interpret("tomorrow afternoon", self.session)
        assert result.intent is None
        assert result.function_calls == []

    @pytest.mark.asyncio
    async def test_keywords_need_word_boundaries(self):
        result = await self.nlu.interpret("this one", self.session)
        assert result.intent is None

    @pytest.mark.asyncio
    async def test_booking_code_call(self):
        result = await self.nlu.interpret("cancel nl-a742", self.session)
        assert result.intent == Intent.CANCEL
        assert result.function_calls[0].name == "provide_booking_code"
        assert result.function_calls[0].arguments == {"bookingCode": "NL-A742"}


class TestNLUResult:
    def test_null_function_calls(self):
        assert NLUResult(function_calls=None).function_calls == []

    def test_unknown_intent_label(self):
        assert NLUResult(intent="small_talk").intent == Intent.UNKNOWN

    def test_known_intent_label(self):
        assert NLUResult(intent="cancel").intent == Intent.CANCEL
