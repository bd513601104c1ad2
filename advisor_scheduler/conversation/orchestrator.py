"""
Per-turn orchestration: guardrails, language understanding, flow, session update.

One call to ``process_message`` handles one user message end to end while
holding that session's lock, so turns for the same session never
interleave. Turns for different sessions run concurrently.

Order of operations:
1. PII gate: redacted history entry, no NLU, no flow
2. Investment gate: refusal plus educational links, no flow
3. NLU: failure returns an apology and leaves the session as it was
4. Flow controller: decides response, next step and context updates
5. Session update: context merge, step transition, assistant turn
"""

import asyncio
import logging
from typing import Optional

from advisor_scheduler.conversation.flow_controller import FlowController
from advisor_scheduler.conversation.guardrails import GuardrailPipeline
from advisor_scheduler.conversation.nlu import NLUClient
from advisor_scheduler.conversation.session_store import SessionManager
from advisor_scheduler.logging_context import session_scope
from advisor_scheduler.prompts import messages
from advisor_scheduler.schemas.conversation_schema import (
    ConversationTurn,
    Intent,
    OrchestratorResponse,
    Role,
    Session,
    SlotView,
    StateTransition,
    TurnMetadata,
)
from advisor_scheduler.schemas.nlu_schema import NLUResult

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    def __init__(
        self,
        sessions: SessionManager,
        flow: FlowController,
        nlu: NLUClient,
        guardrails: Optional[GuardrailPipeline] = None,
        nlu_timeout_seconds: float = 30.0,
    ) -> None:
        self.sessions = sessions
        self.flow = flow
        self.nlu = nlu
        self.guardrails = guardrails or GuardrailPipeline()
        self.nlu_timeout_seconds = nlu_timeout_seconds

    async def process_message(self, session_id: Optional[str], message: str) -> OrchestratorResponse:
        """Handle one user message and return the assistant's turn."""
        session = self.sessions.get_or_create(session_id)
        session_id = session.session_id
        async with self.sessions.lock(session_id):
            with session_scope(session_id):
                session = self.sessions.get_or_create(session_id)
                return await self._process_locked(session, message)

    async def handle_transcript(self, session_id: Optional[str], transcript: str) -> str:
        """Voice entry point: only the speakable text is returned."""
        response = await self.process_message(session_id, transcript)
        return response.message

    async def _process_locked(self, session: Session, message: str) -> OrchestratorResponse:
        session_id = session.session_id

        blocked = self.guardrails.check_user_input(message, session.context.topic)
        if blocked is not None and blocked.violation_type == "pii":
            self.sessions.add_turn(session_id, ConversationTurn(
                role=Role.USER, content=messages.PII_REDACTED_PLACEHOLDER,
            ))
            return OrchestratorResponse(
                message=blocked.message,
                session_id=session_id,
                current_step=session.current_step,
                pii_detected=True,
            )
        if blocked is not None:
            self.sessions.add_turn(session_id, ConversationTurn(role=Role.USER, content=message))
            self.sessions.add_turn(session_id, ConversationTurn(role=Role.ASSISTANT, content=blocked.message))
            return OrchestratorResponse(
                message=blocked.message,
                session_id=session_id,
                current_step=session.current_step,
                educational_links=blocked.educational_links,
                investment_advice_detected=True,
            )

        try:
            nlu_result = await asyncio.wait_for(
                self.nlu.interpret(message, session), timeout=self.nlu_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("NLU timed out after %.1fs", self.nlu_timeout_seconds)
            return self._nlu_failure(session, "the language service timed out")
        except Exception as e:
            logger.error("NLU failed: %s", e)
            return self._nlu_failure(session, str(e) or e.__class__.__name__)

        self.sessions.add_turn(session_id, ConversationTurn(role=Role.USER, content=message))
        if nlu_result.intent is not None and nlu_result.intent != Intent.UNKNOWN:
            self.sessions.set_intent(session_id, nlu_result.intent)

        result = await self.flow.process(
            session, message, nlu_result.intent, nlu_result.function_calls
        )

        if result.context_updates:
            self.sessions.update_context(session_id, result.context_updates)
        transition = None
        if result.next_step != session.current_step:
            transition = StateTransition(from_step=session.current_step, to_step=result.next_step)
            self.sessions.transition_step(session_id, result.next_step)

        response_text = result.response or nlu_result.message
        function_calls = _dump_calls(nlu_result)
        self.sessions.add_turn(session_id, ConversationTurn(
            role=Role.ASSISTANT,
            content=response_text,
            metadata=TurnMetadata(function_calls=function_calls, state_transition=transition),
        ))
        logger.info(
            "Turn complete: %s -> %s", session.current_step.value, result.next_step.value
        )

        return OrchestratorResponse(
            message=response_text,
            session_id=session_id,
            current_step=result.next_step,
            display_message=result.display_message,
            function_calls=function_calls,
            state_transition=transition,
            booking_code=result.booking_code,
            slots=[
                SlotView(
                    id=slot.id,
                    start_time=slot.start_time.isoformat(),
                    end_time=slot.end_time.isoformat(),
                )
                for slot in result.slots
            ],
            educational_links=result.educational_links,
            integration_status=result.integration_status,
        )

    @staticmethod
    def _nlu_failure(session: Session, detail: str) -> OrchestratorResponse:
        return OrchestratorResponse(
            message=messages.NLU_FAILURE.format(error=detail),
            session_id=session.session_id,
            current_step=session.current_step,
        )


def _dump_calls(nlu_result: NLUResult) -> list[dict]:
    return [call.model_dump() for call in nlu_result.function_calls]
