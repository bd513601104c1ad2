from advisor_scheduler.conversation.flow_controller import FlowController
from advisor_scheduler.conversation.flow_types import FlowInput, FlowResult
from advisor_scheduler.conversation.guardrails import GuardrailPipeline, GuardrailResult
from advisor_scheduler.conversation.nlu import KeywordNLU, NLUClient, NLUUnavailableError
from advisor_scheduler.conversation.orchestrator import ConversationOrchestrator
from advisor_scheduler.conversation.reschedule import RescheduleHelper
from advisor_scheduler.conversation.session_store import (
    InMemorySessionStore,
    SessionManager,
    SessionStore,
)

__all__ = [
    "ConversationOrchestrator",
    "FlowController",
    "FlowInput",
    "FlowResult",
    "GuardrailPipeline",
    "GuardrailResult",
    "InMemorySessionStore",
    "KeywordNLU",
    "NLUClient",
    "NLUUnavailableError",
    "RescheduleHelper",
    "SessionManager",
    "SessionStore",
]
