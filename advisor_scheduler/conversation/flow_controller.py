"""
Step-and-intent flow controller for the advisor booking workflow.

Each turn runs an ordered pipeline of stages:
1. function calls: structured calls extracted by the NLU
2. intent: coarse intents that can redirect the conversation
3. step: the handler for the session's current step
4. fallback: a step-specific prompt when nothing said anything

Stage results merge in order: a later non-empty response overrides an
earlier one and context updates accumulate. A stage that marks its result
``handled`` ends the pipeline. Every stage sees the session with the
context updates gathered so far already applied, and nothing is written
back to the session here; the orchestrator applies the final result.

Usage:
    controller = FlowController(allocator, booking_service)
    result = await controller.process(session, "tomorrow afternoon", intent=None)
    # result.next_step == ConversationStep.SLOT_OFFERING
"""

import logging
import re
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from advisor_scheduler.booking.codes import extract_booking_code, validate_booking_code
from advisor_scheduler.booking.service import (
    CANCEL_STEPS,
    CREATE_STEPS,
    BookingService,
    SlotUnavailableError,
    latest_outcomes,
)
from advisor_scheduler.booking.slot_allocator import SlotAllocator
from advisor_scheduler.booking.topics import (
    TOPIC_DESCRIPTIONS,
    educational_links,
    match_topic,
    topic_from_menu_choice,
)
from advisor_scheduler.conversation.flow_types import FlowInput, FlowResult, slot_offer
from advisor_scheduler.conversation.reschedule import RescheduleHelper
from advisor_scheduler.date_parser import parse_date_time
from advisor_scheduler.integrations.saga import describe_outcomes
from advisor_scheduler.prompts import messages
from advisor_scheduler.schemas.booking_schema import BookingStatus, Slot, Topic
from advisor_scheduler.schemas.conversation_schema import (
    ENTRY_STEPS,
    ConversationStep,
    Intent,
    Session,
)
from advisor_scheduler.schemas.nlu_schema import ConfirmAction, FunctionCall, FunctionName
from advisor_scheduler.utils import contains_any, is_affirmative, is_negative

logger = logging.getLogger(__name__)

Stage = Callable[[Session, FlowInput], Awaitable[Optional[FlowResult]]]

_FIRST = re.compile(r"\b(1|first|one)\b(?!\s*(?:am|pm|:))")
_SECOND = re.compile(r"\b(2|second|two)\b(?!\s*(?:am|pm|:))")
_LIST_CHOICE = re.compile(r"(?:^|\b(?:slot|option|number)\s*#?)([1-5])\b(?!\s*(?:am|pm|:))")
_ORDINALS = {"first": 0, "second": 1, "third": 2, "fourth": 3, "fifth": 4}

# Steps where "check availability" would abandon a half-finished action.
_AVAILABILITY_BLOCKED = frozenset({
    ConversationStep.SLOT_OFFERING,
    ConversationStep.CONFIRMATION,
    ConversationStep.CANCELLATION,
    ConversationStep.VALIDATE_CODE,
})

_CLEARED_BOOKING_CONTEXT: dict[str, Any] = {
    "topic": None,
    "date_preference": None,
    "time_preference": None,
    "selected_slots": [],
    "booking_code": None,
    "booking_id": None,
    "rescheduling": False,
}

_FALLBACKS: dict[ConversationStep, str] = {
    ConversationStep.TIME_PREFERENCE: messages.FALLBACK_TIME_PREFERENCE,
    ConversationStep.SLOT_OFFERING: messages.FALLBACK_SLOT_OFFERING,
    ConversationStep.CONFIRMATION: messages.FALLBACK_CONFIRMATION,
    ConversationStep.VALIDATE_CODE: messages.FALLBACK_VALIDATE_CODE,
    ConversationStep.COMPLETE: messages.ANYTHING_ELSE,
}


class FlowController:
    """Decides the response, next step and side effects for one user turn."""

    def __init__(
        self,
        allocator: SlotAllocator,
        bookings: BookingService,
        slots_offered: int = 2,
        availability_list_size: int = 5,
    ) -> None:
        self.allocator = allocator
        self.bookings = bookings
        self.slots_offered = slots_offered
        self.availability_list_size = availability_list_size
        self.reschedule = RescheduleHelper(allocator, bookings, slots_offered)
        self.stages: list[Stage] = [
            self._function_call_stage,
            self._intent_stage,
            self._step_stage,
        ]
        self._step_handlers = {
            ConversationStep.INITIAL: self._greet,
            ConversationStep.GREET: self._greet,
            ConversationStep.DISCLAIMER: self._disclaimer,
            ConversationStep.TOPIC_SELECTION: self._topic_selection,
            ConversationStep.TIME_PREFERENCE: self._time_preference,
            ConversationStep.SLOT_OFFERING: self._slot_offering,
            ConversationStep.CONFIRMATION: self._confirmation,
            ConversationStep.VALIDATE_CODE: self._validate_code_step,
            ConversationStep.CANCELLATION: self._cancellation,
            ConversationStep.AVAILABILITY_LIST: self._availability_list,
        }

    async def process(
        self,
        session: Session,
        message: str,
        intent: Optional[Intent] = None,
        function_calls: Optional[list[FunctionCall]] = None,
    ) -> FlowResult:
        """Run the pipeline for one message. ``session`` is not modified."""
        turn = self._build_input(message, intent, function_calls or [])
        result = FlowResult()
        for stage in self.stages:
            view = self._view(session, result)
            stage_result = await stage(view, turn)
            if stage_result is None:
                continue
            result = result.merge(stage_result)
            if stage_result.handled:
                break

        if result.next_step is None:
            result.next_step = session.current_step
        if not result.response.strip():
            result.response = _FALLBACKS.get(result.next_step, messages.REPHRASE)
        result.response = result.response.strip()
        return result

    # -- Pipeline plumbing -------------------------------------------------

    @staticmethod
    def _build_input(
        message: str, intent: Optional[Intent], function_calls: list[FunctionCall]
    ) -> FlowInput:
        booking_code = None
        confirmed = False
        for call in function_calls:
            if call.name == FunctionName.PROVIDE_BOOKING_CODE.value:
                raw = str(call.arguments.get("bookingCode", "")).strip().upper()
                if validate_booking_code(raw):
                    booking_code = raw
            elif call.name == FunctionName.CONFIRM_ACTION.value:
                confirmed = True
        return FlowInput(
            message=message,
            intent=intent,
            function_calls=function_calls,
            booking_code=booking_code or extract_booking_code(message),
            confirmed=confirmed,
        )

    @staticmethod
    def _view(session: Session, so_far: FlowResult) -> Session:
        if not so_far.context_updates:
            return session
        return session.model_copy(update={"context": session.context.merged(so_far.context_updates)})

    # -- Stage 1: function calls -------------------------------------------

    async def _function_call_stage(self, view: Session, turn: FlowInput) -> Optional[FlowResult]:
        if not turn.function_calls:
            return None
        combined: Optional[FlowResult] = None
        responses: list[str] = []
        for call in turn.function_calls:
            call_result = self._apply_function_call(view, call)
            if call_result is None:
                continue
            if call_result.response:
                responses.append(call_result.response)
            combined = call_result if combined is None else combined.merge(call_result)
        if combined is not None:
            combined.response = " ".join(responses)
        return combined

    def _apply_function_call(self, view: Session, call: FunctionCall) -> Optional[FlowResult]:
        args = call.arguments
        if call.name == FunctionName.SELECT_TOPIC.value:
            topic = _resolve_topic(args.get("topic"))
            if topic is None:
                return None
            return FlowResult(
                response=messages.topic_confirmation(topic),
                next_step=ConversationStep.TOPIC_SELECTION,
                context_updates={"topic": topic},
            )

        if call.name == FunctionName.COLLECT_TIME_PREFERENCE.value:
            updates = {}
            date_preference = _normalize_date_preference(args.get("datePreference"), self.allocator.today())
            if date_preference:
                updates["date_preference"] = date_preference
            if args.get("timePreference"):
                updates["time_preference"] = str(args["timePreference"])
            if not updates:
                return None
            return FlowResult(next_step=ConversationStep.TIME_PREFERENCE, context_updates=updates)

        if call.name == FunctionName.SELECT_SLOT.value:
            slot = self._find_slot(view, str(args.get("slotId", "")))
            if slot is None:
                return FlowResult(response=messages.SLOT_NOT_FOUND, handled=True)
            return FlowResult(
                response=messages.slot_selected(slot),
                next_step=ConversationStep.CONFIRMATION,
                context_updates={"selected_slots": [slot]},
                handled=True,
            )

        if call.name == FunctionName.PROVIDE_BOOKING_CODE.value:
            code = str(args.get("bookingCode", "")).strip().upper()
            if not validate_booking_code(code):
                return None
            return FlowResult(
                next_step=ConversationStep.VALIDATE_CODE,
                context_updates={"booking_code": code},
            )

        if call.name == FunctionName.CONFIRM_ACTION.value:
            action = args.get("action")
            if action in (ConfirmAction.CONFIRM_BOOKING.value, ConfirmAction.CONFIRM_RESCHEDULE.value):
                return FlowResult(next_step=ConversationStep.CONFIRMATION)
            if action == ConfirmAction.CONFIRM_CANCEL.value:
                return FlowResult(next_step=ConversationStep.CANCELLATION)
            return None

        logger.debug("Ignoring unknown function call %s", call.name)
        return None

    def _find_slot(self, view: Session, slot_id: str) -> Optional[Slot]:
        tracked = self.allocator.get(slot_id)
        if tracked is not None:
            return tracked if tracked.booking_code is None else None
        for slot in view.context.selected_slots:
            if slot.id == slot_id:
                return slot
        return None

    # -- Stage 2: intent ---------------------------------------------------

    async def _intent_stage(self, view: Session, turn: FlowInput) -> Optional[FlowResult]:
        intent = turn.intent
        if intent is None or intent in (Intent.UNKNOWN, Intent.GREETING):
            return None
        step = view.current_step
        if step == ConversationStep.TOPIC_SELECTION and view.context.topic is not None:
            return None

        restartable = step in ENTRY_STEPS or step == ConversationStep.COMPLETE

        if intent == Intent.BOOK_NEW:
            if not restartable:
                return None
            updates = dict(_CLEARED_BOOKING_CONTEXT)
            updates["topic"] = match_topic(turn.message)
            return FlowResult(
                response=f"{messages.GREET} {messages.DISCLAIMER}",
                next_step=ConversationStep.DISCLAIMER,
                context_updates=updates,
                handled=True,
            )

        if intent in (Intent.RESCHEDULE, Intent.CANCEL):
            if view.intent == intent and not restartable:
                return None
            code = turn.booking_code
            if code is None and step == ConversationStep.VALIDATE_CODE:
                code = view.context.booking_code
            if code:
                return self._validate_code(code, intent)
            prompt = messages.RESCHEDULE_PROMPT if intent == Intent.RESCHEDULE else messages.CANCEL_PROMPT
            return FlowResult(
                response=prompt,
                next_step=ConversationStep.VALIDATE_CODE,
                context_updates=dict(_CLEARED_BOOKING_CONTEXT, topic=view.context.topic),
                handled=True,
            )

        if intent == Intent.WHAT_TO_PREPARE:
            topic = view.context.topic
            if topic is None:
                return FlowResult(response=messages.PREPARE_NEEDS_TOPIC, handled=True)
            links = educational_links(topic)
            return FlowResult(
                response=messages.what_to_prepare(topic, TOPIC_DESCRIPTIONS[topic], links),
                educational_links=links,
                handled=True,
            )

        if intent == Intent.CHECK_AVAILABILITY:
            if step in _AVAILABILITY_BLOCKED:
                return None
            available = await self.allocator.list_available(
                view.context.date_preference, view.context.time_preference
            )
            if not available:
                return FlowResult(
                    response=messages.waitlist(),
                    next_step=ConversationStep.COMPLETE,
                    handled=True,
                )
            listed = available[: self.availability_list_size]
            return FlowResult(
                response=messages.availability_list(listed),
                next_step=ConversationStep.AVAILABILITY_LIST,
                context_updates={"selected_slots": listed},
                slots=listed,
                handled=True,
            )

        return None

    # -- Stage 3: step -----------------------------------------------------

    async def _step_stage(self, view: Session, turn: FlowInput) -> Optional[FlowResult]:
        handler = self._step_handlers.get(view.current_step)
        if handler is None:
            return None
        return await handler(view, turn)

    async def _greet(self, view: Session, turn: FlowInput) -> FlowResult:
        updates = {}
        topic = match_topic(turn.message)
        if topic is not None:
            updates["topic"] = topic
        return FlowResult(
            response=f"{messages.GREET} {messages.DISCLAIMER}",
            next_step=ConversationStep.DISCLAIMER,
            context_updates=updates,
        )

    async def _disclaimer(self, view: Session, turn: FlowInput) -> FlowResult:
        mentioned = _mentioned_topic(turn.message)
        if mentioned is not None:
            return FlowResult(
                response=messages.topic_confirmation(mentioned),
                next_step=ConversationStep.TOPIC_SELECTION,
                context_updates={"topic": mentioned},
            )
        if view.context.topic is not None:
            return FlowResult(
                response=messages.topic_confirmation(view.context.topic),
                next_step=ConversationStep.TOPIC_SELECTION,
            )
        return FlowResult(response=messages.topic_menu(), next_step=ConversationStep.TOPIC_SELECTION)

    async def _topic_selection(self, view: Session, turn: FlowInput) -> FlowResult:
        current = view.context.topic
        mentioned = _mentioned_topic(turn.message)
        if mentioned is not None and mentioned != current:
            return FlowResult(
                response=messages.topic_confirmation(mentioned),
                next_step=ConversationStep.TOPIC_SELECTION,
                context_updates={"topic": mentioned},
            )
        if current is not None and (is_affirmative(turn.message) or turn.confirmed):
            return FlowResult(
                response=messages.topic_accepted(current),
                next_step=ConversationStep.TIME_PREFERENCE,
            )
        if current is not None:
            return FlowResult(
                response=messages.topic_confirmation(current, nudge=mentioned is None),
                next_step=ConversationStep.TOPIC_SELECTION,
            )
        return FlowResult(response=messages.topic_menu(), next_step=ConversationStep.TOPIC_SELECTION)

    async def _time_preference(self, view: Session, turn: FlowInput) -> FlowResult:
        updates = self._parse_preference(turn.message)
        context = view.context.merged(updates)

        if self._rescheduling(view):
            offer = await self.reschedule.offer_slots(view.model_copy(update={"context": context}))
            return FlowResult(context_updates=updates).merge(offer)

        if not context.date_preference and not context.time_preference:
            return FlowResult(
                response=messages.time_preference_prompt(),
                next_step=ConversationStep.TIME_PREFERENCE,
            )
        available = await self.allocator.list_available(context.date_preference, context.time_preference)
        return slot_offer(available, self.slots_offered, updates)

    async def _slot_offering(self, view: Session, turn: FlowInput) -> FlowResult:
        offered = view.context.selected_slots
        if not offered:
            return FlowResult(
                response=messages.time_preference_prompt(),
                next_step=ConversationStep.TIME_PREFERENCE,
            )

        chosen = _choose_offered_slot(turn.message, offered, turn.confirmed)
        if chosen is not None:
            return FlowResult(
                response=messages.slot_selected(chosen),
                next_step=ConversationStep.CONFIRMATION,
                context_updates={"selected_slots": [chosen]},
            )

        updates = self._parse_preference(turn.message)
        if updates:
            return await self._time_preference(view, turn)

        return FlowResult(
            response=messages.slot_offering(offered),
            next_step=ConversationStep.SLOT_OFFERING,
        )

    async def _confirmation(self, view: Session, turn: FlowInput) -> FlowResult:
        selected = view.context.selected_slots
        declined = not turn.confirmed and is_negative(turn.message)
        agreed = turn.confirmed or (
            not declined and (is_affirmative(turn.message) or contains_any(turn.message, ["book"]))
        )

        if agreed:
            if self._rescheduling(view):
                return await self.reschedule.confirm(view, selected[0] if selected else None)
            return await self._create_booking(view)

        if selected and declined:
            return FlowResult(
                response=messages.time_preference_prompt(),
                next_step=ConversationStep.TIME_PREFERENCE,
                context_updates={"selected_slots": []},
            )
        if selected:
            return FlowResult(
                response=messages.confirmation_reminder(selected[0]),
                next_step=ConversationStep.CONFIRMATION,
            )
        return FlowResult(response=messages.MISSING_INFORMATION)

    async def _validate_code_step(self, view: Session, turn: FlowInput) -> FlowResult:
        code = turn.booking_code or view.context.booking_code
        if code is None:
            prompt = messages.CANCEL_PROMPT if view.intent == Intent.CANCEL else messages.RESCHEDULE_PROMPT
            return FlowResult(response=prompt, next_step=ConversationStep.VALIDATE_CODE)
        return self._validate_code(code, view.intent)

    async def _cancellation(self, view: Session, turn: FlowInput) -> FlowResult:
        code = view.context.booking_code
        if code is None:
            return FlowResult(response=messages.INVALID_CODE, next_step=ConversationStep.GREET)

        if turn.confirmed or is_affirmative(turn.message):
            booking = await self.bookings.cancel_booking(code)
            if booking is None:
                return FlowResult(response=messages.INVALID_CODE, next_step=ConversationStep.GREET)
            enabled = self.bookings.integrations_enabled
            return FlowResult(
                response=messages.booking_cancelled(code, enabled),
                next_step=ConversationStep.COMPLETE,
                booking_code=code,
                integration_status=describe_outcomes(latest_outcomes(booking, CANCEL_STEPS), enabled),
            )
        if is_negative(turn.message):
            return FlowResult(response=messages.booking_kept(code), next_step=ConversationStep.COMPLETE)
        return FlowResult(
            response=messages.cancellation_prompt(code),
            next_step=ConversationStep.CANCELLATION,
        )

    async def _availability_list(self, view: Session, turn: FlowInput) -> FlowResult:
        listed = view.context.selected_slots
        chosen = _choose_listed_slot(turn.message, listed)
        if chosen is not None:
            if view.context.topic is None:
                return FlowResult(
                    response=messages.topic_menu(),
                    next_step=ConversationStep.TOPIC_SELECTION,
                    context_updates={"selected_slots": [chosen]},
                )
            return FlowResult(
                response=messages.slot_selected(chosen),
                next_step=ConversationStep.CONFIRMATION,
                context_updates={"selected_slots": [chosen]},
            )

        updates = self._parse_preference(turn.message)
        if updates:
            context = view.context.merged(updates)
            available = await self.allocator.list_available(context.date_preference, context.time_preference)
            if not available:
                return FlowResult(
                    response=messages.waitlist(),
                    next_step=ConversationStep.COMPLETE,
                    context_updates=updates,
                )
            relisted = available[: self.availability_list_size]
            updates["selected_slots"] = relisted
            return FlowResult(
                response=messages.availability_list(relisted),
                next_step=ConversationStep.AVAILABILITY_LIST,
                context_updates=updates,
                slots=relisted,
            )

        if listed:
            return FlowResult(
                response=messages.availability_list(listed),
                next_step=ConversationStep.AVAILABILITY_LIST,
            )
        return FlowResult(response=messages.time_preference_prompt(), next_step=ConversationStep.TIME_PREFERENCE)

    # -- Shared actions ----------------------------------------------------

    def _validate_code(self, code: str, intent: Optional[Intent]) -> FlowResult:
        booking = self.bookings.get_by_code(code)
        if booking is None or booking.status == BookingStatus.CANCELLED:
            logger.info("Booking code %s not found", code)
            return FlowResult(
                response=messages.INVALID_CODE,
                next_step=ConversationStep.GREET,
                context_updates={"booking_code": None, "booking_id": None, "rescheduling": False},
                handled=True,
            )

        found = {
            "booking_code": booking.booking_code,
            "booking_id": booking.id,
            "rescheduling": intent == Intent.RESCHEDULE,
        }
        if intent == Intent.RESCHEDULE:
            return FlowResult(
                response=messages.booking_found(
                    booking.topic, booking.selected_slot, "When would you like to reschedule?"
                ),
                next_step=ConversationStep.TIME_PREFERENCE,
                context_updates=dict(
                    found,
                    topic=booking.topic,
                    date_preference=None,
                    time_preference=None,
                    selected_slots=[],
                ),
                handled=True,
            )
        if intent == Intent.CANCEL:
            return FlowResult(
                response=messages.booking_found(booking.topic, booking.selected_slot, "Confirm cancellation?"),
                next_step=ConversationStep.CANCELLATION,
                context_updates=found,
                handled=True,
            )
        return FlowResult(
            response=messages.CODE_ACTION_CHOICE,
            next_step=ConversationStep.VALIDATE_CODE,
            context_updates=found,
            handled=True,
        )

    async def _create_booking(self, view: Session) -> FlowResult:
        context = view.context
        if context.topic is None or not context.selected_slots:
            return FlowResult(response=messages.MISSING_INFORMATION)

        slot = context.selected_slots[0]
        try:
            booking = await self.bookings.create_booking(
                context.topic, slot, context.date_preference, context.time_preference
            )
        except SlotUnavailableError:
            logger.info("Slot %s was taken before confirmation", slot.id)
            return FlowResult(
                response=messages.SLOT_TAKEN,
                next_step=ConversationStep.TIME_PREFERENCE,
                context_updates={"selected_slots": []},
            )

        enabled = self.bookings.integrations_enabled
        status_lines = describe_outcomes(latest_outcomes(booking, CREATE_STEPS), enabled)
        display_lines = status_lines if enabled else [messages.MOCK_INTEGRATIONS]
        return FlowResult(
            response=messages.booking_voice_confirmation(booking.booking_code, booking.selected_slot),
            display_message=messages.booking_display_confirmation(
                booking.booking_code, booking.secure_url or "", display_lines
            ),
            next_step=ConversationStep.COMPLETE,
            context_updates={"booking_code": booking.booking_code, "booking_id": booking.id},
            booking_code=booking.booking_code,
            integration_status=status_lines,
        )

    def _parse_preference(self, message: str) -> dict[str, Any]:
        parsed = parse_date_time(message, self.allocator.today())
        if parsed is None:
            return {}
        updates: dict[str, Any] = {}
        if parsed.date is not None:
            updates["date_preference"] = parsed.date.isoformat()
        if parsed.time is not None:
            updates["time_preference"] = parsed.time
        return updates

    @staticmethod
    def _rescheduling(view: Session) -> bool:
        return view.context.rescheduling and view.context.booking_id is not None


def _resolve_topic(value: Any) -> Optional[Topic]:
    if value is None:
        return None
    if isinstance(value, Topic):
        return value
    try:
        return Topic(str(value))
    except ValueError:
        return match_topic(str(value))


def _mentioned_topic(message: str) -> Optional[Topic]:
    return match_topic(message) or topic_from_menu_choice(message)


def _normalize_date_preference(value: Any, today: date) -> Optional[str]:
    """Accept an ISO date or free text like "tomorrow"; return an ISO date."""
    if not value:
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        pass
    parsed = parse_date_time(text, today)
    if parsed is None or parsed.date is None:
        return None
    return parsed.date.isoformat()


def _choose_offered_slot(message: str, offered: list[Slot], confirmed: bool) -> Optional[Slot]:
    if not confirmed and is_negative(message):
        return None
    lower = message.lower()
    if _FIRST.search(lower):
        return offered[0]
    if _SECOND.search(lower):
        return offered[1] if len(offered) > 1 else offered[0]
    if confirmed or contains_any(lower, ["book", "confirm"]):
        return offered[0]
    return None


def _choose_listed_slot(message: str, listed: list[Slot]) -> Optional[Slot]:
    if not listed:
        return None
    lower = message.lower()
    index = None
    match = _LIST_CHOICE.search(lower)
    if match:
        index = int(match.group(1)) - 1
    else:
        for word, position in _ORDINALS.items():
            if re.search(rf"\b{word}\b", lower):
                index = position
                break
    if index is None or index >= len(listed):
        return None
    return listed[index]
