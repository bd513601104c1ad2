"""
Canned assistant messages.

Every sentence the flow controller or orchestrator can say lives here so
the voice and chat surfaces stay consistent. Helpers build the numbered
lists that appear in several steps.
"""

from advisor_scheduler.date_parser import format_slot_time
from advisor_scheduler.schemas.booking_schema import Slot, Topic

GREET = "Welcome! I'm here to help you schedule an advisor consultation."
DISCLAIMER = (
    "Important: This service provides general information only and does not "
    "constitute investment advice. Please consult with a qualified financial "
    "advisor for personalized investment guidance."
)
TOPIC_SELECTION = "What topic would you like to discuss with the advisor?"
TIME_PREFERENCE = "When would you prefer to have this consultation?"
TIME_PREFERENCE_EXAMPLE = 'For example: "tomorrow afternoon" or "Dec 30, 2025 at 2pm"'
SLOT_OFFERING = "Here are available slots for you:"
SLOT_SELECTION_HINT = 'Please select a slot by number (1 or 2) or say "book slot 1" / "book slot 2".'
BOOKING_SUCCESS = "Your booking has been confirmed!"
BOOKING_CODE = "Your booking code is:"
SECURE_URL = "Please use this secure link to provide your contact details:"
RESCHEDULE_PROMPT = "Please provide your booking code to reschedule:"
CANCEL_PROMPT = "Please provide your booking code to cancel:"
INVALID_CODE = "I couldn't find a booking with that code. Please check and try again."
NO_SLOTS = (
    "I'm sorry, there are no available slots matching your preference. "
    "Would you like to be added to the waitlist?"
)
WAITLIST_CONFIRMED = (
    "You've been added to the waitlist. We'll contact you when slots become available."
)
SLOT_TAKEN = (
    "Sorry, that slot is no longer available. "
    "Please tell me another date or time that works for you."
)
MISSING_INFORMATION = "Missing information. Please start over."
INVESTMENT_ADVICE_REFUSAL = (
    "I cannot provide investment advice. For personalized investment guidance, "
    "please consult with a qualified financial advisor. "
    "Here are some educational resources: [Educational Links]"
)
PII_DETECTED = (
    "For security reasons, please don't share personal information like phone "
    "numbers, email addresses, or account numbers during this conversation. "
    "We'll collect contact details through a secure link after booking."
)
PII_REDACTED_PLACEHOLDER = "[PII detected - message redacted]"
NLU_FAILURE = (
    "I apologize, but I encountered an error: {error}. "
    "Please check the backend logs for details."
)
REPHRASE = "Could you please rephrase? I want to make sure I understand correctly."
ANYTHING_ELSE = (
    "Is there anything else I can help you with? "
    "You can book, reschedule, or cancel a consultation."
)
MOCK_INTEGRATIONS = "[Mock mode: Calendar, Sheet, and Email operations are disabled]"
SLOT_NOT_FOUND = "Sorry, that slot is no longer available. Please select another."
PREPARE_NEEDS_TOPIC = "Please first select a topic to see what you need to prepare."
CODE_ACTION_CHOICE = "Would you like to reschedule or cancel this booking?"

FALLBACK_TIME_PREFERENCE = TIME_PREFERENCE + " Please provide your preferred date and time."
FALLBACK_SLOT_OFFERING = "Please select one of the available slots above."
FALLBACK_CONFIRMATION = "Please confirm your selected slot to proceed with booking."
FALLBACK_VALIDATE_CODE = "Please share your booking code, for example NL-A742."


def topic_menu() -> str:
    """Numbered topic list in enumeration order."""
    lines = [f"{i}. {topic.value}" for i, topic in enumerate(Topic, start=1)]
    return TOPIC_SELECTION + "\n" + "\n".join(lines)


def topic_confirmation(topic: Topic, nudge: bool = False) -> str:
    text = f"You've selected {topic.value}. Is that correct?"
    if nudge:
        text += " Please reply with 'yes' to continue."
    return text


def numbered_slots(slots: list[Slot], tz_label: str = "IST") -> str:
    return "\n".join(
        f"{i}. {format_slot_time(slot.start_time)} {tz_label}"
        for i, slot in enumerate(slots, start=1)
    )


def slot_offering(slots: list[Slot]) -> str:
    return f"{SLOT_OFFERING}\n{numbered_slots(slots)}\n\n{SLOT_SELECTION_HINT}"


def availability_list(slots: list[Slot]) -> str:
    return f"Here are available slots:\n{numbered_slots(slots)}"


def waitlist() -> str:
    return f"{NO_SLOTS} {WAITLIST_CONFIRMED}"


def time_preference_prompt() -> str:
    return f"{TIME_PREFERENCE} {TIME_PREFERENCE_EXAMPLE}"


def topic_accepted(topic: Topic) -> str:
    return f"Great! You've selected {topic.value}. {TIME_PREFERENCE}"


def slot_selected(slot: Slot) -> str:
    return (
        f"You've selected: {format_slot_time(slot.start_time)} IST. "
        'Please confirm by saying "yes" or "confirm" to book this slot.'
    )


def confirmation_reminder(slot: Slot) -> str:
    return (
        f"Please confirm your booking for {format_slot_time(slot.start_time)} IST. "
        'Reply with "yes" or "confirm" to proceed.'
    )


def booking_found(topic: Topic, slot: Slot, follow_up: str) -> str:
    return f"Found your booking for {topic.value} on {format_slot_time(slot.start_time)}. {follow_up}"


def cancellation_prompt(booking_code: str) -> str:
    return (
        f"Please confirm cancellation of booking {booking_code}. "
        'Reply with "yes" or "confirm" to proceed.'
    )


def booking_cancelled(booking_code: str, integrations_enabled: bool) -> str:
    note = "[Calendar hold removed]" if integrations_enabled else "[Mock calendar hold removed]"
    return f"Your booking {booking_code} has been cancelled. {note}"


def booking_kept(booking_code: str) -> str:
    return f"No problem, booking {booking_code} is unchanged. {ANYTHING_ELSE}"


def booking_rescheduled(booking_code: str, slot: Slot, integrations_enabled: bool) -> str:
    note = "[Calendar hold updated]" if integrations_enabled else "[Mock calendar hold updated]"
    return (
        f"Your booking {booking_code} has been rescheduled to "
        f"{format_slot_time(slot.start_time)} IST. {note}"
    )


def what_to_prepare(topic: Topic, description: str, links: list[str]) -> str:
    lines = "\n".join(f"- {link}" for link in links)
    return f"{topic.value} covers: {description}\nHere's what you might need:\n{lines}"


def booking_voice_confirmation(booking_code: str, slot: Slot) -> str:
    """Terse confirmation suitable for text-to-speech."""
    return (
        f"Booking confirmed. Your booking code is {booking_code}. "
        f"Scheduled for {format_slot_time(slot.start_time)}."
    )


def booking_display_confirmation(
    booking_code: str, secure_url: str, integration_lines: list[str]
) -> str:
    """Full confirmation for chat display, including the secure contact link."""
    text = f"{BOOKING_SUCCESS}\n{BOOKING_CODE} {booking_code}\n{SECURE_URL} {secure_url}"
    if integration_lines:
        text += "\n\n" + "\n".join(integration_lines)
    return text
