"""Slot, booking and integration audit data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Topic(str, Enum):
    """Consultation topics. Declaration order breaks keyword-match ties."""

    KYC_ONBOARDING = "KYC/Onboarding"
    SIP_MANDATES = "SIP/Mandates"
    STATEMENTS_TAX_DOCS = "Statements/Tax Docs"
    WITHDRAWALS_TIMELINES = "Withdrawals & Timelines"
    ACCOUNT_CHANGES_NOMINEE = "Account Changes/Nominee"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    HOLD = "hold"


class BookingStatus(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    WAITLISTED = "waitlisted"


class Slot(BaseModel):
    """A one-hour bookable interval in the business timezone."""

    id: str
    start_time: datetime
    end_time: datetime
    status: SlotStatus = SlotStatus.AVAILABLE
    booking_code: Optional[str] = None


class IntegrationOutcome(BaseModel):
    """Result of one best-effort external side effect."""

    step: str
    succeeded: bool
    reference: Optional[str] = None
    error: Optional[str] = None
    at: datetime = Field(default_factory=_utcnow)


class Booking(BaseModel):
    """A persisted reservation linking a topic, a slot and a user-facing code."""

    id: str
    booking_code: str
    topic: Topic
    selected_slot: Slot
    status: BookingStatus = BookingStatus.TENTATIVE
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    calendar_hold_id: Optional[str] = None
    notes_doc_id: Optional[str] = None
    email_draft_id: Optional[str] = None
    secure_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    timezone: str = "Asia/Kolkata"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    integration_log: list[IntegrationOutcome] = Field(default_factory=list)
