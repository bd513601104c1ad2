"""
Input guardrails that gate every message before it reaches the flow.

Two independent layers, each checking a different concern:
1. PIIGuardrail: phone numbers, emails, account numbers, PAN, Aadhaar
2. InvestmentAdviceGuardrail: requests for buy/sell or product recommendations

These are composed into a GuardrailPipeline. PII is checked first; a
message that trips it is never stored verbatim.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from advisor_scheduler.booking.topics import educational_links
from advisor_scheduler.prompts import messages
from advisor_scheduler.schemas.booking_schema import Topic

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    detected_types: list[str] = field(default_factory=list)
    educational_links: list[str] = field(default_factory=list)


class PIIGuardrail:
    """Detects personal identifiers that must not enter the conversation log."""

    PATTERNS: dict[str, re.Pattern] = {
        "phone": re.compile(r"\b(?:\+91|0)?[6-9]\d{9}\b"),
        "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "account_number": re.compile(r"\b\d{10,}\b"),
        "pan": re.compile(r"\b[A-Z]{5}\d{4}[A-Z]\b"),
        "aadhaar": re.compile(r"\b\d{4}\s?\d{4}\s?\d{4}\b"),
    }

    def check(self, text: str) -> GuardrailResult:
        detected = [name for name, pattern in self.PATTERNS.items() if pattern.search(text)]
        if not detected:
            return GuardrailResult(passed=True)
        logger.info("PII detected in user message: %s", ", ".join(detected))
        return GuardrailResult(
            passed=False,
            violation_type="pii",
            message=messages.PII_DETECTED,
            detected_types=detected,
        )


class InvestmentAdviceGuardrail:
    """Refuses requests for personalised investment advice."""

    ADVICE_PHRASES = [
        "should i invest", "is it good to invest", "recommend",
        "best investment", "which stock", "which mutual fund",
        "buy or sell", "investment advice", "financial advice",
        "what should i do", "tell me what to invest",
    ]

    def check(self, text: str, topic: Optional[Topic] = None) -> GuardrailResult:
        lower = text.lower()
        for phrase in self.ADVICE_PHRASES:
            if phrase in lower:
                logger.info("Investment advice request detected: '%s'", phrase)
                return GuardrailResult(
                    passed=False,
                    violation_type="investment_advice",
                    message=messages.INVESTMENT_ADVICE_REFUSAL,
                    educational_links=educational_links(topic),
                )
        return GuardrailResult(passed=True)


class GuardrailPipeline:
    """Runs PII detection, then investment-advice detection."""

    def __init__(self) -> None:
        self.pii = PIIGuardrail()
        self.investment_advice = InvestmentAdviceGuardrail()

    def check_user_input(self, text: str, topic: Optional[Topic] = None) -> Optional[GuardrailResult]:
        """Return the first failed check, or None when the message may proceed."""
        pii = self.pii.check(text)
        if not pii.passed:
            return pii
        advice = self.investment_advice.check(text, topic)
        if not advice.passed:
            return advice
        return None
