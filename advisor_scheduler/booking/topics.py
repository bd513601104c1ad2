"""Consultation topic catalog: keywords, descriptions and educational links."""

import logging
import re
from typing import Optional

from advisor_scheduler.schemas.booking_schema import Topic

logger = logging.getLogger(__name__)

TOPIC_KEYWORDS: dict[Topic, list[str]] = {
    Topic.KYC_ONBOARDING: [
        "kyc", "onboarding", "verification", "account setup", "documentation",
    ],
    Topic.SIP_MANDATES: [
        "sip", "mandate", "systematic", "investment plan", "auto-debit",
    ],
    Topic.STATEMENTS_TAX_DOCS: [
        "statement", "tax", "document", "form 16", "consolidated statement",
    ],
    Topic.WITHDRAWALS_TIMELINES: [
        "withdrawal", "redeem", "timeline", "processing time", "fund transfer",
    ],
    Topic.ACCOUNT_CHANGES_NOMINEE: [
        "nominee", "account change", "update", "modification", "beneficiary",
    ],
}

TOPIC_DESCRIPTIONS: dict[Topic, str] = {
    Topic.KYC_ONBOARDING: "Account opening, KYC verification and onboarding paperwork.",
    Topic.SIP_MANDATES: "Setting up or changing SIPs and auto-debit mandates.",
    Topic.STATEMENTS_TAX_DOCS: "Account statements, capital gains and tax documents.",
    Topic.WITHDRAWALS_TIMELINES: "Redemptions, withdrawals and fund transfer timelines.",
    Topic.ACCOUNT_CHANGES_NOMINEE: "Nominee, bank account and profile changes.",
}

EDUCATIONAL_LINKS: dict[Topic, list[str]] = {
    Topic.KYC_ONBOARDING: [
        "https://groww.in/kyc-process",
        "https://groww.in/account-setup-guide",
    ],
    Topic.SIP_MANDATES: [
        "https://groww.in/sip-guide",
        "https://groww.in/mandate-setup",
    ],
    Topic.STATEMENTS_TAX_DOCS: [
        "https://groww.in/tax-documents",
        "https://groww.in/statement-guide",
    ],
    Topic.WITHDRAWALS_TIMELINES: [
        "https://groww.in/withdrawal-process",
        "https://groww.in/processing-times",
    ],
    Topic.ACCOUNT_CHANGES_NOMINEE: [
        "https://groww.in/nominee-update",
        "https://groww.in/account-changes",
    ],
}

# Phrasings that name a topic without using any of its keywords.
TOPIC_ALIASES: dict[str, Topic] = {
    "know your customer": Topic.KYC_ONBOARDING,
    "open an account": Topic.KYC_ONBOARDING,
    "systematic investment": Topic.SIP_MANDATES,
    "capital gains": Topic.STATEMENTS_TAX_DOCS,
    "itr": Topic.STATEMENTS_TAX_DOCS,
    "payout": Topic.WITHDRAWALS_TIMELINES,
    "withdraw": Topic.WITHDRAWALS_TIMELINES,
    "change my bank": Topic.ACCOUNT_CHANGES_NOMINEE,
    "nomination": Topic.ACCOUNT_CHANGES_NOMINEE,
}

_MENU_CHOICE_RE = re.compile(r"^\s*(?:option\s+)?([1-5])\s*\.?\s*$", re.IGNORECASE)


def match_topic(text: str) -> Optional[Topic]:
    """Detect a topic mentioned anywhere in ``text``.

    Topics are tried in enumeration order and the first match wins, so a
    message mentioning both "statement" and "nominee" resolves to
    Statements/Tax Docs.
    """
    if not text:
        return None
    lower = text.lower()
    for topic in Topic:
        if topic.value.lower() in lower:
            return topic
        if any(keyword in lower for keyword in TOPIC_KEYWORDS[topic]):
            return topic
    for alias, topic in TOPIC_ALIASES.items():
        if re.search(rf"\b{re.escape(alias)}\b", lower):
            return topic
    return None


def topic_from_menu_choice(text: str) -> Optional[Topic]:
    """Resolve a bare menu number ("2", "option 3") to a topic."""
    if not text:
        return None
    match = _MENU_CHOICE_RE.match(text)
    if not match:
        return None
    return list(Topic)[int(match.group(1)) - 1]


def educational_links(topic: Optional[Topic] = None) -> list[str]:
    """Links for one topic, or every topic's links when ``topic`` is None."""
    if topic is not None:
        return list(EDUCATIONAL_LINKS[topic])
    return [link for links in EDUCATIONAL_LINKS.values() for link in links]
