"""Tests for the consultation topic catalog."""

from advisor_scheduler.booking.topics import (
    EDUCATIONAL_LINKS,
    educational_links,
    match_topic,
    topic_from_menu_choice,
)
from advisor_scheduler.schemas.booking_schema import Topic


class TestMatchTopic:
    def test_keyword(self):
        assert match_topic("I have questions about my SIP") == Topic.SIP_MANDATES

    def test_full_name(self):
        assert match_topic("KYC/Onboarding please") == Topic.KYC_ONBOARDING

    def test_nominee(self):
        assert match_topic("I need to update my nominee") == Topic.ACCOUNT_CHANGES_NOMINEE

    def test_enum_order_breaks_ties(self):
        assert match_topic("my statement and my nominee") == Topic.STATEMENTS_TAX_DOCS

    def test_alias(self):
        assert match_topic("how long does a payout take") == Topic.WITHDRAWALS_TIMELINES

    def test_no_topic(self):
        assert match_topic("hello there") is None

    def test_empty(self):
        assert match_topic("") is None


class TestMenuChoice:
    def test_number(self):
        assert topic_from_menu_choice("2") == Topic.SIP_MANDATES

    def test_option_prefix(self):
        assert topic_from_menu_choice("option 5") == Topic.ACCOUNT_CHANGES_NOMINEE

    def test_trailing_period(self):
        assert topic_from_menu_choice(" 3. ") == Topic.STATEMENTS_TAX_DOCS

    def test_out_of_range(self):
        assert topic_from_menu_choice("6") is None

    def test_number_inside_sentence_ignored(self):
        assert topic_from_menu_choice("I have 2 questions") is None


class TestEducationalLinks:
    def test_topic_links(self):
        assert educational_links(Topic.SIP_MANDATES) == EDUCATIONAL_LINKS[Topic.SIP_MANDATES]

    def test_all_links(self):
        links = educational_links()
        assert len(links) == sum(len(v) for v in EDUCATIONAL_LINKS.values())

    def test_returns_copy(self):
        links = educational_links(Topic.KYC_ONBOARDING)
        links.append("https://example.com")
        assert "https://example.com" not in EDUCATIONAL_LINKS[Topic.KYC_ONBOARDING]
