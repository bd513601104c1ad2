"""Tests for best-effort integration steps."""

import asyncio

import pytest

from advisor_scheduler.integrations.saga import IntegrationSaga, describe_outcomes, reference_for
from advisor_scheduler.schemas.booking_schema import IntegrationOutcome


async def _returns(value):
    return value


async def _fails():
    raise RuntimeError("calendar API returned 503")


async def _hangs():
    await asyncio.sleep(5)
    return "never"


class TestIntegrationSaga:
    @pytest.mark.asyncio
    async def test_all_steps_succeed(self):
        outcomes = await IntegrationSaga().run([
            ("create_hold", lambda: _returns("hold-1")),
            ("append_record", lambda: _returns("row-1")),
        ])
        assert [o.step for o in outcomes] == ["create_hold", "append_record"]
        assert all(o.succeeded for o in outcomes)
        assert outcomes[0].reference == "hold-1"

    @pytest.mark.asyncio
    async def test_failure_recorded_and_later_steps_run(self):
        outcomes = await IntegrationSaga().run([
            ("create_hold", _fails),
            ("append_record", lambda: _returns("row-1")),
            ("draft_notification_email", lambda: _returns("draft-1")),
        ], booking_code="NL-A742")
        assert outcomes[0].succeeded is False
        assert "503" in outcomes[0].error
        assert outcomes[1].succeeded and outcomes[2].succeeded

    @pytest.mark.asyncio
    async def test_timeout_recorded(self):
        outcomes = await IntegrationSaga(timeout_seconds=0.01).run([
            ("create_hold", _hangs),
            ("append_record", lambda: _returns("row-1")),
        ])
        assert outcomes[0].succeeded is False
        assert "timed out" in outcomes[0].error
        assert outcomes[1].succeeded is True

    @pytest.mark.asyncio
    async def test_no_steps(self):
        assert await IntegrationSaga().run([]) == []


class TestOutcomeHelpers:
    def test_reference_for_successful_step(self):
        outcomes = [
            IntegrationOutcome(step="create_hold", succeeded=True, reference="hold-1"),
            IntegrationOutcome(step="append_record", succeeded=False, error="boom"),
        ]
        assert reference_for(outcomes, "create_hold") == "hold-1"
        assert reference_for(outcomes, "append_record") is None
        assert reference_for(outcomes, "delete_hold") is None

    def test_describe_outcomes(self):
        outcomes = [
            IntegrationOutcome(step="create_hold", succeeded=True, reference="hold-1"),
            IntegrationOutcome(step="append_record", succeeded=False, error="boom"),
        ]
        assert describe_outcomes(outcomes) == [
            "[Calendar hold: done]",
            "[Bookings sheet: failed - boom]",
        ]

    def test_describe_outcomes_disabled(self):
        outcomes = [IntegrationOutcome(step="create_hold", succeeded=True)]
        assert describe_outcomes(outcomes, enabled=False) == []
