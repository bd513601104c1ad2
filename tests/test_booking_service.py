"""Tests for the booking lifecycle: create, reschedule, cancel."""

from datetime import timedelta

import pytest

from advisor_scheduler.booking.codes import validate_booking_code
from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.booking.service import (
    CREATE_STEPS,
    BookingService,
    SlotUnavailableError,
    latest_outcomes,
)
from advisor_scheduler.booking.slot_allocator import SlotAllocator
from advisor_scheduler.integrations.ports import InMemoryBookingSystem
from advisor_scheduler.schemas.booking_schema import BookingStatus, SlotStatus, Topic
from tests.conftest import fixed_clock, make_slot


class FlakyCalendar(InMemoryBookingSystem):
    """Calendar holds always fail; sheet and email still work."""

    async def create_hold(self, booking):
        raise RuntimeError("calendar quota exceeded")


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_creates_tentative_booking(self, booking_service, allocator, repository):
        slot = (await allocator.list_available())[0]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot, "2026-10-20", "morning")

        assert booking.status == BookingStatus.TENTATIVE
        assert validate_booking_code(booking.booking_code)
        assert booking.timezone == "Asia/Kolkata"
        assert booking.preferred_time == "morning"
        assert repository.get_by_code(booking.booking_code) is not None
        assert allocator.get(slot.id).status == SlotStatus.BOOKED
        assert allocator.get(slot.id).booking_code == booking.booking_code
        assert booking_service.get_by_id(booking.id).booking_code == booking.booking_code
        assert booking_service.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_secure_link_and_expiry(self, integrated_service, allocator):
        slot = (await allocator.list_available())[0]
        booking = await integrated_service.create_booking(Topic.KYC_ONBOARDING, slot)
        assert booking.secure_url == f"https://advisor.example/booking/{booking.booking_code}"
        assert booking.expires_at - booking.created_at == timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_taken_slot_refused(self, booking_service, allocator, repository):
        slot = (await allocator.list_available())[0]
        await booking_service.create_booking(Topic.SIP_MANDATES, slot)

        with pytest.raises(SlotUnavailableError):
            await booking_service.create_booking(Topic.KYC_ONBOARDING, slot)
        assert len(repository.all()) == 1

    @pytest.mark.asyncio
    async def test_untracked_slot_is_booked(self, booking_service, allocator):
        slot = make_slot(day=22, hour=11)
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot)
        assert allocator.get(slot.id).booking_code == booking.booking_code

    @pytest.mark.asyncio
    async def test_disabled_integrations_leave_no_trace(self, booking_service, allocator):
        slot = (await allocator.list_available())[0]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot)
        assert booking_service.integrations_enabled is False
        assert booking.integration_log == []
        assert booking.calendar_hold_id is None

    @pytest.mark.asyncio
    async def test_integrations_record_references(self, integrated_service, allocator, booking_system):
        slot = (await allocator.list_available())[0]
        booking = await integrated_service.create_booking(Topic.SIP_MANDATES, slot)

        assert booking.calendar_hold_id in booking_system.holds
        assert booking.notes_doc_id == "row-1"
        assert booking.email_draft_id in booking_system.drafts
        assert [o.step for o in booking.integration_log] == list(CREATE_STEPS)
        assert all(o.succeeded for o in booking.integration_log)

    @pytest.mark.asyncio
    async def test_integration_failure_keeps_booking(self, allocator, repository):
        service = BookingService(allocator, repository, booking_system=FlakyCalendar())
        slot = (await allocator.list_available())[0]
        booking = await service.create_booking(Topic.SIP_MANDATES, slot)

        stored = repository.get_by_code(booking.booking_code)
        assert stored is not None
        assert stored.calendar_hold_id is None
        hold, record, email = stored.integration_log
        assert hold.succeeded is False and "quota" in hold.error
        assert record.succeeded and email.succeeded


class TestRescheduleBooking:
    @pytest.mark.asyncio
    async def test_moves_booking_and_keeps_code(self, booking_service, allocator):
        old, new = (await allocator.list_available())[:2]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, old)

        moved = await booking_service.reschedule_booking(booking.booking_code, new)
        assert moved.booking_code == booking.booking_code
        assert moved.selected_slot.id == new.id
        assert moved.status == BookingStatus.TENTATIVE
        assert allocator.get(old.id).status == SlotStatus.AVAILABLE
        assert allocator.get(new.id).booking_code == booking.booking_code

    @pytest.mark.asyncio
    async def test_taken_target_leaves_original(self, booking_service, allocator):
        mine, theirs = (await allocator.list_available())[:2]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, mine)
        await booking_service.create_booking(Topic.KYC_ONBOARDING, theirs)

        with pytest.raises(SlotUnavailableError):
            await booking_service.reschedule_booking(booking.booking_code, theirs)
        assert allocator.get(mine.id).booking_code == booking.booking_code
        assert booking_service.get_by_code(booking.booking_code).selected_slot.id == mine.id

    @pytest.mark.asyncio
    async def test_same_slot(self, booking_service, allocator):
        slot = (await allocator.list_available())[0]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot)
        moved = await booking_service.reschedule_booking(booking.booking_code, slot)
        assert moved.selected_slot.id == slot.id
        assert allocator.get(slot.id).status == SlotStatus.BOOKED

    @pytest.mark.asyncio
    async def test_unknown_code(self, booking_service):
        assert await booking_service.reschedule_booking("NL-Z999", make_slot()) is None

    @pytest.mark.asyncio
    async def test_updates_calendar_hold(self, integrated_service, allocator, booking_system):
        old, new = (await allocator.list_available())[:2]
        booking = await integrated_service.create_booking(Topic.SIP_MANDATES, old)
        moved = await integrated_service.reschedule_booking(booking.booking_code, new)

        assert moved.calendar_hold_id == booking.calendar_hold_id
        assert booking_system.holds[moved.calendar_hold_id]["start"] == new.start_time.isoformat()
        assert [o.step for o in latest_outcomes(moved, ("update_hold", "update_record"))] == [
            "update_hold", "update_record",
        ]


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_cancel_releases_slot(self, booking_service, allocator):
        slot = (await allocator.list_available())[0]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot)

        cancelled = await booking_service.cancel_booking(booking.booking_code)
        assert cancelled.status == BookingStatus.CANCELLED
        assert allocator.get(slot.id).status == SlotStatus.AVAILABLE
        assert booking_service.get_by_code(booking.booking_code).status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, booking_service, allocator):
        slot = (await allocator.list_available())[0]
        booking = await booking_service.create_booking(Topic.SIP_MANDATES, slot)
        await booking_service.cancel_booking(booking.booking_code)

        again = await booking_service.create_booking(Topic.KYC_ONBOARDING, slot)
        assert allocator.get(slot.id).booking_code == again.booking_code

    @pytest.mark.asyncio
    async def test_unknown_code(self, booking_service):
        assert await booking_service.cancel_booking("NL-Z999") is None

    @pytest.mark.asyncio
    async def test_removes_calendar_hold(self, integrated_service, allocator, booking_system):
        slot = (await allocator.list_available())[0]
        booking = await integrated_service.create_booking(Topic.SIP_MANDATES, slot)
        await integrated_service.cancel_booking(booking.booking_code)

        assert booking.calendar_hold_id not in booking_system.holds
        assert booking_system.records["row-1"]["status"] == "cancelled"


class TestRestart:
    def _restarted(self, path):
        allocator = SlotAllocator(timezone="Asia/Kolkata", clock=fixed_clock)
        return allocator, BookingService(allocator, BookingRepository(path))

    @pytest.mark.asyncio
    async def test_stored_bookings_keep_their_slots(self, tmp_path):
        path = tmp_path / "bookings.json"
        allocator, service = self._restarted(path)
        slot = (await allocator.list_available())[0]
        booking = await service.create_booking(Topic.SIP_MANDATES, slot)

        allocator, service = self._restarted(path)
        assert allocator.get(slot.id).status == SlotStatus.BOOKED
        assert allocator.get(slot.id).booking_code == booking.booking_code
        assert slot.id not in [s.id for s in await allocator.list_available()]
        with pytest.raises(SlotUnavailableError):
            await service.create_booking(Topic.KYC_ONBOARDING, slot)
        assert len(service.repository.all()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_bookings_free_their_slots(self, tmp_path):
        path = tmp_path / "bookings.json"
        allocator, service = self._restarted(path)
        slot = (await allocator.list_available())[0]
        booking = await service.create_booking(Topic.SIP_MANDATES, slot)
        await service.cancel_booking(booking.booking_code)

        allocator, service = self._restarted(path)
        assert allocator.get(slot.id) is None
        assert slot.id in [s.id for s in await allocator.list_available()]
