"""Tests for the booking repository and its JSON persistence."""

import json
import uuid

import pytest

from advisor_scheduler.booking.repository import BookingRepository
from advisor_scheduler.schemas.booking_schema import Booking, BookingStatus, Topic
from tests.conftest import make_slot


def make_booking(code: str = "NL-A742", topic: Topic = Topic.SIP_MANDATES, **kwargs) -> Booking:
    """Helper to create a tentative booking for the default slot."""
    return Booking(
        id=kwargs.pop("id", str(uuid.uuid4())),
        booking_code=code,
        topic=topic,
        selected_slot=kwargs.pop("selected_slot", make_slot()),
        **kwargs,
    )


class TestInMemoryRepository:
    def test_add_and_get(self, repository):
        booking = make_booking()
        repository.add(booking)
        assert repository.get(booking.id).booking_code == "NL-A742"

    def test_get_by_code(self, repository):
        booking = repository.add(make_booking())
        assert repository.get_by_code("NL-A742").id == booking.id

    def test_get_by_code_is_case_insensitive(self, repository):
        repository.add(make_booking())
        assert repository.get_by_code("nl-a742") is not None

    def test_unknown_code(self, repository):
        assert repository.get_by_code("NL-Z999") is None

    def test_returns_copies(self, repository):
        booking = repository.add(make_booking())
        fetched = repository.get(booking.id)
        fetched.status = BookingStatus.CANCELLED
        assert repository.get(booking.id).status == BookingStatus.TENTATIVE

    def test_update(self, repository):
        booking = repository.add(make_booking())
        booking.status = BookingStatus.CONFIRMED
        repository.update(booking)
        assert repository.get(booking.id).status == BookingStatus.CONFIRMED

    def test_update_unknown_raises(self, repository):
        with pytest.raises(KeyError):
            repository.update(make_booking())

    def test_remove(self, repository):
        booking = repository.add(make_booking())
        assert repository.remove(booking.id) is True
        assert repository.get(booking.id) is None
        assert repository.get_by_code("NL-A742") is None
        assert repository.remove(booking.id) is False

    def test_all(self, repository):
        repository.add(make_booking("NL-A100"))
        repository.add(make_booking("NL-B200"))
        assert sorted(b.booking_code for b in repository.all()) == ["NL-A100", "NL-B200"]


class TestCodeInUse:
    def test_live_booking_holds_code(self, repository):
        repository.add(make_booking())
        assert repository.code_in_use("NL-A742")

    def test_cancelled_booking_frees_code(self, repository):
        booking = repository.add(make_booking())
        booking.status = BookingStatus.CANCELLED
        repository.update(booking)
        assert not repository.code_in_use("NL-A742")

    def test_unknown_code_free(self, repository):
        assert not repository.code_in_use("NL-A742")


class TestJsonPersistence:
    def test_survives_restart(self, tmp_path):
        path = tmp_path / "bookings.json"
        booking = BookingRepository(path).add(make_booking())

        reloaded = BookingRepository(path)
        restored = reloaded.get_by_code("NL-A742")
        assert restored.id == booking.id
        assert restored.topic == Topic.SIP_MANDATES
        assert restored.selected_slot.start_time == booking.selected_slot.start_time

    def test_file_format(self, tmp_path):
        path = tmp_path / "bookings.json"
        BookingRepository(path).add(make_booking())
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["bookings"][0]["booking_code"] == "NL-A742"
        assert data["bookings"][0]["status"] == "tentative"

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "data" / "bookings.json"
        BookingRepository(path).add(make_booking())
        assert path.exists()

    def test_no_temp_file_left_behind(self, tmp_path):
        path = tmp_path / "bookings.json"
        BookingRepository(path).add(make_booking())
        assert [p.name for p in tmp_path.iterdir()] == ["bookings.json"]

    def test_missing_file_starts_empty(self, tmp_path):
        assert BookingRepository(tmp_path / "absent.json").all() == []

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text("{not json", encoding="utf-8")
        assert BookingRepository(path).all() == []

    def test_invalid_records_start_empty(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text(json.dumps({"bookings": [{"id": "x"}]}), encoding="utf-8")
        assert BookingRepository(path).all() == []
