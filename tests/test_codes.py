"""Tests for booking code generation, validation and extraction."""

import pytest

from advisor_scheduler.booking.codes import (
    BookingCodeExhaustedError,
    extract_booking_code,
    generate_booking_code,
    generate_unique_booking_code,
    validate_booking_code,
)


class TestGenerateBookingCode:
    def test_generated_codes_are_valid(self):
        for _ in range(200):
            assert validate_booking_code(generate_booking_code())

    def test_prefix(self):
        assert generate_booking_code().startswith("NL-")


class TestValidateBookingCode:
    @pytest.mark.parametrize("code", ["NL-A742", "NL-Z100", "NL-B999"])
    def test_valid(self, code):
        assert validate_booking_code(code)

    @pytest.mark.parametrize("code", [
        "", "nl-a742", "NL-AA742", "NL-A74", "NL-A7421", "XX-A742", "NL-7A42", " NL-A742",
    ])
    def test_invalid(self, code):
        assert not validate_booking_code(code)


class TestExtractBookingCode:
    def test_extracts_from_sentence(self):
        assert extract_booking_code("My code is NL-A742, thanks") == "NL-A742"

    def test_normalizes_case(self):
        assert extract_booking_code("please cancel nl-b123") == "NL-B123"

    def test_first_code_wins(self):
        assert extract_booking_code("NL-A111 or NL-B222") == "NL-A111"

    def test_no_code(self):
        assert extract_booking_code("I don't have my code") is None

    def test_empty(self):
        assert extract_booking_code("") is None


class TestUniqueBookingCode:
    def test_skips_codes_in_use(self):
        seen = []

        def in_use(code):
            seen.append(code)
            return len(seen) <= 3

        code = generate_unique_booking_code(in_use, max_attempts=10)
        assert len(seen) == 4
        assert code == seen[-1]

    def test_exhausted(self):
        with pytest.raises(BookingCodeExhaustedError):
            generate_unique_booking_code(lambda code: True, max_attempts=5)

    def test_first_free_code_returned(self):
        code = generate_unique_booking_code(lambda code: False)
        assert validate_booking_code(code)
