"""Tests for currency helpers in campus_events.registration.razorpay_utils."""

from decimal import Decimal

import pytest

from campus_events.registration.razorpay_utils import from_minor_units, obfuscate_key, to_minor_units


@pytest.mark.unit
class TestToMinorUnits:
    def test_rupees_to_paise(self):
        assert to_minor_units(Decimal("250.00"), "INR") == 25000

    def test_lowercase_currency(self):
        assert to_minor_units(Decimal("1.50"), "inr") == 150

    def test_rounds_half_up(self):
        assert to_minor_units(Decimal("10.005"), "INR") == 1001

    def test_zero_decimal_currency(self):
        assert to_minor_units(Decimal("500"), "JPY") == 500


@pytest.mark.unit
class TestFromMinorUnits:
    def test_paise_to_rupees(self):
        assert from_minor_units(25000, "INR") == Decimal("250.00")

    def test_two_decimal_places(self):
        assert str(from_minor_units(5, "INR")) == "0.05"

    def test_zero_decimal_currency(self):
        assert from_minor_units(500, "jpy") == Decimal("500")


@pytest.mark.unit
class TestObfuscateKey:
    def test_keeps_last_four(self):
        assert obfuscate_key("rzp_test_abcdef") == "****cdef"

    def test_short_key_fully_masked(self):
        assert obfuscate_key("abc") == "****"
