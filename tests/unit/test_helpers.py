# tests/unit/test_helpers.py
from datetime import date
import re

import pytest

from gymdesk.utils import helpers
from gymdesk.utils.errors import ValidationError


def test_calculate_expiry_date_normal_month():
    expiry = helpers.calculate_expiry_date(date(2024, 3, 15), months=1)
    assert expiry == date(2024, 4, 15)


def test_calculate_expiry_date_clamps_to_month_end():
    assert helpers.calculate_expiry_date(date(2024, 1, 31), months=1) == date(2024, 2, 29)
    assert helpers.calculate_expiry_date(date(2023, 11, 30), months=3) == date(2024, 2, 29)


def test_calculate_bmi_typical():
    bmi = helpers.calculate_bmi(weight_kg=70, height_cm=175)
    assert bmi == pytest.approx(22.86, abs=0.01)


def test_calculate_bmi_invalid_values():
    assert helpers.calculate_bmi(0, 170) is None
    assert helpers.calculate_bmi(70, 0) is None
    assert helpers.calculate_bmi(None, 170) is None


def test_get_bmi_category_defined_ranges():
    assert helpers.get_bmi_category(None) == "Unknown"
    assert helpers.get_bmi_category(16.0) == "Underweight"
    assert helpers.get_bmi_category(22.0) == "Normal weight"
    assert helpers.get_bmi_category(27.0) == "Overweight"
    assert helpers.get_bmi_category(32.0) == "Obese"


@pytest.mark.parametrize("raw,expected", [
    ("9:00", "09:00:00"),
    ("09:30", "09:30:00"),
    ("17:45:10", "17:45:10"),
    ("2:15 PM", "14:15:00"),
])
def test_parse_time_normalizes(raw, expected):
    assert helpers.parse_time(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "25:00", "nine"])
def test_parse_time_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        helpers.parse_time(raw, "startTime")


def test_parse_date():
    assert helpers.parse_date("2024-01-10") == date(2024, 1, 10)
    assert helpers.parse_date(date(2024, 1, 10)) == date(2024, 1, 10)
    with pytest.raises(ValidationError):
        helpers.parse_date("10/01/2024")


def test_parse_id():
    assert helpers.parse_id("42") == 42
    for bad in ("abc", 0, -3, None, True):
        with pytest.raises(ValidationError):
            helpers.parse_id(bad)


def test_invoice_number_with_sequence():
    assert helpers.generate_invoice_number(7, date(2024, 3, 1)) == "INV-202403-00007"


def test_invoice_number_without_sequence_uses_timestamp():
    first = helpers.generate_invoice_number(on_date=date(2024, 3, 1))
    second = helpers.generate_invoice_number(on_date=date(2024, 3, 1))
    assert re.match(r"^INV-202403-\d{16}$", first)
    assert re.match(r"^INV-202403-\d{16}$", second)


def test_paginate():
    assert helpers.paginate(1, 10) == (10, 0)
    assert helpers.paginate("3", "20") == (20, 40)
    assert helpers.paginate(0, 5) == (5, 0)
    with pytest.raises(ValidationError):
        helpers.paginate("x", 10)


def test_validate_email():
    assert helpers.validate_email("a.b@example.com")
    assert not helpers.validate_email("not-an-email")
    assert not helpers.validate_email(None)
