from decimal import Decimal

import pytest

from centerdesk.core.currency import (
    amount_excluding_vat,
    amount_with_vat,
    format_currency,
    parse_currency,
    quantize,
    vat_amount,
)
from centerdesk.core.phone import (
    format_phone_number,
    is_valid_phone_number,
    normalize_phone_number,
    phone_validation_error,
    validate_phone_fields,
)


@pytest.mark.parametrize(
    "amount,kwargs,expected",
    [
        (Decimal("1234.5"), {}, "R 1,234.50"),
        (0, {}, "R 0.00"),
        ("99.995", {}, "R 100.00"),
        (Decimal("1234.5"), {"show_decimals": False}, "R 1,235"),
        (1500, {"compact": True}, "R 1.5K"),
        (2000000, {"compact": True}, "R 2M"),
        (999, {"compact": True}, "R 999.00"),
    ],
)
def test_format_currency(amount, kwargs, expected):
    assert format_currency(amount, **kwargs) == expected


def test_parse_currency():
    assert parse_currency("R 1,234.50") == Decimal("1234.50")
    assert parse_currency("abc") == Decimal("0")


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "R sNaN"])
def test_parse_currency_non_finite_is_zero(value):
    assert parse_currency(value) == Decimal("0")


def test_quantize_rounds_half_up():
    assert quantize("0.125") == Decimal("0.13")


def test_vat_helpers():
    assert vat_amount("100") == Decimal("15.00")
    assert amount_with_vat("100") == Decimal("115.00")
    assert amount_excluding_vat("115") == Decimal("100.00")


@pytest.mark.parametrize(
    "phone,strict,expected",
    [
        ("082 123 4567", False, True),
        ("+27 82 123 4567", False, True),
        ("(011) 123-4567", False, True),
        ("(011) 123-4567", True, False),
        ("071.234.5678", True, True),
        ("12345", False, False),
        ("", False, True),
        (None, True, True),
    ],
)
def test_is_valid_phone_number(phone, strict, expected):
    assert is_valid_phone_number(phone, strict=strict) is expected


def test_format_phone_number():
    assert normalize_phone_number("(082) 123-4567") == "0821234567"
    assert format_phone_number("0821234567") == "082 123 4567"
    assert format_phone_number("+27821234567", international=True) == "+27 82 123 4567"
    assert format_phone_number("27821234567") == "082 123 4567"
    assert format_phone_number("not a number") == "not a number"
    assert format_phone_number(None) == ""


def test_phone_validation_errors():
    assert phone_validation_error("082 123 4567") is None
    assert phone_validation_error("123", "Parent phone").startswith("Parent phone must be")
    assert validate_phone_fields({"Phone": "0821234567", "Work": "1"}) == {
        "Work": phone_validation_error("1", "Work")
    }
