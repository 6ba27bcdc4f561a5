"""
Currency formatting and VAT helpers. The currency and VAT rate come from settings
(South African Rand and 15% by default).
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from centerdesk.core.config import settings

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")

_COMPACT_UNITS = (
    (Decimal("1000000000"), "B"),
    (Decimal("1000000"), "M"),
    (Decimal("1000"), "K"),
)


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def quantize(value: Number) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_currency(amount: Number, show_decimals: bool = True, compact: bool = False) -> str:
    """
    Format an amount with the configured currency symbol.

        >>> format_currency(Decimal("1234.5"))
        'R 1,234.50'
        >>> format_currency(1500, compact=True)
        'R 1.5K'
    """
    value = to_decimal(amount)
    symbol = settings.currency_symbol

    if compact and value >= 1000:
        for threshold, suffix in _COMPACT_UNITS:
            if value >= threshold:
                scaled = (value / threshold).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
                text = f"{scaled:f}".rstrip("0").rstrip(".")
                return f"{symbol} {text}{suffix}"

    if show_decimals:
        return f"{symbol} {quantize(value):,.2f}"
    return f"{symbol} {value.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,.0f}"


def parse_currency(value: str) -> Decimal:
    """Strip symbol, spaces and thousand separators. Unparseable or non-finite input yields 0."""
    clean = value.replace(settings.currency_symbol, "")
    clean = re.sub(r"\s", "", clean).replace(",", "")
    try:
        result = Decimal(clean)
    except InvalidOperation:
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def vat_amount(amount: Number) -> Decimal:
    return quantize(to_decimal(amount) * settings.vat_rate)


def amount_with_vat(amount: Number) -> Decimal:
    return quantize(to_decimal(amount) * (1 + settings.vat_rate))


def amount_excluding_vat(amount_with_vat: Number) -> Decimal:
    return quantize(to_decimal(amount_with_vat) / (1 + settings.vat_rate))
