"""South African phone number validation and formatting."""

import re
from typing import Dict, Optional

# Mobile: 06x-08x; landline: geographic 01x-05x; any: nine digits after the prefix.
SA_MOBILE_PATTERN = re.compile(r"^(\+?27|0)(6[0-9]|7[0-9]|8[0-9])[0-9]{7}$")
SA_LANDLINE_PATTERN = re.compile(r"^(\+?27|0)(1[0-9]|2[0-9]|3[0-9]|4[0-9]|5[0-9])[0-9]{7}$")
SA_ANY_PATTERN = re.compile(r"^(\+?27|0)[0-9]{9}$")

_FORMATTING_CHARS = re.compile(r"[\s\-().]")


def normalize_phone_number(phone: str) -> str:
    """Remove spaces, dashes, dots and parentheses."""
    return _FORMATTING_CHARS.sub("", phone)


def is_valid_phone_number(phone: Optional[str], strict: bool = False) -> bool:
    """Empty is valid (optional field). strict accepts mobile numbers only."""
    if not phone:
        return True
    normalized = normalize_phone_number(phone)
    if strict:
        return bool(SA_MOBILE_PATTERN.match(normalized))
    return bool(SA_ANY_PATTERN.match(normalized))


def format_phone_number(phone: Optional[str], international: bool = False) -> str:
    """
    Format as "082 123 4567" or "+27 82 123 4567". Invalid input is returned unchanged.
    """
    if not phone:
        return ""

    normalized = normalize_phone_number(phone)
    if not SA_ANY_PATTERN.match(normalized):
        return phone

    if normalized.startswith("+27"):
        digits = normalized[3:]
    elif normalized.startswith("27") and len(normalized) == 11:
        digits = normalized[2:]
    elif normalized.startswith("0"):
        digits = normalized[1:]
    else:
        digits = normalized

    if international:
        return f"+27 {digits[:2]} {digits[2:5]} {digits[5:]}"
    return f"0{digits[:2]} {digits[2:5]} {digits[5:]}"


def phone_validation_error(phone: Optional[str], field_name: str = "Phone number") -> Optional[str]:
    if not phone:
        return None
    if not SA_ANY_PATTERN.match(normalize_phone_number(phone)):
        return f"{field_name} must be a valid South African number (e.g., 082 123 4567 or +27 82 123 4567)"
    return None


def validate_phone_fields(fields: Dict[str, str]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for field_name, value in fields.items():
        error = phone_validation_error(value, field_name)
        if error:
            errors[field_name] = error
    return errors
