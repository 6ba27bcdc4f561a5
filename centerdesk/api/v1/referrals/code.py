"""Referral codes handed out by centers, e.g. BRI26K4 for "Bright Minds Tutoring" in 2026."""

import re
import secrets
import string
from datetime import datetime
from typing import Optional

PREFIX_LENGTH = 3
SUFFIX_LENGTH = 2
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def _name_prefix(center_name: Optional[str]) -> str:
    words = (center_name or "").split()
    letters = _NON_ALNUM.sub("", words[0]).upper() if words else ""
    return letters[:PREFIX_LENGTH].ljust(PREFIX_LENGTH, "X")


def generate_center_referral_code(name: str, now: Optional[datetime] = None) -> str:
    """Name prefix from the first word (X-padded), two-digit year, then a random suffix."""
    year = (now or datetime.now()).strftime("%y")
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{_name_prefix(name)}{year}{suffix}"
