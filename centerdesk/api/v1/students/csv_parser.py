"""
CSV parsing and validation for student bulk import.

Headers are matched case-insensitively against a synonym table ("Surname" -> last_name,
"DOB" -> date_of_birth, "Cell" -> phone, ...). Rows failing validation are left out of the
result and reported with their spreadsheet row number (header is row 1).

Slash and dash dates are read day-first (DD/MM/YYYY) unless DATE_ORDER_PREFERENCE is MDY.
A US-style 05/06/2010 is therefore read as 5 June under the default; this is not detected.
"""

import csv
import io
import re
from datetime import date
from typing import Dict, List, Optional, Tuple

from centerdesk.core.config import settings
from centerdesk.core.enums import Gender

from .schemas import ImportRowError, ParsedCSV, StudentImportRow

REQUIRED_FIELDS = ("first_name", "last_name")

TEMPLATE_HEADERS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "date_of_birth",
    "gender",
    "grade",
    "parent_name",
    "parent_phone",
    "parent_email",
    "address",
)

TEMPLATE_SAMPLE_ROW = (
    "John",
    "Doe",
    "john.doe@example.com",
    "0821234567",
    "2010-05-15",
    "male",
    "Grade 8",
    "Jane Doe",
    "0829876543",
    "jane.doe@example.com",
    "123 Main Street, Johannesburg",
)

# Alternate header -> canonical field name
FIELD_MAPPING: Dict[str, str] = {
    "first_name": "first_name",
    "firstname": "first_name",
    "first name": "first_name",
    "name": "first_name",
    "given name": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last name": "last_name",
    "surname": "last_name",
    "family name": "last_name",
    "email": "email",
    "e-mail": "email",
    "email address": "email",
    "phone": "phone",
    "telephone": "phone",
    "mobile": "phone",
    "phone number": "phone",
    "cell": "phone",
    "cellphone": "phone",
    "date_of_birth": "date_of_birth",
    "dob": "date_of_birth",
    "date of birth": "date_of_birth",
    "birthday": "date_of_birth",
    "birthdate": "date_of_birth",
    "gender": "gender",
    "sex": "gender",
    "grade": "grade",
    "class": "grade",
    "year": "grade",
    "level": "grade",
    "parent_name": "parent_name",
    "parent name": "parent_name",
    "guardian": "parent_name",
    "guardian name": "parent_name",
    "parent/guardian": "parent_name",
    "parent_phone": "parent_phone",
    "parent phone": "parent_phone",
    "guardian phone": "parent_phone",
    "parent mobile": "parent_phone",
    "parent_email": "parent_email",
    "parent email": "parent_email",
    "guardian email": "parent_email",
    "address": "address",
    "location": "address",
    "home address": "address",
    "street address": "address",
}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
SLASH_DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
DASH_DATE_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")

MALE_VALUES = {"male", "m", "boy"}
FEMALE_VALUES = {"female", "f", "girl"}


def normalize_header(header: str) -> str:
    normalized = header.lower().strip()
    return FIELD_MAPPING.get(normalized, normalized)


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(value: Optional[str], date_order: Optional[str] = None) -> Optional[str]:
    """
    Normalise YYYY-MM-DD, D/M/YYYY or D-M-YYYY to ISO. Returns None when the value is empty,
    in another format, or not a real calendar date.
    """
    if not value:
        return None
    value = value.strip()
    order = (date_order or settings.date_order_preference).upper()

    match = ISO_DATE_PATTERN.match(value)
    if match:
        year, month, day = (int(p) for p in match.groups())
        return _iso(year, month, day)

    match = SLASH_DATE_PATTERN.match(value) or DASH_DATE_PATTERN.match(value)
    if match:
        first, second, year = (int(p) for p in match.groups())
        if order == "MDY":
            return _iso(year, first, second)
        return _iso(year, second, first)

    return None


def normalize_gender(value: Optional[str]) -> Optional[Gender]:
    if not value:
        return None
    normalized = value.lower().strip()
    if normalized in MALE_VALUES:
        return Gender.male
    if normalized in FEMALE_VALUES:
        return Gender.female
    if normalized:
        return Gender.other
    return None


def _is_valid_phone(value: str) -> bool:
    clean = PHONE_STRIP_PATTERN.sub("", value)
    return re.match(settings.phone_region_pattern, clean) is not None


def _optional(row: Dict[str, str], field: str) -> Optional[str]:
    value = (row.get(field) or "").strip()
    return value or None


def row_errors(row: Dict[str, Optional[str]]) -> List[str]:
    """Error messages for one header-keyed row; empty when the row is importable."""
    errors: List[str] = []
    email = row.get("email") or ""
    phone = row.get("phone") or ""
    parent_phone = row.get("parent_phone") or ""
    parent_email = row.get("parent_email") or ""

    if not (row.get("first_name") or "").strip():
        errors.append("First name is required")
    if not (row.get("last_name") or "").strip():
        errors.append("Last name is required")
    if email and not EMAIL_PATTERN.match(email.strip()):
        errors.append("Invalid email format")
    if phone and not _is_valid_phone(phone):
        errors.append("Invalid phone number format")
    if parent_phone and not _is_valid_phone(parent_phone):
        errors.append("Invalid parent phone format")
    if parent_email and not EMAIL_PATTERN.match(parent_email.strip()):
        errors.append("Invalid parent email format")
    return errors


def validate_row(row: Dict[str, str]) -> Tuple[Optional[StudentImportRow], List[str]]:
    """Validate one header-keyed row. Returns (row, []) or (None, error messages)."""
    errors = row_errors(row)
    if errors:
        return None, errors

    return (
        StudentImportRow(
            first_name=row["first_name"].strip(),
            last_name=row["last_name"].strip(),
            email=_optional(row, "email"),
            phone=_optional(row, "phone"),
            date_of_birth=parse_date(row.get("date_of_birth")),
            gender=normalize_gender(row.get("gender")),
            grade=_optional(row, "grade"),
            parent_name=_optional(row, "parent_name"),
            parent_phone=_optional(row, "parent_phone"),
            parent_email=_optional(row, "parent_email"),
            address=_optional(row, "address"),
        ),
        [],
    )


def parse_rows(rows: List[List[str]]) -> ParsedCSV:
    """Validate a header row plus data rows, as read from CSV or a spreadsheet."""
    # Whitespace-only rows are kept so they surface as row errors
    rows = [r for r in rows if any(cell != "" for cell in r)]
    headers = [normalize_header(h) for h in rows[0]] if rows else []

    missing = [f for f in REQUIRED_FIELDS if f not in headers]
    if missing:
        return ParsedCSV(
            data=[],
            errors=[ImportRowError(row=0, message=f"Missing required columns: {', '.join(missing)}")],
            headers=headers,
        )

    data: List[StudentImportRow] = []
    errors: List[ImportRowError] = []
    for index, values in enumerate(rows[1:]):
        row_number = index + 2
        record = dict(zip(headers, values))
        student, messages = validate_row(record)
        if student is not None:
            data.append(student)
        errors.extend(ImportRowError(row=row_number, message=m) for m in messages)

    return ParsedCSV(data=data, errors=errors, headers=headers)


def parse_csv(content: str) -> ParsedCSV:
    """Parse CSV text whose first row is the header."""
    try:
        rows = list(csv.reader(io.StringIO(content.lstrip("\ufeff"))))
    except csv.Error as e:
        return ParsedCSV(
            data=[],
            errors=[ImportRowError(row=0, message=f"Failed to parse CSV: {e}")],
            headers=[],
        )
    return parse_rows(rows)


def generate_csv_template() -> str:
    """Header plus one example row, for users to download and fill in."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow(TEMPLATE_SAMPLE_ROW)
    return buffer.getvalue().rstrip("\n")
