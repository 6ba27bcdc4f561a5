"""Excel (.xlsx) variant of the student import: template download and upload parsing."""

import io
from datetime import date, datetime
from typing import List

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from centerdesk.core.enums import Gender

from .csv_parser import TEMPLATE_HEADERS, TEMPLATE_SAMPLE_ROW, parse_rows
from .schemas import ImportRowError, ParsedCSV

STUDENTS_SHEET_NAME = "Students"
EXCEL_MAX_ROWS = 500
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def build_import_template_xlsx() -> bytes:
    """Students sheet with the import headers, one example row and a gender dropdown."""
    wb = Workbook()
    ws = wb.active
    ws.title = STUDENTS_SHEET_NAME
    ws.append(list(TEMPLATE_HEADERS))
    ws.append(list(TEMPLATE_SAMPLE_ROW))

    gender_col = get_column_letter(TEMPLATE_HEADERS.index("gender") + 1)
    dv_gender = DataValidation(
        type="list",
        formula1='"{}"'.format(",".join(g.value for g in Gender)),
        allow_blank=True,
    )
    dv_gender.error = "Select a value from the Gender dropdown"
    ws.add_data_validation(dv_gender)
    dv_gender.add(f"{gender_col}2:{gender_col}{EXCEL_MAX_ROWS + 1}")

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _cell_str(value) -> str:
    if value is None:
        return ""
    # Excel stores typed dates and numbers; the row validator expects text
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _file_error(message: str) -> ParsedCSV:
    return ParsedCSV(data=[], errors=[ImportRowError(row=0, message=message)], headers=[])


def parse_xlsx(content: bytes) -> ParsedCSV:
    """Parse the active sheet of an uploaded workbook. First row = headers. Max 500 data rows."""
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        return _file_error(f"Invalid Excel file: {e}")

    try:
        ws = wb.active
        if ws is None:
            return _file_error("Excel file has no active sheet")
        rows: List[List[str]] = [
            [_cell_str(c) for c in row] for row in ws.iter_rows(values_only=True)
        ]
    finally:
        wb.close()

    rows = [r for r in rows if any(r)]
    if len(rows) - 1 > EXCEL_MAX_ROWS:
        return _file_error(f"Maximum {EXCEL_MAX_ROWS} data rows allowed")
    return parse_rows(rows)
