"""Excel workbook strategy backed by openpyxl."""

from __future__ import annotations

import io
from datetime import date, datetime

import openpyxl


def _cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_workbook(data: bytes) -> list[list[str]]:
    """Return the non-blank rows of the first worksheet as text cells."""
    workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0] if workbook.worksheets else None
        if sheet is None:
            return []
        rows: list[list[str]] = []
        for values in sheet.iter_rows(values_only=True):
            cells = [_cell_to_text(value) for value in values]
            while cells and not cells[-1]:
                cells.pop()
            if any(cells):
                rows.append(cells)
        return rows
    finally:
        workbook.close()


__all__ = ["parse_workbook"]
