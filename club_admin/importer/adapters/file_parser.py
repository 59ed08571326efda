"""
Upload parsing for calendar imports.

``parse_upload`` picks a strategy from the file extension and MIME type and
always hands back a usable grid: a header row followed by at least one data
row. When a strategy finds nothing, or fails outright, the grid carries a
single "Manual Review Required" row so the reviewer sees the problem instead
of an error page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import PurePath
from typing import Callable, Sequence

from .docx import parse_docx
from .pdf import parse_pdf
from .spreadsheet import parse_workbook
from .text import TEMPLATE_HEADER, decode_text, parse_csv_text, parse_delimited_text

logger = logging.getLogger(__name__)

ACCEPTED_EXTENSIONS: tuple[str, ...] = (".csv", ".xlsx", ".xls", ".txt", ".doc", ".docx", ".pdf")

METHOD_CSV = "csv"
METHOD_EXCEL = "excel"
METHOD_PDF = "pdf"
METHOD_DOCX = "docx"
METHOD_TEXT = "text"

_PLACEHOLDER_LABELS = {
    METHOD_CSV: "CSV",
    METHOD_EXCEL: "Excel",
    METHOD_PDF: "PDF",
    METHOD_DOCX: "Word",
    METHOD_TEXT: "Text",
}


class UnsupportedFileType(ValueError):
    """Raised by callers that reject an extension before parsing."""

    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Unsupported file type for '{file_name}'. Accepted extensions: {', '.join(ACCEPTED_EXTENSIONS)}."
        )
        self.file_name = file_name


@dataclass(frozen=True)
class ParsedGrid:
    """Header row plus data rows recovered from an upload."""

    rows: tuple[tuple[str, ...], ...]
    method: str
    placeholder: bool = False
    message: str | None = None

    @property
    def header(self) -> tuple[str, ...]:
        return self.rows[0]

    @property
    def data_rows(self) -> tuple[tuple[str, ...], ...]:
        return self.rows[1:]

    def as_lists(self) -> list[list[str]]:
        return [list(row) for row in self.rows]


def is_supported_file(file_name: str) -> bool:
    return PurePath(file_name or "").suffix.lower() in ACCEPTED_EXTENSIONS


def placeholder_rows(method: str, *, today: date | None = None) -> list[list[str]]:
    label = _PLACEHOLDER_LABELS.get(method, "File")
    # Dated today so the row stays a single-day event; the club name keeps it unmatched.
    day = (today or date.today()).isoformat()
    return [
        list(TEMPLATE_HEADER),
        [f"{label} Import - Manual Review Required", day, day, "Please Review", f"Extracted from {label}", "Rally"],
    ]


def detect_parse_method(file_name: str, content_type: str | None = None) -> str:
    suffix = PurePath(file_name or "").suffix.lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime == "text/csv" or suffix == ".csv":
        return METHOD_CSV
    if suffix in {".xlsx", ".xls"}:
        return METHOD_EXCEL
    if mime == "application/pdf" or suffix == ".pdf":
        return METHOD_PDF
    if suffix in {".docx", ".doc"}:
        return METHOD_DOCX
    return METHOD_TEXT


def _parse_excel(data: bytes, file_name: str) -> list[list[str]]:
    if PurePath(file_name).suffix.lower() == ".xls":
        # Legacy binary workbooks are not readable by openpyxl.
        return []
    return parse_workbook(data)


_STRATEGIES: dict[str, Callable[[bytes, str], Sequence[Sequence[str]]]] = {
    METHOD_CSV: lambda data, _name: parse_csv_text(decode_text(data)),
    METHOD_EXCEL: _parse_excel,
    METHOD_PDF: lambda data, _name: parse_pdf(data),
    METHOD_DOCX: lambda data, _name: parse_docx(data),
    METHOD_TEXT: lambda data, _name: parse_delimited_text(decode_text(data)),
}


def _has_data(rows: Sequence[Sequence[str]]) -> bool:
    return len(rows) >= 2 and any(any(str(cell).strip() for cell in row) for row in rows[1:])


def parse_upload(data: bytes, file_name: str, content_type: str | None = None) -> ParsedGrid:
    """Parse an uploaded calendar file into a header row plus data rows."""

    method = detect_parse_method(file_name, content_type)
    strategy = _STRATEGIES[method]
    try:
        rows = [[str(cell) for cell in row] for row in strategy(data or b"", file_name or "")]
    except Exception as exc:  # strategies wrap third-party parsers with open-ended failure modes
        logger.warning(
            "Calendar file '%s' could not be parsed with the %s strategy: %s",
            file_name,
            method,
            exc,
            extra={"importer_file_name": file_name, "importer_parse_method": method},
        )
        return ParsedGrid(
            rows=tuple(tuple(row) for row in placeholder_rows(method)),
            method=method,
            placeholder=True,
            message=f"Could not read file: {exc}",
        )

    if not _has_data(rows):
        logger.info(
            "Calendar file '%s' produced no data rows; substituting manual review template.",
            file_name,
            extra={"importer_file_name": file_name, "importer_parse_method": method},
        )
        return ParsedGrid(
            rows=tuple(tuple(row) for row in placeholder_rows(method)),
            method=method,
            placeholder=True,
            message="No events could be extracted; manual review required.",
        )

    return ParsedGrid(rows=tuple(tuple(row) for row in rows), method=method)


__all__ = [
    "ACCEPTED_EXTENSIONS",
    "ParsedGrid",
    "UnsupportedFileType",
    "detect_parse_method",
    "is_supported_file",
    "parse_upload",
    "placeholder_rows",
]
