"""Calendar file parsing strategies."""

from __future__ import annotations

from .docx import extract_docx_text, parse_docx_calendar_text
from .file_parser import (
    ACCEPTED_EXTENSIONS,
    ParsedGrid,
    UnsupportedFileType,
    detect_parse_method,
    is_supported_file,
    parse_upload,
    placeholder_rows,
)
from .pdf import parse_extracted_pdf_text
from .text import TEMPLATE_HEADER, parse_csv_text, parse_delimited_text

__all__ = [
    "ACCEPTED_EXTENSIONS",
    "ParsedGrid",
    "TEMPLATE_HEADER",
    "UnsupportedFileType",
    "detect_parse_method",
    "extract_docx_text",
    "is_supported_file",
    "parse_csv_text",
    "parse_delimited_text",
    "parse_docx_calendar_text",
    "parse_extracted_pdf_text",
    "parse_upload",
    "placeholder_rows",
]
