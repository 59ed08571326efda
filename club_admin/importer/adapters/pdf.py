"""
PDF strategy.

Documents with a text layer are read with pdfplumber. When that yields
nothing (scanned pages, damaged files) a byte-level scan collects printable
ASCII between ``BT``/``ET`` text operators, which only helps with
uncompressed content streams. Extracted text becomes rows through simple line
patterns, then through the calendar heuristics shared with Word documents.
"""

from __future__ import annotations

import io
import logging
import re

import pdfplumber

from .docx import parse_docx_calendar_text
from .text import TEMPLATE_HEADER, split_lines

logger = logging.getLogger(__name__)

DEFAULT_PDF_EVENT_TYPE = "Rally"

PDF_EVENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(\w+\s+\w+)\s+(\d{1,2}[/\-]\d{1,2}[/\-]\d{4})\s+(.+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+(\d{1,2}[/\-]\d{1,2}[/\-]\d{4})\s+(.+)$", re.IGNORECASE),
)

_TEXT_BLOCK = re.compile(rb"BT(.*?)ET", re.DOTALL)
_NON_PRINTABLE = re.compile(rb"[^\x20-\x7e]")


def extract_text_layer(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(page for page in pages if page.strip())


def scan_text_operators(data: bytes) -> str:
    """Recover printable characters found between ``BT`` and ``ET`` operators."""
    blocks = []
    for match in _TEXT_BLOCK.finditer(data):
        text = _NON_PRINTABLE.sub(b"", match.group(1)).decode("ascii").strip()
        if text:
            blocks.append(text)
    return "\n".join(blocks)


def extract_pdf_text(data: bytes) -> str:
    try:
        text = extract_text_layer(data)
    except Exception as exc:  # pdfminer raises a wide range of errors for damaged files
        logger.warning("pdfplumber could not read PDF text layer: %s", exc)
        text = ""
    if text.strip():
        return text
    return scan_text_operators(data)


def _is_header_line(line: str) -> bool:
    lowered = line.lower()
    return "event" in lowered and "date" in lowered


def parse_extracted_pdf_text(text: str) -> list[list[str]]:
    """Turn extracted PDF text into data rows (header excluded)."""
    rows: list[list[str]] = []
    for line in split_lines(text):
        stripped = line.strip()
        if _is_header_line(stripped):
            continue
        for pattern in PDF_EVENT_PATTERNS:
            match = pattern.match(stripped)
            if match is None:
                continue
            name, event_date, details = (group.strip() for group in match.groups())
            words = details.split()
            club = " ".join(words[:3])
            location = " ".join(words[3:]) or club
            rows.append(
                [
                    name or "Unnamed Event",
                    event_date,
                    event_date,
                    club or "Unknown Club",
                    location,
                    DEFAULT_PDF_EVENT_TYPE,
                ]
            )
            break
        else:
            if "," in stripped or "\t" in stripped:
                cells = [cell.strip() for cell in re.split(r"[,\t]", stripped)]
                if len(cells) >= 3:
                    rows.append(cells)
    if not rows:
        rows = parse_docx_calendar_text(text)
    return rows


def parse_pdf(data: bytes) -> list[list[str]]:
    rows = parse_extracted_pdf_text(extract_pdf_text(data))
    if not rows:
        return []
    return [list(TEMPLATE_HEADER), *rows]


__all__ = [
    "extract_pdf_text",
    "parse_extracted_pdf_text",
    "parse_pdf",
    "scan_text_operators",
]
