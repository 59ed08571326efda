"""
Word document strategy and the calendar text heuristics shared with PDF.

DOCX bodies are read from the ``word/document.xml`` archive member. Files
that are not readable archives (legacy ``.doc``, truncated uploads) fall back
to scanning the raw bytes for a stored ``<w:document>`` fragment and then to
printable ASCII runs. Whatever text survives goes through
:func:`parse_docx_calendar_text`, which recognises month headings and common
day-first date spellings.
"""

from __future__ import annotations

import html
import io
import logging
import re
import zipfile
from datetime import date
from typing import Iterator
from xml.etree import ElementTree

from club_admin.importer.mapping import EVENT_TYPE_PATTERNS

from .text import TEMPLATE_HEADER, split_lines

logger = logging.getLogger(__name__)

WORD_NAMESPACE = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"

MONTHS: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "sept": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# Longest names first so "September" is not consumed as "Sep".
_MONTH_ALTERNATION = "|".join(sorted(MONTHS, key=len, reverse=True))
_ORDINAL = r"(?:st|nd|rd|th)?"
_RANGE_SEPARATOR = r"\s*(?:-|–|to)\s*"
_WEEKDAY = r"(?:mon|tue|wed|thu|fri|sat|sun)[a-z]*\.?,?\s+"

NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
NUMERIC_RANGE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})" + _RANGE_SEPARATOR + r"(\d{1,2})/(\d{1,2})/(\d{4})\b")
NAMED_DATE = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}\s+({_MONTH_ALTERNATION})\.?,?\s+(\d{{4}})\b",
    re.IGNORECASE,
)
NAMED_RANGE = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}{_RANGE_SEPARATOR}(\d{{1,2}}){_ORDINAL}\s+({_MONTH_ALTERNATION})\.?,?\s+(\d{{4}})\b",
    re.IGNORECASE,
)
MONTH_HEADING = re.compile(rf"^\s*({_MONTH_ALTERNATION})\.?(?:\s+(\d{{4}}))?\s*:?\s*$", re.IGNORECASE)
DAY_LED_LINE = re.compile(
    rf"^\s*(?:{_WEEKDAY})?(\d{{1,2}}){_ORDINAL}(?:{_RANGE_SEPARATOR}(\d{{1,2}}){_ORDINAL})?[\s:.\-–]+(.+)$",
    re.IGNORECASE,
)
DETAIL_SEPARATOR = re.compile(r"\s+[-–|]\s+|\t|\s*,\s*")
LEADING_WEEKDAY = re.compile(rf"^\s*{_WEEKDAY}", re.IGNORECASE)

# Decompressed size limit for word/document.xml; larger members are rejected unread.
MAX_DOCUMENT_XML_BYTES = 64 * 1024 * 1024

_DOCUMENT_FRAGMENT = re.compile(rb"<w:document[\s>].*?</w:document>", re.DOTALL)
_PRINTABLE_RUN = re.compile(rb"[\x20-\x7e]{4,}")
_TAG = re.compile(r"<[^>]+>")


class DocumentTooLarge(ValueError):
    """Raised when an archive declares a document body larger than the allowed size."""


def _paragraph_text(paragraph: ElementTree.Element) -> str:
    parts: list[str] = []
    for node in paragraph.iter():
        if node.tag == f"{WORD_NAMESPACE}t" and node.text:
            parts.append(node.text)
        elif node.tag == f"{WORD_NAMESPACE}tab":
            parts.append("\t")
    return "".join(parts)


def _archive_text(data: bytes) -> str | None:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            info = archive.getinfo("word/document.xml")
            if info.file_size > MAX_DOCUMENT_XML_BYTES:
                raise DocumentTooLarge(
                    f"word/document.xml expands to {info.file_size} bytes (limit {MAX_DOCUMENT_XML_BYTES})."
                )
            xml_bytes = archive.read(info)
    except (zipfile.BadZipFile, KeyError):
        return None
    try:
        root = ElementTree.fromstring(xml_bytes)
    except ElementTree.ParseError as exc:
        logger.warning("DOCX document.xml could not be parsed: %s", exc)
        return None

    lines: list[str] = []
    for row in root.iter(f"{WORD_NAMESPACE}tr"):
        cells = [
            " ".join(_paragraph_text(p) for p in cell.iter(f"{WORD_NAMESPACE}p")).strip()
            for cell in row.iter(f"{WORD_NAMESPACE}tc")
        ]
        if any(cells):
            lines.append("\t".join(cells))
    table_paragraphs = {
        id(p) for table in root.iter(f"{WORD_NAMESPACE}tbl") for p in table.iter(f"{WORD_NAMESPACE}p")
    }
    for paragraph in root.iter(f"{WORD_NAMESPACE}p"):
        if id(paragraph) in table_paragraphs:
            continue
        text = _paragraph_text(paragraph).strip()
        if text:
            lines.append(text)
    return "\n".join(lines)


def _fragment_text(data: bytes) -> str | None:
    match = _DOCUMENT_FRAGMENT.search(data)
    if match is None:
        return None
    fragment = match.group(0).decode("utf-8", errors="ignore")
    fragment = re.sub(r"</w:p>", "\n", fragment)
    fragment = re.sub(r"<w:tab\s*/>", "\t", fragment)
    return html.unescape(_TAG.sub("", fragment))


def extract_printable_text(data: bytes) -> str:
    """Join printable ASCII runs of four or more bytes, one per line."""
    return "\n".join(run.decode("ascii") for run in _PRINTABLE_RUN.findall(data))


def extract_docx_text(data: bytes) -> str:
    for extractor in (_archive_text, _fragment_text):
        text = extractor(data)
        if text and text.strip():
            return text
    return extract_printable_text(data)


def _infer_type(name: str) -> str:
    for entry in EVENT_TYPE_PATTERNS:
        if entry.pattern.search(name):
            return entry.canonical_name
    return ""


def _iso(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _split_details(text: str) -> list[str]:
    return [part.strip(" -–:|") for part in DETAIL_SEPARATOR.split(text) if part.strip(" -–:|")]


def _row(start: str, end: str, details: str) -> list[str] | None:
    parts = _split_details(details)
    if not parts:
        return None
    name = parts[0]
    club = parts[1] if len(parts) > 1 else ""
    location = parts[2] if len(parts) > 2 else ""
    return [name, start, end, club, location, _infer_type(name)]


def _dated_line(line: str) -> tuple[str, str, str] | None:
    """Return ``(start, end, remainder)`` for a line carrying an explicit year."""
    for pattern in (NUMERIC_RANGE, NAMED_RANGE, NUMERIC_DATE, NAMED_DATE):
        match = pattern.search(line)
        if match is None:
            continue
        groups = match.groups()
        if pattern is NUMERIC_RANGE:
            start = _iso(int(groups[2]), int(groups[1]), int(groups[0]))
            end = _iso(int(groups[5]), int(groups[4]), int(groups[3]))
        elif pattern is NAMED_RANGE:
            month = MONTHS[groups[2].lower()]
            start = _iso(int(groups[3]), month, int(groups[0]))
            end = _iso(int(groups[3]), month, int(groups[1]))
        elif pattern is NUMERIC_DATE:
            start = end = _iso(int(groups[2]), int(groups[1]), int(groups[0]))
        else:
            start = end = _iso(int(groups[2]), MONTHS[groups[1].lower()], int(groups[0]))
        if start is None or end is None:
            continue
        remainder = (line[: match.start()] + " " + line[match.end() :]).strip()
        remainder = LEADING_WEEKDAY.sub("", remainder)
        return start, end, remainder
    return None


def _iter_calendar_rows(lines: list[str], default_year: int) -> Iterator[list[str]]:
    current_month: int | None = None
    current_year = default_year
    for line in lines:
        heading = MONTH_HEADING.match(line)
        if heading is not None:
            current_month = MONTHS[heading.group(1).lower()]
            if heading.group(2):
                current_year = int(heading.group(2))
            continue

        dated = _dated_line(line)
        if dated is not None:
            row = _row(*dated)
            if row is not None:
                yield row
            continue

        if current_month is None:
            continue
        day_led = DAY_LED_LINE.match(line)
        if day_led is None:
            continue
        first_day, last_day, details = day_led.groups()
        start = _iso(current_year, current_month, int(first_day))
        end = _iso(current_year, current_month, int(last_day)) if last_day else start
        if start is None or end is None:
            continue
        row = _row(start, end, details)
        if row is not None:
            yield row


def parse_docx_calendar_text(text: str, *, default_year: int | None = None) -> list[list[str]]:
    """
    Synthesize template rows from free calendar text.

    Lines with a full date (``DD/MM/YYYY``, ``DD Mon YYYY``, ``DD Month YYYY``
    or a day range of those) become rows directly. Under a month heading such
    as ``SEPTEMBER 2025``, lines that start with a day number are dated within
    that month. Returns only the data rows; callers add the header.
    """
    year = default_year or date.today().year
    return list(_iter_calendar_rows(split_lines(text), year))


def parse_docx(data: bytes, *, default_year: int | None = None) -> list[list[str]]:
    rows = parse_docx_calendar_text(extract_docx_text(data), default_year=default_year)
    if not rows:
        return []
    return [list(TEMPLATE_HEADER), *rows]


__all__ = [
    "DocumentTooLarge",
    "MAX_DOCUMENT_XML_BYTES",
    "MONTHS",
    "extract_docx_text",
    "extract_printable_text",
    "parse_docx",
    "parse_docx_calendar_text",
]
