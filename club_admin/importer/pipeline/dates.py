"""
Date parsing for imported calendar cells.

Strategies run in a fixed order and the first one yielding a real calendar
date wins. Slash dates are read day-first before month-first, so ``03/04/2025``
is the 3rd of April. Source calendars are not labelled with their convention;
callers that know better should normalise cells before import.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from dateutil import parser as dateutil_parser

_SLASH_DATE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")

DateStrategy = Callable[[str], Optional[date]]


def _parse_iso(text: str) -> date | None:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _slash_parts(text: str) -> tuple[int, int, int] | None:
    match = _SLASH_DATE.match(text)
    if match is None:
        return None
    first, second, year = (int(part) for part in match.groups())
    return first, second, year


def _parse_day_first(text: str) -> date | None:
    parts = _slash_parts(text)
    if parts is None:
        return None
    day, month, year = parts
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_month_first(text: str) -> date | None:
    parts = _slash_parts(text)
    if parts is None:
        return None
    month, day, year = parts
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_free_form(text: str) -> date | None:
    # A bare number would otherwise be read as a day of the current month.
    if not re.search(r"[A-Za-z]", text) and not re.search(r"\d+\D+\d+", text):
        return None
    try:
        return dateutil_parser.parse(text, dayfirst=True, fuzzy=False).date()
    except (ValueError, OverflowError):
        return None


DATE_STRATEGIES: Sequence[tuple[str, DateStrategy]] = (
    ("iso", _parse_iso),
    ("dd/mm/yyyy", _parse_day_first),
    ("mm/dd/yyyy", _parse_month_first),
    ("free_form", _parse_free_form),
)


def parse_date(value: object | None) -> date | None:
    """Return the first valid calendar date any strategy reads from ``value``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for _name, strategy in DATE_STRATEGIES:
        parsed = strategy(text)
        if parsed is not None:
            return parsed
    return None


__all__ = ["DATE_STRATEGIES", "parse_date"]
