"""Line-oriented strategies: naive CSV and auto-delimited text."""

from __future__ import annotations

import re

TEMPLATE_HEADER: tuple[str, ...] = ("Event Name", "Start Date", "End Date", "Club", "Location", "Type")

_DELIMITERS = ("\t", ",", ";")
_SURROUNDING_QUOTES = re.compile(r'^"|"$')


def decode_text(data: bytes) -> str:
    """Decode uploaded bytes, tolerating a UTF-8 BOM and legacy single-byte encodings."""
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1")


def split_lines(text: str) -> list[str]:
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def parse_csv_text(text: str) -> list[list[str]]:
    """
    Split each non-blank line on commas and strip surrounding quotes.

    Quoted commas and escaped quotes are not understood; such files should be
    exported with a different delimiter and loaded as text.
    """
    return [[_SURROUNDING_QUOTES.sub("", cell.strip()) for cell in line.split(",")] for line in split_lines(text)]


def split_delimited_line(line: str) -> list[str]:
    for delimiter in _DELIMITERS:
        if delimiter in line:
            return [cell.strip() for cell in line.split(delimiter)]
    return [line.strip()]


def parse_delimited_text(text: str) -> list[list[str]]:
    """Split each line on the first of tab, comma or semicolon it contains."""
    return [split_delimited_line(line) for line in split_lines(text)]


__all__ = [
    "TEMPLATE_HEADER",
    "decode_text",
    "parse_csv_text",
    "parse_delimited_text",
    "split_delimited_line",
    "split_lines",
]
