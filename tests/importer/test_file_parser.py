from __future__ import annotations

import io
import zipfile
from datetime import date, datetime

import openpyxl
import pytest

from club_admin.importer.adapters import (
    ACCEPTED_EXTENSIONS,
    TEMPLATE_HEADER,
    detect_parse_method,
    extract_docx_text,
    is_supported_file,
    parse_csv_text,
    parse_delimited_text,
    parse_docx_calendar_text,
    parse_extracted_pdf_text,
    parse_upload,
    placeholder_rows,
)
from club_admin.importer.adapters import docx as docx_adapter
from club_admin.importer.adapters.pdf import scan_text_operators
from club_admin.importer.adapters.text import decode_text

CSV_BODY = (
    "Event Name,Start Date,End Date,Club,Location,Type\n"
    '"Spring Rally",2025-03-15,2025-03-15,Melbourne Pony Club,Main Arena,Rally\n'
    "\n"
    "Autumn Camp,2025-04-10,2025-04-12,Geelong Pony Club,Bush Camp,Camp\n"
)

CALENDAR_TEXT = (
    "Pony Club Calendar\n"
    "SEPTEMBER 2025\n"
    "15 - Spring Rally - Melbourne Pony Club - Main Arena\n"
    "20-21 Show Jumping Clinic | Geelong Pony Club\n"
    "Saturday 5 October 2025 - Dressage Day - Ballarat Riding Club\n"
)


def _docx_bytes(paragraphs: list[str]) -> bytes:
    body = "".join(f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>" for text in paragraphs)
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{body}</w:body></w:document>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr("word/document.xml", document)
    return buffer.getvalue()


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_parse_csv_text_strips_quotes_and_blank_lines():
    rows = parse_csv_text(CSV_BODY)

    assert rows[0] == list(TEMPLATE_HEADER)
    assert rows[1][0] == "Spring Rally"
    assert len(rows) == 3


def test_parse_delimited_text_prefers_tabs():
    rows = parse_delimited_text("Event\tDate\tClub\nRally, junior\t2025-03-15\tGeelong Pony Club\n")

    assert rows[1] == ["Rally, junior", "2025-03-15", "Geelong Pony Club"]


def test_parse_delimited_text_falls_back_to_semicolons():
    rows = parse_delimited_text("Event;Date\nRally;2025-03-15\n")

    assert rows == [["Event", "Date"], ["Rally", "2025-03-15"]]


def test_decode_text_handles_bom_and_cp1252():
    assert decode_text("\ufeffEvent".encode("utf-8")) == "Event"
    assert decode_text("Caf\xe9 Rally".encode("cp1252")) == "Café Rally"


@pytest.mark.parametrize(
    ("file_name", "content_type", "expected"),
    [
        ("calendar.csv", None, "csv"),
        ("calendar.bin", "text/csv", "csv"),
        ("calendar.xlsx", None, "excel"),
        ("calendar.XLS", None, "excel"),
        ("calendar.pdf", None, "pdf"),
        ("scan", "application/pdf", "pdf"),
        ("calendar.docx", None, "docx"),
        ("calendar.doc", None, "docx"),
        ("calendar.txt", None, "text"),
    ],
)
def test_detect_parse_method(file_name, content_type, expected):
    assert detect_parse_method(file_name, content_type) == expected


def test_is_supported_file_checks_extension_case_insensitively():
    assert is_supported_file("Calendar.CSV")
    assert not is_supported_file("calendar.json")
    assert not is_supported_file("")


def test_parse_upload_csv_returns_rows():
    grid = parse_upload(CSV_BODY.encode("utf-8"), "calendar.csv", "text/csv")

    assert grid.method == "csv"
    assert grid.placeholder is False
    assert grid.header == TEMPLATE_HEADER
    assert [row[0] for row in grid.data_rows] == ["Spring Rally", "Autumn Camp"]


def test_parse_upload_header_only_csv_substitutes_placeholder():
    grid = parse_upload(b"Event Name,Start Date\n", "calendar.csv")

    assert grid.placeholder is True
    assert grid.data_rows[0][0] == "CSV Import - Manual Review Required"
    assert grid.data_rows[0][3] == "Please Review"


def test_parse_upload_excel_reads_first_sheet():
    data = _xlsx_bytes(
        [
            ["Event Name", "Start Date", "End Date", "Club"],
            ["Spring Rally", datetime(2025, 3, 15), datetime(2025, 3, 16), "Melbourne Pony Club"],
            [None, None, None, None],
        ]
    )

    grid = parse_upload(data, "calendar.xlsx")

    assert grid.method == "excel"
    assert grid.placeholder is False
    assert grid.data_rows == (("Spring Rally", "2025-03-15", "2025-03-16", "Melbourne Pony Club"),)


def test_parse_upload_legacy_xls_degrades_to_placeholder():
    grid = parse_upload(b"\xd0\xcf\x11\xe0 legacy workbook", "calendar.xls")

    assert grid.placeholder is True
    assert grid.data_rows[0][0] == "Excel Import - Manual Review Required"


def test_parse_upload_corrupt_workbook_degrades_to_placeholder():
    grid = parse_upload(b"definitely not a zip", "calendar.xlsx")

    assert grid.placeholder is True
    assert grid.message.startswith("Could not read file")


def test_parse_upload_docx_uses_calendar_heuristics():
    data = _docx_bytes(["SEPTEMBER 2025", "15 - Spring Rally - Melbourne Pony Club - Main Arena"])

    grid = parse_upload(data, "calendar.docx")

    assert grid.method == "docx"
    assert grid.placeholder is False
    assert grid.data_rows == (
        ("Spring Rally", "2025-09-15", "2025-09-15", "Melbourne Pony Club", "Main Arena", "Rally"),
    )


def test_extract_docx_text_falls_back_to_printable_runs():
    text = extract_docx_text(b"\x00\x01Spring Rally 15/09/2025\x00\x02")

    assert "Spring Rally 15/09/2025" in text


def test_parse_docx_calendar_text_handles_headings_ranges_and_named_dates():
    rows = parse_docx_calendar_text(CALENDAR_TEXT, default_year=2024)

    assert rows == [
        ["Spring Rally", "2025-09-15", "2025-09-15", "Melbourne Pony Club", "Main Arena", "Rally"],
        ["Show Jumping Clinic", "2025-09-20", "2025-09-21", "Geelong Pony Club", "", "Show Jumping"],
        ["Dressage Day", "2025-10-05", "2025-10-05", "Ballarat Riding Club", "", "Dressage"],
    ]


def test_parse_docx_calendar_text_ignores_day_lines_without_month():
    assert parse_docx_calendar_text("15 - Spring Rally - Melbourne Pony Club") == []


def test_parse_extracted_pdf_text_matches_event_lines():
    rows = parse_extracted_pdf_text(
        "Event Date Club\nSpring Rally 15/03/2025 Melbourne Pony Club Main Arena\n"
    )

    assert rows == [
        ["Spring Rally", "15/03/2025", "15/03/2025", "Melbourne Pony Club", "Main Arena", "Rally"],
    ]


def test_parse_extracted_pdf_text_accepts_comma_lines():
    rows = parse_extracted_pdf_text("Gymkhana, 2025-05-01, Geelong Pony Club\n")

    assert rows == [["Gymkhana", "2025-05-01", "Geelong Pony Club"]]


def test_scan_text_operators_reads_uncompressed_streams():
    assert scan_text_operators(b"stream\nBT (Spring Rally) Tj ET\nendstream") == "(Spring Rally) Tj"


@pytest.mark.parametrize("extension", ACCEPTED_EXTENSIONS)
def test_parse_upload_never_returns_empty_grid(extension):
    grid = parse_upload(b"\x00\x01\x02", f"calendar{extension}")

    assert len(grid.rows) >= 2
    assert grid.header
    assert any(cell.strip() for cell in grid.data_rows[0])


def test_placeholder_rows_are_dated_today():
    rows = placeholder_rows("pdf", today=date(2025, 3, 1))

    assert rows[1] == [
        "PDF Import - Manual Review Required",
        "2025-03-01",
        "2025-03-01",
        "Please Review",
        "Extracted from PDF",
        "Rally",
    ]


def test_parse_upload_oversized_docx_body_becomes_placeholder(monkeypatch):
    monkeypatch.setattr(docx_adapter, "MAX_DOCUMENT_XML_BYTES", 4096)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("word/document.xml", " " * 1024 * 1024)

    grid = parse_upload(buffer.getvalue(), "calendar.docx")

    assert len(buffer.getvalue()) < 16 * 1024
    assert grid.placeholder is True
    assert "limit 4096" in grid.message
