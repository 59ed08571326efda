from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

from club_admin.importer.mapping import (
    COLUMN_RULES,
    DEFAULT_MAPPING,
    DEFAULT_MAPPING_PATH,
    FIELD_CLUB,
    FIELD_NAME,
    FIELD_START_DATE,
    FIELD_TYPE,
    CalendarMappingSpec,
    MappingLoadError,
    get_active_calendar_mapping,
    load_calendar_mapping,
)
from club_admin.importer.service import CalendarImportService

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)

CUSTOM_MAPPING = """
version: 2
adapter: calendar
columns:
  - field: startDate
    keywords: [when]
  - field: club
    keywords: [host]
  - field: type
    keywords: [discipline]
  - field: name
    keywords: [activity]
event_types:
  - name: Show Jumping
    pattern: '\\bjumping\\b'
"""


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_default_mapping_ships_with_package():
    assert DEFAULT_MAPPING_PATH.exists()
    assert DEFAULT_MAPPING.version == 1
    assert DEFAULT_MAPPING.adapter == "calendar"
    assert COLUMN_RULES == DEFAULT_MAPPING.column_rules
    assert COLUMN_RULES[0].field == FIELD_START_DATE
    assert COLUMN_RULES[-1].field == FIELD_NAME
    assert [entry.canonical_name for entry in DEFAULT_MAPPING.event_type_patterns][:2] == [
        "One Day Event",
        "Show Jumping",
    ]


def test_load_calendar_mapping_success(tmp_path):
    spec = load_calendar_mapping(_write(tmp_path / "mapping.yaml", CUSTOM_MAPPING))

    assert isinstance(spec, CalendarMappingSpec)
    assert spec.version == 2
    assert [rule.field for rule in spec.column_rules] == [FIELD_START_DATE, FIELD_CLUB, FIELD_TYPE, FIELD_NAME]
    assert spec.column_rules[1].matches("Host Club")
    assert spec.event_type_patterns[0].pattern.search("Junior JUMPING day")
    assert len(spec.checksum) == 64


def test_checksum_tracks_content(tmp_path):
    first = load_calendar_mapping(_write(tmp_path / "a.yaml", CUSTOM_MAPPING))
    same = load_calendar_mapping(_write(tmp_path / "b.yaml", CUSTOM_MAPPING))
    changed = load_calendar_mapping(_write(tmp_path / "c.yaml", CUSTOM_MAPPING.replace("version: 2", "version: 3")))

    assert first.checksum == same.checksum
    assert first.checksum != changed.checksum


@pytest.mark.parametrize(
    "text, message",
    [
        ("version: 1\ncolumns: [\n", "Failed to parse"),
        ("adapter: calendar\ncolumns:\n  - field: name\n    keywords: [name]\n", "version"),
        ("version: 1\ncolumns:\n  - field: venue\n    keywords: [venue]\n", "Unknown column field"),
        ("version: 1\ncolumns:\n  - field: name\n    keywords: name\n", "list of keywords"),
        ("version: 1\ncolumns: []\n", "non-empty list"),
        (
            "version: 1\ncolumns:\n  - field: name\n    keywords: [name]\n"
            "event_types:\n  - name: Rally\n    pattern: '(rally'\n",
            "Invalid pattern",
        ),
    ],
)
def test_load_calendar_mapping_rejects_invalid_files(tmp_path, text, message):
    with pytest.raises(MappingLoadError, match=message):
        load_calendar_mapping(_write(tmp_path / "mapping-invalid.yaml", text))


def test_load_calendar_mapping_missing_file(tmp_path):
    with pytest.raises(MappingLoadError, match="not found"):
        load_calendar_mapping(tmp_path / "missing.yaml")


def test_get_active_calendar_mapping_is_cached(build_importer_app, monkeypatch, tmp_path):
    mapping_yaml = _write(tmp_path / "mapping.yaml", CUSTOM_MAPPING)
    app = build_importer_app()

    monkeypatch.setitem(app.config, "IMPORTER_CALENDAR_MAPPING_PATH", str(mapping_yaml))
    with app.app_context():
        spec = get_active_calendar_mapping()
        assert spec.version == 2
        # cached lookup
        assert get_active_calendar_mapping() is spec


def test_get_active_calendar_mapping_reloads_changed_file(build_importer_app, monkeypatch, tmp_path):
    mapping_yaml = _write(tmp_path / "mapping.yaml", CUSTOM_MAPPING)
    app = build_importer_app()
    monkeypatch.setitem(app.config, "IMPORTER_CALENDAR_MAPPING_PATH", str(mapping_yaml))

    with app.app_context():
        first = get_active_calendar_mapping()
        _write(mapping_yaml, CUSTOM_MAPPING.replace("version: 2", "version: 3"))
        stat = mapping_yaml.stat()
        os.utime(mapping_yaml, (stat.st_atime, stat.st_mtime + 5))
        reloaded = get_active_calendar_mapping()

    assert first.version == 2
    assert reloaded.version == 3
    assert reloaded.checksum != first.checksum


def test_get_active_calendar_mapping_defaults_to_packaged_file(build_importer_app):
    app = build_importer_app(IMPORTER_CALENDAR_MAPPING_PATH=None)

    spec = get_active_calendar_mapping(app)

    assert spec.path == DEFAULT_MAPPING_PATH
    assert spec.checksum == DEFAULT_MAPPING.checksum


def test_configured_mapping_drives_batch_building(build_importer_app, import_service, tmp_path):
    mapping_yaml = _write(tmp_path / "mapping.yaml", CUSTOM_MAPPING)
    app = build_importer_app(service=import_service, IMPORTER_CALENDAR_MAPPING_PATH=str(mapping_yaml))
    upload = (
        "Activity,When,Host,Discipline\n"
        "Junior Jumping,2025-05-04,Geelong Pony Club,Jumping\n"
    ).encode("utf-8")

    with app.app_context():
        batch = import_service.build_batch(upload, "calendar.csv", now=NOW).batch

    event = batch.events[0]
    assert event.name == "Junior Jumping"
    assert event.club_id == "club-geel"
    assert event.event_type == "Show Jumping"
    assert event.event_type_id == "type-sj"


def test_pinned_mapping_is_used_without_app_context(import_service, reference_data, tmp_path):
    pinned = CalendarImportService(
        import_service.client, mapping=load_calendar_mapping(_write(tmp_path / "mapping.yaml", CUSTOM_MAPPING))
    )
    upload = b"Activity,When,Host\nSpring Rally,2025-03-15,Melbourne Pony Club\n"

    batch = pinned.build_batch(upload, "calendar.csv", reference=reference_data, now=NOW).batch

    assert batch.events[0].name == "Spring Rally"
    assert batch.events[0].club_id == "club-melb"
