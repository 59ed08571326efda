"""
Header and event-type mapping rules for calendar imports.

The rules live in a versioned YAML file (``config/mappings/calendar_v1.yaml``
by default, overridable with ``IMPORTER_CALENDAR_MAPPING_PATH``) so they can be
tested and extended without touching the code that walks them.

Header rules are checked in file order. The first rule whose keyword appears
in a header cell decides that cell's field, and a later header matching the
same field replaces the earlier column. The shipped order checks the specific
fields (dates, club, location, type, notes, coordinator) before the generic
``name`` rule. Checking ``name`` first would send "Club Name" and "Event Type"
to ``name``; with this order "Start Date", "End Date", "Club Name" and
"Event Type" each land on their own field, and only headers such as "Event",
"Event Name" or "Title" map to ``name``.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Pattern, Sequence

import yaml
from flask import current_app

from club_admin.importer.models import EventType

FIELD_NAME = "name"
FIELD_START_DATE = "startDate"
FIELD_END_DATE = "endDate"
FIELD_CLUB = "club"
FIELD_LOCATION = "location"
FIELD_TYPE = "type"
FIELD_NOTES = "notes"
FIELD_COORDINATOR = "coordinator"

MAPPED_FIELDS: tuple[str, ...] = (
    FIELD_NAME,
    FIELD_START_DATE,
    FIELD_END_DATE,
    FIELD_CLUB,
    FIELD_LOCATION,
    FIELD_TYPE,
    FIELD_NOTES,
    FIELD_COORDINATOR,
)

DEFAULT_MAPPING_PATH = Path(__file__).resolve().parents[3] / "config" / "mappings" / "calendar_v1.yaml"
MAPPING_CACHE_KEY = "_importer_calendar_mapping_cache"


class MappingLoadError(RuntimeError):
    """Raised when a mapping specification cannot be loaded or validated."""


@dataclass(frozen=True)
class ColumnRule:
    """Assign ``field`` to any header containing one of ``keywords``."""

    field: str
    keywords: tuple[str, ...]

    def matches(self, header: str) -> bool:
        lowered = header.lower()
        return any(keyword in lowered for keyword in self.keywords)


@dataclass(frozen=True)
class EventTypePattern:
    canonical_name: str
    pattern: Pattern[str]


@dataclass(frozen=True)
class CalendarMappingSpec:
    version: int
    adapter: str
    column_rules: tuple[ColumnRule, ...]
    event_type_patterns: tuple[EventTypePattern, ...]
    checksum: str
    path: Path


def _column_rule(entry: Any) -> ColumnRule:
    if not isinstance(entry, Mapping):
        raise MappingLoadError(f"Column rule must be a mapping, got {entry!r}")
    field = str(entry.get("field") or "").strip()
    if field not in MAPPED_FIELDS:
        raise MappingLoadError(f"Unknown column field {field!r}; expected one of {', '.join(MAPPED_FIELDS)}.")
    keywords = entry.get("keywords")
    if isinstance(keywords, str) or not keywords:
        raise MappingLoadError(f"Column rule for '{field}' needs a list of keywords.")
    cleaned = tuple(str(keyword).strip().lower() for keyword in keywords if str(keyword).strip())
    if not cleaned:
        raise MappingLoadError(f"Column rule for '{field}' needs a list of keywords.")
    return ColumnRule(field, cleaned)


def _event_type_pattern(entry: Any) -> EventTypePattern:
    if not isinstance(entry, Mapping):
        raise MappingLoadError(f"Event type pattern must be a mapping, got {entry!r}")
    name = str(entry.get("name") or "").strip()
    expression = entry.get("pattern")
    if not name or not expression:
        raise MappingLoadError(f"Event type pattern needs 'name' and 'pattern': {entry!r}")
    try:
        compiled = re.compile(str(expression), re.IGNORECASE)
    except re.error as exc:
        raise MappingLoadError(f"Invalid pattern for event type '{name}': {exc}") from exc
    return EventTypePattern(name, compiled)


def load_calendar_mapping(path: str | Path) -> CalendarMappingSpec:
    """
    Load and validate a YAML calendar mapping specification.
    """

    path = Path(path)
    if not path.exists():
        raise MappingLoadError(f"Mapping file not found at {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise MappingLoadError(f"Failed to parse mapping YAML at {path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise MappingLoadError(f"Mapping file at {path} must contain a mapping.")

    try:
        version = int(raw["version"])
        adapter = str(raw.get("adapter", "")).strip() or "calendar"
        columns_payload = raw["columns"]
    except KeyError as exc:
        raise MappingLoadError(f"Missing required mapping attribute: {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise MappingLoadError(f"Invalid mapping attribute: {exc}") from exc

    if not isinstance(columns_payload, list) or not columns_payload:
        raise MappingLoadError("Mapping 'columns' must be a non-empty list.")
    patterns_payload = raw.get("event_types") or []
    if not isinstance(patterns_payload, list):
        raise MappingLoadError("Mapping 'event_types' must be a list.")

    return CalendarMappingSpec(
        version=version,
        adapter=adapter,
        column_rules=tuple(_column_rule(entry) for entry in columns_payload),
        event_type_patterns=tuple(_event_type_pattern(entry) for entry in patterns_payload),
        checksum=_compute_checksum(raw),
        path=path,
    )


def get_active_calendar_mapping(app=None) -> CalendarMappingSpec:
    """
    Load the configured calendar mapping spec (cached on the app).
    The cache is invalidated when the file modification time changes.
    """

    target = app if app is not None else current_app
    config_path = Path(target.config.get("IMPORTER_CALENDAR_MAPPING_PATH") or DEFAULT_MAPPING_PATH)
    if not config_path.exists():
        raise MappingLoadError(f"Calendar mapping file not found at {config_path}")

    cache: dict[str, tuple[CalendarMappingSpec, float]] = target.extensions.setdefault(MAPPING_CACHE_KEY, {})
    current_mtime = config_path.stat().st_mtime
    cached_entry = cache.get(str(config_path))
    if cached_entry:
        cached_spec, cached_mtime = cached_entry
        if current_mtime == cached_mtime:
            return cached_spec
        target.logger.debug("Calendar mapping file changed, reloading: %s", config_path)

    spec = load_calendar_mapping(config_path)
    cache[str(config_path)] = (spec, current_mtime)
    return spec


def _compute_checksum(payload: Mapping[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


DEFAULT_MAPPING = load_calendar_mapping(DEFAULT_MAPPING_PATH)
COLUMN_RULES: tuple[ColumnRule, ...] = DEFAULT_MAPPING.column_rules
EVENT_TYPE_PATTERNS: tuple[EventTypePattern, ...] = DEFAULT_MAPPING.event_type_patterns


def detect_column_mappings(
    headers: Sequence[str],
    rules: Iterable[ColumnRule] = COLUMN_RULES,
) -> dict[str, int]:
    """Return a sparse ``field -> column index`` mapping for ``headers``."""

    rule_list = tuple(rules)
    mappings: dict[str, int] = {}
    for index, header in enumerate(headers):
        text = str(header or "").strip()
        if not text:
            continue
        for rule in rule_list:
            if rule.matches(text):
                mappings[rule.field] = index
                break
    return mappings


def cell_for(row: Sequence[str], mappings: Mapping[str, int], field: str) -> str | None:
    """Return the stripped cell mapped to ``field`` or ``None`` when unmapped or out of range."""
    index = mappings.get(field)
    if index is None or index >= len(row):
        return None
    value = row[index]
    return str(value).strip() if value is not None else ""


QUALIFIER_PATTERN = re.compile(r"\bqualifier\b", re.IGNORECASE)


def _normalize_type_name(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip().lower())


def resolve_event_type(
    raw_type: str | None,
    event_types: Iterable[EventType],
    patterns: Iterable[EventTypePattern] = EVENT_TYPE_PATTERNS,
) -> EventType | None:
    """
    Match a free-text event type against the reference list.

    Exact (case-insensitive) names win; otherwise the first pattern that
    matches the raw text names the canonical type to look up.
    """

    text = (raw_type or "").strip()
    if not text:
        return None
    known = {_normalize_type_name(event_type.name): event_type for event_type in event_types}
    if not known:
        return None

    exact = known.get(_normalize_type_name(text))
    if exact is not None:
        return exact

    for entry in patterns:
        if entry.pattern.search(text):
            candidate = known.get(_normalize_type_name(entry.canonical_name))
            if candidate is not None:
                return candidate
    return None


def is_qualifier(*values: str | None) -> bool:
    return any(QUALIFIER_PATTERN.search(value or "") for value in values)


__all__ = [
    "COLUMN_RULES",
    "CalendarMappingSpec",
    "ColumnRule",
    "DEFAULT_MAPPING",
    "DEFAULT_MAPPING_PATH",
    "EVENT_TYPE_PATTERNS",
    "EventTypePattern",
    "MAPPED_FIELDS",
    "MappingLoadError",
    "cell_for",
    "detect_column_mappings",
    "get_active_calendar_mapping",
    "is_qualifier",
    "load_calendar_mapping",
    "resolve_event_type",
]
