"""
Row normalization for calendar imports.

Turns parsed grid rows into :class:`ImportedEvent` records: reads mapped
cells, parses dates, matches the club, resolves the event type, records
validation problems and expands multi-day spans into one event per day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterable, Mapping, Sequence

from club_admin.importer.mapping import (
    DEFAULT_MAPPING,
    EVENT_TYPE_PATTERNS,
    FIELD_CLUB,
    FIELD_COORDINATOR,
    FIELD_END_DATE,
    FIELD_LOCATION,
    FIELD_NAME,
    FIELD_NOTES,
    FIELD_START_DATE,
    FIELD_TYPE,
    CalendarMappingSpec,
    EventTypePattern,
    cell_for,
    detect_column_mappings,
    is_qualifier,
    resolve_event_type,
)
from club_admin.importer.models import EventStatus, ImportedEvent, ReferenceData

from .club_matching import MATCH_THRESHOLD, find_best_club_match
from .dates import parse_date

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "Rally"

MESSAGE_NAME_REQUIRED = "Event name is required"
MESSAGE_START_DATE_REQUIRED = "Valid start date is required"
MESSAGE_CLUB_REQUIRED = "Club name is required"


@dataclass
class NormalizationStatistics:
    rows_processed: int = 0
    rows_skipped_short: int = 0
    rows_failed: int = 0
    events_created: int = 0
    failures: list[str] = field(default_factory=list)


def validate_event_fields(name: str, start_date: date | None, club_name: str) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append(MESSAGE_NAME_REQUIRED)
    if start_date is None:
        errors.append(MESSAGE_START_DATE_REQUIRED)
    if not club_name.strip():
        errors.append(MESSAGE_CLUB_REQUIRED)
    return errors


def map_row_to_event(
    row: Sequence[str],
    mappings: Mapping[str, int],
    index: int,
    reference: ReferenceData,
    *,
    batch_token: str,
    default_event_type: str = DEFAULT_EVENT_TYPE,
    match_threshold: float = MATCH_THRESHOLD,
    event_type_patterns: Iterable[EventTypePattern] = EVENT_TYPE_PATTERNS,
    today: date | None = None,
) -> ImportedEvent:
    """Build one event from ``row``; multi-day spans are not expanded here."""

    raw_name = cell_for(row, mappings, FIELD_NAME)
    # Files without a name column still get a readable label; a blank name cell is an error.
    name = raw_name if raw_name is not None else f"Event {index + 1}"
    start_text = cell_for(row, mappings, FIELD_START_DATE) or ""
    end_text = cell_for(row, mappings, FIELD_END_DATE) or start_text
    club_name = cell_for(row, mappings, FIELD_CLUB) or ""
    raw_type = cell_for(row, mappings, FIELD_TYPE) or ""
    notes = cell_for(row, mappings, FIELD_NOTES) or ""

    start_date = parse_date(start_text)
    end_date = parse_date(end_text) or start_date
    validation_errors = validate_event_fields(name, start_date, club_name)

    # Undated rows stay single-day so a lone end date cannot fan out into a long span.
    resolved_start = start_date or today or date.today()
    resolved_end = end_date if start_date is not None and end_date is not None else resolved_start

    club_match = find_best_club_match(club_name, reference.clubs, threshold=match_threshold)
    zone_id = None
    if club_match is not None:
        zone_id = next((club.zone_id for club in reference.clubs if club.id == club_match.club_id), None)

    event_type_name = raw_type or default_event_type
    event_type = resolve_event_type(event_type_name, reference.event_types, event_type_patterns)

    return ImportedEvent(
        id=f"import_{batch_token}_{index}",
        original_data=[str(cell) for cell in row],
        name=name.strip(),
        start_date=resolved_start,
        end_date=resolved_end,
        club_name=club_name,
        event_type=event_type.name if event_type is not None else event_type_name,
        event_type_id=event_type.id if event_type is not None else None,
        location=cell_for(row, mappings, FIELD_LOCATION) or "",
        notes=notes,
        coordinator_name=cell_for(row, mappings, FIELD_COORDINATOR) or "",
        is_qualifier=is_qualifier(name, raw_type),
        club_id=club_match.club_id if club_match is not None else None,
        zone_id=zone_id,
        status=EventStatus.MATCHED if club_match is not None else EventStatus.UNMATCHED,
        match_confidence=club_match.confidence if club_match is not None else None,
        validation_errors=validation_errors,
    )


def _each_day(start: date, end: date) -> list[date]:
    if end < start:
        return [start]
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def create_split_events(event: ImportedEvent) -> list[ImportedEvent]:
    """Expand ``event`` into one single-day event per calendar day it spans."""

    days = _each_day(event.start_date, event.end_date)
    total = len(days)
    split: list[ImportedEvent] = []
    for number, day in enumerate(days, start=1):
        notes = event.notes
        name = event.name
        if total > 1:
            name = f"{event.name} (Day {number})"
            notes = f"{event.notes} \nMulti-day event: Day {number} of {total}".strip()
        split.append(
            replace(
                event,
                id=f"{event.id}_day_{number}",
                start_date=day,
                end_date=day,
                name=name,
                notes=notes,
                validation_errors=list(event.validation_errors),
                split_events=None,
            )
        )
    return split


def expand_multi_day(event: ImportedEvent) -> list[ImportedEvent]:
    """
    Return the records that represent ``event`` in a batch.

    Single-day events pass through untouched. Each day of a multi-day event
    keeps the full list of its sibling days in ``split_events`` so summaries
    can tell which records came from a multi-day source.
    """

    if event.start_date == event.end_date:
        return [event]
    days = create_split_events(event)
    return [replace(day, split_events=[sibling.as_sibling() for sibling in days]) for day in days]


def process_rows(
    grid: Sequence[Sequence[str]],
    reference: ReferenceData,
    *,
    batch_token: str,
    default_event_type: str = DEFAULT_EVENT_TYPE,
    match_threshold: float = MATCH_THRESHOLD,
    statistics: NormalizationStatistics | None = None,
    mapping: CalendarMappingSpec | None = None,
) -> list[ImportedEvent]:
    """Normalize every data row of ``grid`` (header row first) into events."""

    stats = statistics if statistics is not None else NormalizationStatistics()
    if len(grid) < 2:
        return []

    headers, rows = grid[0], grid[1:]
    spec = mapping if mapping is not None else DEFAULT_MAPPING
    mappings = detect_column_mappings(headers, spec.column_rules)
    logger.debug("Detected column mappings: %s", mappings, extra={"importer_column_mappings": mappings})

    events: list[ImportedEvent] = []
    for index, row in enumerate(rows):
        if len(row) < 2:
            stats.rows_skipped_short += 1
            continue
        stats.rows_processed += 1
        try:
            event = map_row_to_event(
                row,
                mappings,
                index,
                reference,
                batch_token=batch_token,
                default_event_type=default_event_type,
                match_threshold=match_threshold,
                event_type_patterns=spec.event_type_patterns,
            )
        except (ValueError, TypeError, OverflowError) as exc:
            stats.rows_failed += 1
            stats.failures.append(f"Row {index + 1}: {exc}")
            logger.warning("Skipping calendar row %s: %s", index + 1, exc)
            continue
        expanded = expand_multi_day(event)
        stats.events_created += len(expanded)
        events.extend(expanded)
    return events


__all__ = [
    "DEFAULT_EVENT_TYPE",
    "MESSAGE_CLUB_REQUIRED",
    "MESSAGE_NAME_REQUIRED",
    "MESSAGE_START_DATE_REQUIRED",
    "NormalizationStatistics",
    "create_split_events",
    "expand_multi_day",
    "map_row_to_event",
    "process_rows",
    "validate_event_fields",
]
