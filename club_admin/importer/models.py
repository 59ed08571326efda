"""
In-memory records for the calendar import pipeline.

Imported events and batches live only in memory until they are submitted to
the club administration API, which owns the committed state. Payload helpers
translate to and from the camelCase JSON that API speaks.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Mapping


class EventStatus(str, enum.Enum):
    """Club-match state of an imported event."""

    PENDING = "pending"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    ERROR = "error"


class BatchStatus(str, enum.Enum):
    """Lifecycle states for an import batch."""

    DRAFT = "draft"
    REVIEWING = "reviewing"
    READY = "ready"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Club:
    id: str
    name: str
    zone_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Club":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name") or ""),
            zone_id=payload.get("zoneId"),
        )


@dataclass(frozen=True)
class EventType:
    id: str
    name: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EventType":
        return cls(id=str(payload.get("id", "")), name=str(payload.get("name") or ""))


@dataclass(frozen=True)
class Zone:
    id: str
    name: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Zone":
        return cls(id=str(payload.get("id", "")), name=str(payload.get("name") or ""))


@dataclass(frozen=True)
class ReferenceData:
    """Externally owned lists used to match and validate imported rows."""

    clubs: tuple[Club, ...] = ()
    event_types: tuple[EventType, ...] = ()
    zones: tuple[Zone, ...] = ()


@dataclass(frozen=True)
class ClubMatchSuggestion:
    """Result of matching free-text club names against the known clubs."""

    club_id: str
    club_name: str
    confidence: float
    reason: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "clubId": self.club_id,
            "clubName": self.club_name,
            "confidence": self.confidence,
            "reason": self.reason,
        }


def _format_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _coerce_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    # Timestamps serialised by the API carry a time component.
    return date.fromisoformat(text[:10])


@dataclass
class ImportedEvent:
    """One calendar entry extracted from a source document."""

    id: str
    original_data: list[str]
    name: str
    start_date: date
    end_date: date
    club_name: str = ""
    event_type: str = ""
    location: str = ""
    notes: str = ""
    coordinator_name: str = ""
    coordinator_contact: str = ""
    is_qualifier: bool = False
    club_id: str | None = None
    zone_id: str | None = None
    event_type_id: str | None = None
    status: EventStatus = EventStatus.PENDING
    match_confidence: float | None = None
    validation_errors: list[str] = field(default_factory=list)
    split_events: list["ImportedEvent"] | None = None

    @property
    def is_multi_day(self) -> bool:
        return bool(self.split_events) and len(self.split_events) > 1

    @property
    def is_importable(self) -> bool:
        return self.status == EventStatus.MATCHED and not self.validation_errors

    def as_sibling(self) -> "ImportedEvent":
        """Copy of this event for another day's ``split_events``; lists are not shared."""
        return replace(
            self,
            original_data=list(self.original_data),
            validation_errors=list(self.validation_errors),
            split_events=None,
        )

    def to_payload(self, *, include_splits: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "originalData": list(self.original_data),
            "name": self.name,
            "startDate": _format_date(self.start_date),
            "endDate": _format_date(self.end_date),
            "clubName": self.club_name,
            "eventType": self.event_type,
            "location": self.location,
            "notes": self.notes,
            "coordinatorName": self.coordinator_name,
            "coordinatorContact": self.coordinator_contact,
            "isQualifier": self.is_qualifier,
            "status": self.status.value,
            "validationErrors": list(self.validation_errors),
        }
        if self.club_id is not None:
            payload["clubId"] = self.club_id
        if self.zone_id is not None:
            payload["zoneId"] = self.zone_id
        if self.event_type_id is not None:
            payload["eventTypeId"] = self.event_type_id
        if self.match_confidence is not None:
            payload["matchConfidence"] = self.match_confidence
        if include_splits and self.split_events is not None:
            # Split siblings reference each other; nested splits would recurse.
            payload["splitEvents"] = [event.to_payload(include_splits=False) for event in self.split_events]
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ImportedEvent":
        start = _coerce_date(payload.get("startDate"))
        end_raw = payload.get("endDate")
        splits = payload.get("splitEvents")
        confidence = payload.get("matchConfidence")
        return cls(
            id=str(payload.get("id", "")),
            original_data=[str(cell) for cell in payload.get("originalData") or ()],
            name=str(payload.get("name") or ""),
            start_date=start,
            end_date=_coerce_date(end_raw) if end_raw else start,
            club_name=str(payload.get("clubName") or ""),
            event_type=str(payload.get("eventType") or ""),
            location=str(payload.get("location") or ""),
            notes=str(payload.get("notes") or ""),
            coordinator_name=str(payload.get("coordinatorName") or ""),
            coordinator_contact=str(payload.get("coordinatorContact") or ""),
            is_qualifier=bool(payload.get("isQualifier", False)),
            club_id=payload.get("clubId"),
            zone_id=payload.get("zoneId"),
            event_type_id=payload.get("eventTypeId"),
            status=EventStatus(payload.get("status") or EventStatus.PENDING.value),
            match_confidence=float(confidence) if confidence is not None else None,
            validation_errors=[str(message) for message in payload.get("validationErrors") or ()],
            split_events=[cls.from_payload(item) for item in splits] if splits is not None else None,
        )


@dataclass(frozen=True)
class BatchSummary:
    """Cached counts derived from a batch's events."""

    total_events: int = 0
    matched_clubs: int = 0
    unmatched_clubs: int = 0
    multi_day_events: int = 0
    validation_errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "totalEvents": self.total_events,
            "matchedClubs": self.matched_clubs,
            "unmatchedClubs": self.unmatched_clubs,
            "multiDayEvents": self.multi_day_events,
            "validationErrors": self.validation_errors,
        }


@dataclass(frozen=True)
class ImportBatch:
    """A named, reviewable collection of imported events.

    Batches are immutable; review edits and lifecycle transitions produce new
    instances via :func:`dataclasses.replace` so a failed API call never
    leaves a half-updated batch behind.
    """

    id: str
    name: str
    file_name: str
    file_size: int
    created_at: datetime
    status: BatchStatus
    events: tuple[ImportedEvent, ...]
    summary: BatchSummary
    imported_event_ids: tuple[str, ...] = ()
    remote_id: str | None = None
    parse_method: str | None = None
    error: str | None = None

    @property
    def unmatched_events(self) -> tuple[ImportedEvent, ...]:
        return tuple(event for event in self.events if event.status == EventStatus.UNMATCHED)

    @property
    def importable_count(self) -> int:
        return sum(1 for event in self.events if event.is_importable)

    def with_changes(self, **changes: Any) -> "ImportBatch":
        return replace(self, **changes)

    def to_payload(self) -> dict[str, Any]:
        """Return the ``batchData`` body used when creating a remote batch."""
        return {
            "name": self.name,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "events": [event.to_payload() for event in self.events],
            "summary": self.summary.as_dict(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ImportBatch":
        from .pipeline.batch import calculate_batch_summary

        events = tuple(ImportedEvent.from_payload(item) for item in payload.get("events") or ())
        created_raw = payload.get("createdAt")
        if isinstance(created_raw, str) and created_raw:
            created_at = datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
        else:
            created_at = datetime.now(timezone.utc)
        remote_id = payload.get("id")
        return cls(
            id=str(remote_id or ""),
            name=str(payload.get("name") or ""),
            file_name=str(payload.get("fileName") or ""),
            file_size=int(payload.get("fileSize") or 0),
            created_at=created_at,
            status=BatchStatus(payload.get("status") or BatchStatus.DRAFT.value),
            events=events,
            summary=calculate_batch_summary(events),
            imported_event_ids=tuple(str(item) for item in payload.get("importedEventIds") or ()),
            remote_id=str(remote_id) if remote_id else None,
            error=payload.get("error"),
        )


__all__ = [
    "BatchStatus",
    "BatchSummary",
    "Club",
    "ClubMatchSuggestion",
    "EventStatus",
    "EventType",
    "ImportBatch",
    "ImportedEvent",
    "ReferenceData",
    "Zone",
]
