"""
Batch lifecycle rules and review-stage edits.

Transitions are data: ``ALLOWED_TRANSITIONS`` lists every legal move and the
guards below are pure functions over an :class:`ImportBatch`. Edits return a
new batch whose summary has been recomputed from its events.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping

from club_admin.importer.models import (
    BatchStatus,
    BatchSummary,
    Club,
    EventStatus,
    ImportBatch,
    ImportedEvent,
)

ALLOWED_TRANSITIONS: Mapping[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.DRAFT: frozenset({BatchStatus.REVIEWING}),
    BatchStatus.REVIEWING: frozenset({BatchStatus.READY, BatchStatus.IMPORTING}),
    BatchStatus.READY: frozenset({BatchStatus.REVIEWING, BatchStatus.IMPORTING}),
    BatchStatus.IMPORTING: frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED}),
    BatchStatus.COMPLETED: frozenset({BatchStatus.ROLLED_BACK}),
    # A failed execute may be retried once the cause is fixed.
    BatchStatus.FAILED: frozenset({BatchStatus.REVIEWING, BatchStatus.IMPORTING}),
    BatchStatus.ROLLED_BACK: frozenset(),
}

EXECUTABLE_STATUSES = frozenset({BatchStatus.REVIEWING, BatchStatus.READY, BatchStatus.FAILED})
EDITABLE_STATUSES = frozenset({BatchStatus.DRAFT, BatchStatus.REVIEWING, BatchStatus.READY, BatchStatus.FAILED})


class BatchError(Exception):
    """Base exception for batch lifecycle failures."""


class InvalidBatchTransition(BatchError):
    """Raised when a batch is moved between states that are not connected."""

    def __init__(self, source: BatchStatus, target: BatchStatus) -> None:
        super().__init__(f"Cannot move import batch from '{source.value}' to '{target.value}'.")
        self.source = source
        self.target = target


class BatchNotExecutable(BatchError):
    """Raised when the execution gate rejects a batch."""

    def __init__(self, message: str, *, unmatched: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.unmatched = tuple(unmatched)


class BatchNotRollbackable(BatchError):
    """Raised when a rollback is requested for a batch that has nothing to reverse."""


class BatchNotEditable(BatchError):
    """Raised when review edits are attempted after the batch left review."""


def calculate_batch_summary(events: Iterable[ImportedEvent]) -> BatchSummary:
    """Aggregate counts for the batch summary panel."""
    total = matched = unmatched = multi_day = with_errors = 0
    for event in events:
        total += 1
        if event.status == EventStatus.MATCHED:
            matched += 1
        elif event.status == EventStatus.UNMATCHED:
            unmatched += 1
        if event.is_multi_day:
            multi_day += 1
        if event.validation_errors:
            with_errors += 1
    return BatchSummary(
        total_events=total,
        matched_clubs=matched,
        unmatched_clubs=unmatched,
        multi_day_events=multi_day,
        validation_errors=with_errors,
    )


def can_transition(source: BatchStatus, target: BatchStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def ensure_transition(source: BatchStatus, target: BatchStatus) -> None:
    if not can_transition(source, target):
        raise InvalidBatchTransition(source, target)


def transition(batch: ImportBatch, target: BatchStatus, **changes: Any) -> ImportBatch:
    """Return a copy of ``batch`` in ``target`` state, applying ``changes``."""
    ensure_transition(batch.status, target)
    return replace(batch, status=target, **changes)


def can_execute(batch: ImportBatch) -> bool:
    return batch.status in EXECUTABLE_STATUSES and not batch.unmatched_events


def ensure_executable(batch: ImportBatch) -> None:
    """
    Enforce the execution gate.

    Any unmatched event blocks the whole batch. Validation errors do not block
    execution; the persistence API skips those events on its own.
    """
    if batch.status not in EXECUTABLE_STATUSES:
        raise BatchNotExecutable(f"Import batch in status '{batch.status.value}' cannot be executed.")
    unmatched = batch.unmatched_events
    if unmatched:
        raise BatchNotExecutable(
            f"{len(unmatched)} event(s) have no matching club. Assign a club or remove them before importing.",
            unmatched=(event.id for event in unmatched),
        )


def can_rollback(batch: ImportBatch) -> bool:
    return batch.status == BatchStatus.COMPLETED and bool(batch.imported_event_ids)


def ensure_rollbackable(batch: ImportBatch) -> None:
    if batch.status != BatchStatus.COMPLETED:
        raise BatchNotRollbackable(f"Only completed imports can be rolled back (status is '{batch.status.value}').")
    if not batch.imported_event_ids:
        raise BatchNotRollbackable("Import batch has no imported events to roll back.")


def _ensure_editable(batch: ImportBatch) -> None:
    if batch.status not in EDITABLE_STATUSES:
        raise BatchNotEditable(f"Import batch in status '{batch.status.value}' can no longer be edited.")


def _refresh_siblings(events: tuple[ImportedEvent, ...]) -> tuple[ImportedEvent, ...]:
    """Rebuild each day's ``split_events`` from the current days; removed days drop out."""
    current = {event.id: event for event in events}
    refreshed = []
    for event in events:
        if event.split_events is not None:
            siblings = [current[day.id].as_sibling() for day in event.split_events if day.id in current]
            event = replace(event, split_events=siblings)
        refreshed.append(event)
    return tuple(refreshed)


def _with_events(batch: ImportBatch, events: Iterable[ImportedEvent]) -> ImportBatch:
    event_tuple = _refresh_siblings(tuple(events))
    return replace(batch, events=event_tuple, summary=calculate_batch_summary(event_tuple))


def _find_index(batch: ImportBatch, event_id: str) -> int:
    for index, event in enumerate(batch.events):
        if event.id == event_id:
            return index
    raise KeyError(f"Event '{event_id}' is not part of batch '{batch.id}'.")


def update_event(batch: ImportBatch, event_id: str, **updates: Any) -> ImportBatch:
    """Apply field updates to one event and refresh the summary."""
    _ensure_editable(batch)
    index = _find_index(batch, event_id)
    events = list(batch.events)
    events[index] = replace(events[index], **updates)
    return _with_events(batch, events)


def remove_event(batch: ImportBatch, event_id: str) -> ImportBatch:
    _ensure_editable(batch)
    index = _find_index(batch, event_id)
    return _with_events(batch, batch.events[:index] + batch.events[index + 1 :])


def assign_club(batch: ImportBatch, event_id: str, club: Club) -> ImportBatch:
    """Resolve an unmatched event by manual club assignment."""
    return update_event(
        batch,
        event_id,
        club_id=club.id,
        club_name=club.name,
        zone_id=club.zone_id,
        status=EventStatus.MATCHED,
        match_confidence=100.0,
    )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "BatchError",
    "BatchNotEditable",
    "BatchNotExecutable",
    "BatchNotRollbackable",
    "InvalidBatchTransition",
    "assign_club",
    "calculate_batch_summary",
    "can_execute",
    "can_rollback",
    "can_transition",
    "ensure_executable",
    "ensure_rollbackable",
    "ensure_transition",
    "remove_event",
    "transition",
    "update_event",
]
