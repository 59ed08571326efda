"""
Batch controller for calendar imports.

Coordinates parsing, normalization and the review -> execute -> rollback
lifecycle against the club administration API. Batches are immutable: each
operation returns a new batch, and an operation that fails leaves the
caller's batch exactly as it was. The API is the only record of committed
state; nothing here compensates for a partially executed batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app, has_app_context

from club_admin.importer.adapters import ParsedGrid, parse_upload
from club_admin.importer.client import ClubAdminClient, ExecuteResult, ImportApiError, RollbackResult
from club_admin.importer.mapping import DEFAULT_MAPPING, CalendarMappingSpec, get_active_calendar_mapping
from club_admin.importer.models import BatchStatus, ImportBatch, ReferenceData
from club_admin.importer.pipeline.batch import (
    BatchNotExecutable,
    BatchNotRollbackable,
    calculate_batch_summary,
    ensure_executable,
    ensure_rollbackable,
    transition,
)
from club_admin.importer.pipeline.club_matching import MATCH_THRESHOLD
from club_admin.importer.pipeline.normalize import DEFAULT_EVENT_TYPE, NormalizationStatistics, process_rows

logger = logging.getLogger(__name__)


def _log():
    return current_app.logger if has_app_context() else logger


@dataclass
class BuildResult:
    """A freshly parsed batch plus diagnostics from the parse and normalize stages."""

    batch: ImportBatch
    grid: ParsedGrid
    statistics: NormalizationStatistics = field(default_factory=NormalizationStatistics)


class CalendarImportService:
    """Run the calendar import workflow against one API client."""

    def __init__(
        self,
        client: ClubAdminClient,
        *,
        default_event_type: str = DEFAULT_EVENT_TYPE,
        match_threshold: float = MATCH_THRESHOLD,
        mapping: CalendarMappingSpec | None = None,
    ) -> None:
        self.client = client
        self.default_event_type = default_event_type
        self.match_threshold = match_threshold
        # None follows IMPORTER_CALENDAR_MAPPING_PATH, reloading when the file changes.
        self.mapping = mapping

    def load_reference_data(self) -> ReferenceData:
        return self.client.load_reference_data()

    def active_mapping(self) -> CalendarMappingSpec:
        if self.mapping is not None:
            return self.mapping
        if has_app_context():
            return get_active_calendar_mapping()
        return DEFAULT_MAPPING

    def build_batch(
        self,
        data: bytes,
        file_name: str,
        content_type: str | None = None,
        *,
        reference: ReferenceData | None = None,
        now: datetime | None = None,
    ) -> BuildResult:
        """Parse an upload into a batch ready for review."""

        created_at = now or datetime.now(timezone.utc)
        grid = parse_upload(data, file_name, content_type)
        reference_data = reference if reference is not None else self.load_reference_data()
        token = str(int(created_at.timestamp() * 1000))
        statistics = NormalizationStatistics()
        events = tuple(
            process_rows(
                grid.as_lists(),
                reference_data,
                batch_token=token,
                default_event_type=self.default_event_type,
                match_threshold=self.match_threshold,
                statistics=statistics,
                mapping=self.active_mapping(),
            )
        )
        draft = ImportBatch(
            id=f"batch_{token}",
            name=f"Import from {file_name} - {created_at:%Y-%m-%d %H:%M}",
            file_name=file_name,
            file_size=len(data or b""),
            created_at=created_at,
            status=BatchStatus.DRAFT,
            events=events,
            summary=calculate_batch_summary(events),
            parse_method=grid.method,
        )
        batch = transition(draft, BatchStatus.REVIEWING)
        _log().info(
            "Parsed calendar file %s into %s events (matched=%s, unmatched=%s, method=%s)",
            file_name,
            batch.summary.total_events,
            batch.summary.matched_clubs,
            batch.summary.unmatched_clubs,
            grid.method,
            extra={"importer_batch_id": batch.id, "importer_parse_method": grid.method},
        )
        return BuildResult(batch=batch, grid=grid, statistics=statistics)

    def submit(self, batch: ImportBatch) -> ImportBatch:
        """Persist the reviewed batch remotely; resubmitting pushes later edits."""

        if batch.remote_id:
            self.client.update_batch(batch.remote_id, batch.to_payload())
            _log().info("Updated remote import batch %s", batch.remote_id)
            return batch
        remote_id = self.client.create_batch(batch)
        _log().info("Created remote import batch %s for %s", remote_id, batch.file_name)
        if batch.status == BatchStatus.READY:
            return batch.with_changes(remote_id=remote_id)
        return transition(batch, BatchStatus.READY, remote_id=remote_id)

    def execute(self, batch: ImportBatch) -> tuple[ImportBatch, ExecuteResult]:
        """
        Commit a submitted batch.

        The gate runs before any request: unmatched events or a batch outside
        review raise :class:`BatchNotExecutable`.
        """

        ensure_executable(batch)
        if not batch.remote_id:
            raise BatchNotExecutable("Import batch must be submitted before it can be executed.")
        importing = transition(batch, BatchStatus.IMPORTING)
        try:
            result = self.client.execute_batch(batch.remote_id)
        except ImportApiError as exc:
            exc.failed_batch = transition(importing, BatchStatus.FAILED, error=str(exc))
            _log().error(
                "Import batch %s failed: %s",
                batch.remote_id,
                exc,
                extra={"importer_batch_id": batch.remote_id, "status_code": exc.status_code},
            )
            raise
        completed = transition(
            importing, BatchStatus.COMPLETED, imported_event_ids=result.imported_event_ids, error=None
        )
        _log().info(
            "Import batch %s created %s events (%s skipped)",
            batch.remote_id,
            result.imported_count,
            len(batch.events) - result.imported_count,
        )
        return completed, result

    def rollback(self, batch: ImportBatch) -> tuple[ImportBatch, RollbackResult]:
        ensure_rollbackable(batch)
        if not batch.remote_id:
            raise BatchNotRollbackable("Import batch has no remote record to roll back.")
        result = self.client.rollback_batch(batch.remote_id)
        _log().info("Rolled back import batch %s (%s events deleted)", batch.remote_id, result.deleted_count)
        return transition(batch, BatchStatus.ROLLED_BACK), result

    def fetch_batch(self, batch_id: str) -> ImportBatch:
        batch = ImportBatch.from_payload(self.client.get_batch(batch_id))
        if batch.status == BatchStatus.DRAFT:
            # Stored drafts were reviewed before submission.
            batch = batch.with_changes(status=BatchStatus.READY)
        if not batch.remote_id:
            batch = batch.with_changes(id=batch_id, remote_id=batch_id)
        return batch


def create_import_service(app=None, *, session=None) -> CalendarImportService:
    """Build a service from application config."""

    config = app.config if app is not None else current_app.config
    client = ClubAdminClient(
        config.get("CLUB_ADMIN_API_URL") or "",
        token=config.get("CLUB_ADMIN_API_TOKEN"),
        timeout=float(config.get("CLUB_ADMIN_API_TIMEOUT", 30)),
        session=session,
    )
    return CalendarImportService(
        client,
        default_event_type=config.get("IMPORTER_DEFAULT_EVENT_TYPE", DEFAULT_EVENT_TYPE),
        match_threshold=float(config.get("IMPORTER_CLUB_MATCH_THRESHOLD", MATCH_THRESHOLD)),
    )


def get_import_service(app=None) -> CalendarImportService:
    """
    Return the service registered on ``app.extensions['importer']``.

    Falls back to a fresh service built from config when none is registered.
    """
    target = app if app is not None else current_app
    state = target.extensions.get("importer") or {}
    service = state.get("service")
    if service is None:
        service = create_import_service(target)
    return service


__all__ = ["BuildResult", "CalendarImportService", "create_import_service", "get_import_service"]
