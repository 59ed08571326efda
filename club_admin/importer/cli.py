"""
CLI commands for calendar imports.

Each command resolves the application through ``ScriptInfo`` so it works with
``flask --app`` as well as ``app.test_cli_runner()``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click
from flask.cli import ScriptInfo

from club_admin.importer.adapters import is_supported_file
from club_admin.importer.adapters.file_parser import UnsupportedFileType
from club_admin.importer.client import ImportApiError
from club_admin.importer.models import ImportBatch
from club_admin.importer.pipeline.batch import BatchError, BatchNotExecutable
from club_admin.importer.service import BuildResult, CalendarImportService, get_import_service
from club_admin.utils.importer import is_importer_enabled

GROUP_NAME = "calendar-import"


def _load_service(ctx) -> tuple[object, CalendarImportService]:
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException("Importer is disabled; enable it via IMPORTER_ENABLED before running.")
    try:
        return app, get_import_service(app)
    except ValueError as exc:
        raise click.ClickException(f"Importer is not configured: {exc}") from exc


def _read_upload(file_path: Path) -> bytes:
    if not is_supported_file(file_path.name):
        raise click.ClickException(str(UnsupportedFileType(file_path.name)))
    return file_path.read_bytes()


def _build(service: CalendarImportService, file_path: Path) -> BuildResult:
    data = _read_upload(file_path)
    try:
        return service.build_batch(data, file_path.name)
    except ImportApiError as exc:
        raise click.ClickException(f"Could not load clubs and event types: {exc}") from exc


def _format_batch(batch: ImportBatch) -> str:
    summary = batch.summary
    lines = [
        f"Batch {batch.remote_id or batch.id} ({batch.status.value}): {batch.name}",
        f"  total_events     : {summary.total_events}",
        f"  matched_clubs    : {summary.matched_clubs}",
        f"  unmatched_clubs  : {summary.unmatched_clubs}",
        f"  validation_errors: {summary.validation_errors}",
        f"  multi_day_events : {summary.multi_day_events}",
        f"  importable_events: {batch.importable_count}",
    ]
    for event in batch.events:
        marker = "ok" if event.is_importable else event.status.value
        line = f"  [{marker}] {event.start_date.isoformat()} {event.name} ({event.club_name or 'no club'})"
        if event.validation_errors:
            line += f" - {'; '.join(event.validation_errors)}"
        lines.append(line)
    return "\n".join(lines)


def _batch_payload(result: BuildResult) -> dict[str, object]:
    batch = result.batch
    payload = batch.to_payload()
    payload.update(
        {
            "id": batch.id,
            "status": batch.status.value,
            "parseMethod": result.grid.method,
            "placeholder": result.grid.placeholder,
            "message": result.grid.message,
            "statistics": {
                "rowsProcessed": result.statistics.rows_processed,
                "rowsSkipped": result.statistics.rows_skipped_short,
                "rowsFailed": result.statistics.rows_failed,
            },
        }
    )
    return payload


@click.group(name=GROUP_NAME)
def importer_cli():
    """Preview, submit, execute and roll back calendar import batches."""


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name=GROUP_NAME, invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Calendar import commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


@importer_cli.command("preview")
@click.argument("file_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit the parsed batch as JSON.")
@click.pass_context
def importer_preview(ctx, file_path: Path, as_json: bool):
    """Parse FILE and show the events it would import without saving anything."""
    _app, service = _load_service(ctx)
    result = _build(service, file_path)
    if as_json:
        click.echo(json.dumps(_batch_payload(result), indent=2, sort_keys=True))
        return
    if result.grid.placeholder:
        click.echo(f"Warning: {result.grid.message}", err=True)
    click.echo(_format_batch(result.batch))


@importer_cli.command("submit")
@click.argument("file_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.pass_context
def importer_submit(ctx, file_path: Path):
    """Parse FILE and save it as a remote import batch ready for review."""
    app, service = _load_service(ctx)
    result = _build(service, file_path)
    try:
        batch = service.submit(result.batch)
    except ImportApiError as exc:
        raise click.ClickException(f"Failed to save import batch: {exc}") from exc

    app.logger.info(
        "Calendar import batch submitted via CLI",
        extra={"importer_batch_id": batch.remote_id, "importer_file_name": file_path.name},
    )
    click.echo(_format_batch(batch))
    if batch.unmatched_events:
        click.echo(
            f"{len(batch.unmatched_events)} event(s) need a club before the batch can be executed.",
            err=True,
        )


@importer_cli.command("execute")
@click.argument("batch_id")
@click.pass_context
def importer_execute(ctx, batch_id: str):
    """Create events for every importable entry in BATCH_ID."""
    _app, service = _load_service(ctx)
    try:
        batch = service.fetch_batch(batch_id)
        completed, result = service.execute(batch)
    except BatchNotExecutable as exc:
        lines = [str(exc)]
        unmatched = {event.id: event for event in batch.unmatched_events}
        for event_id in exc.unmatched:
            event = unmatched.get(event_id)
            if event is not None:
                lines.append(f"  - {event.name} ({event.club_name or 'no club'})")
        raise click.ClickException("\n".join(lines)) from exc
    except ImportApiError as exc:
        message = f"Import batch {batch_id} failed: {exc}"
        if exc.failed_batch is not None:
            message += f"\nRun 'execute {batch_id}' again to retry once the cause is resolved."
        raise click.ClickException(message) from exc

    skipped = len(completed.events) - result.imported_count
    click.echo(f"Imported {result.imported_count} event(s) from batch {batch_id} ({skipped} skipped).")


@importer_cli.command("rollback")
@click.argument("batch_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def importer_rollback(ctx, batch_id: str, yes: bool):
    """Delete every event created by BATCH_ID."""
    _app, service = _load_service(ctx)
    if not yes:
        click.confirm(f"Delete all events imported by batch {batch_id}?", abort=True)
    try:
        batch = service.fetch_batch(batch_id)
        _rolled_back, result = service.rollback(batch)
    except (BatchError, ImportApiError) as exc:
        raise click.ClickException(f"Rollback of batch {batch_id} failed: {exc}") from exc
    click.echo(f"Rolled back batch {batch_id}: {result.deleted_count} event(s) deleted.")


@importer_cli.command("batches")
@click.pass_context
def importer_batches(ctx):
    """List import batches stored by the club administration API."""
    _app, service = _load_service(ctx)
    try:
        batches = service.client.list_batches()
    except ImportApiError as exc:
        raise click.ClickException(f"Could not list import batches: {exc}") from exc
    if not batches:
        click.echo("No import batches found.")
        return
    for item in batches:
        events = item.get("events") or ()
        click.echo(f"{item.get('id')}\t{item.get('status', 'unknown')}\t{len(events)} events\t{item.get('name', '')}")
