"""
Importer blueprint endpoints for calendar previews and batch lifecycle actions.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from club_admin.importer.adapters import is_supported_file
from club_admin.importer.adapters.file_parser import UnsupportedFileType
from club_admin.importer.client import ImportApiError
from club_admin.importer.models import ImportBatch
from club_admin.importer.pipeline.batch import BatchError, BatchNotExecutable
from club_admin.importer.service import BuildResult, get_import_service
from club_admin.utils.importer import get_api_base_url, get_max_upload_bytes, is_importer_enabled

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


def _json_error(message: str, status: HTTPStatus, **extra):
    return jsonify({"error": message, **extra}), status


def _ensure_importer_enabled_api():
    if not is_importer_enabled(current_app):
        return _json_error("Importer is disabled.", HTTPStatus.NOT_FOUND)
    return None


def _validate_upload(file_storage) -> bytes:
    if file_storage is None or file_storage.filename == "":
        raise ValueError("No file uploaded.")
    if not is_supported_file(file_storage.filename):
        raise ValueError(str(UnsupportedFileType(file_storage.filename)))

    max_bytes = get_max_upload_bytes(current_app)
    content_length = getattr(file_storage, "content_length", None) or request.content_length
    if content_length and content_length > max_bytes:
        raise OverflowError("Upload exceeds maximum size limit.")

    data = file_storage.read()
    if len(data) > max_bytes:
        raise OverflowError("Upload exceeds maximum size limit.")
    return data


def _serialize_batch(batch: ImportBatch) -> dict:
    payload = batch.to_payload()
    payload.update(
        {
            "id": batch.remote_id or batch.id,
            "status": batch.status.value,
            "createdAt": batch.created_at.isoformat(),
            "parseMethod": batch.parse_method,
            "importedEventIds": list(batch.imported_event_ids),
            "canExecute": not batch.unmatched_events,
            "importableEvents": batch.importable_count,
        }
    )
    return payload


def _failed_batch_extra(exc: ImportApiError) -> dict:
    if exc.failed_batch is None:
        return {}
    return {"batch": _serialize_batch(exc.failed_batch)}


def _serialize_build(result: BuildResult) -> dict:
    payload = _serialize_batch(result.batch)
    payload["placeholder"] = result.grid.placeholder
    payload["message"] = result.grid.message
    return payload


def _resolve_service():
    try:
        return get_import_service(current_app), None
    except ValueError as exc:
        return None, _json_error(f"Importer is not configured: {exc}", HTTPStatus.SERVICE_UNAVAILABLE)


def _build_from_request():
    """Return ``(BuildResult, None)`` or ``(None, error_response)``."""
    try:
        data = _validate_upload(request.files.get("file"))
    except OverflowError as exc:
        return None, _json_error(str(exc), HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
    except ValueError as exc:
        return None, _json_error(str(exc), HTTPStatus.BAD_REQUEST)

    service, error_response = _resolve_service()
    if error_response:
        return None, error_response
    file_storage = request.files["file"]
    try:
        result = service.build_batch(data, file_storage.filename, file_storage.mimetype)
    except ImportApiError as exc:
        current_app.logger.error(
            "Calendar preview could not load reference data: %s",
            exc,
            extra={"importer_file_name": file_storage.filename, "status_code": exc.status_code},
        )
        return None, _json_error(f"Could not load clubs and event types: {exc}", HTTPStatus.BAD_GATEWAY)
    return result, None


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Lightweight health endpoint proving the importer blueprint mounted correctly.
    """
    importer_state = current_app.extensions.get("importer", {})
    return (
        jsonify(
            {
                "status": "ok",
                "enabled": importer_state.get("enabled", False),
                "api_configured": bool(get_api_base_url(current_app)),
                "max_upload_bytes": get_max_upload_bytes(current_app),
            }
        ),
        200,
    )


@importer_blueprint.post("/calendar/preview")
def importer_calendar_preview():
    enabled_response = _ensure_importer_enabled_api()
    if enabled_response:
        return enabled_response

    result, error_response = _build_from_request()
    if error_response:
        return error_response
    return jsonify(_serialize_build(result)), HTTPStatus.OK


@importer_blueprint.post("/calendar/batches")
def importer_calendar_create_batch():
    enabled_response = _ensure_importer_enabled_api()
    if enabled_response:
        return enabled_response

    result, error_response = _build_from_request()
    if error_response:
        return error_response

    service, error_response = _resolve_service()
    if error_response:
        return error_response
    try:
        batch = service.submit(result.batch)
    except ImportApiError as exc:
        return _json_error(f"Failed to save import batch: {exc}", HTTPStatus.BAD_GATEWAY)

    payload = _serialize_build(result)
    payload.update(_serialize_batch(batch))
    return jsonify(payload), HTTPStatus.CREATED


@importer_blueprint.post("/calendar/batches/<batch_id>/execute")
def importer_calendar_execute(batch_id: str):
    enabled_response = _ensure_importer_enabled_api()
    if enabled_response:
        return enabled_response

    service, error_response = _resolve_service()
    if error_response:
        return error_response
    try:
        batch = service.fetch_batch(batch_id)
        completed, result = service.execute(batch)
    except BatchNotExecutable as exc:
        return _json_error(str(exc), HTTPStatus.CONFLICT, unmatched_event_ids=list(exc.unmatched))
    except ImportApiError as exc:
        status = HTTPStatus.NOT_FOUND if exc.status_code == HTTPStatus.NOT_FOUND else HTTPStatus.BAD_GATEWAY
        return _json_error(f"Import batch {batch_id} failed: {exc}", status, **_failed_batch_extra(exc))

    return (
        jsonify(
            {
                "batch": _serialize_batch(completed),
                "imported_count": result.imported_count,
                "imported_event_ids": list(result.imported_event_ids),
            }
        ),
        HTTPStatus.OK,
    )


@importer_blueprint.post("/calendar/batches/<batch_id>/rollback")
def importer_calendar_rollback(batch_id: str):
    enabled_response = _ensure_importer_enabled_api()
    if enabled_response:
        return enabled_response

    service, error_response = _resolve_service()
    if error_response:
        return error_response
    try:
        batch = service.fetch_batch(batch_id)
        rolled_back, result = service.rollback(batch)
    except BatchError as exc:
        return _json_error(str(exc), HTTPStatus.CONFLICT)
    except ImportApiError as exc:
        status = HTTPStatus.NOT_FOUND if exc.status_code == HTTPStatus.NOT_FOUND else HTTPStatus.BAD_GATEWAY
        return _json_error(f"Rollback of batch {batch_id} failed: {exc}", status)

    return (
        jsonify({"batch": _serialize_batch(rolled_back), "deleted_count": result.deleted_count}),
        HTTPStatus.OK,
    )
