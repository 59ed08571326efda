"""
HTTP client for the club administration API.

The API owns clubs, zones, event types and import batches. Every call is a
single blocking request; failures surface as :class:`ImportApiError` and no
call is retried automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

import requests

from club_admin.importer.models import Club, EventType, ImportBatch, ReferenceData, Zone

DEFAULT_TIMEOUT_SECONDS = 30.0
BATCHES_PATH = "/admin/import-batches"


class ImportApiError(RuntimeError):
    """Raised when the club administration API rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None, action: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.action = action
        # Set by the service when an execute fails: the batch as it stands after the failure.
        self.failed_batch: ImportBatch | None = None


@dataclass(frozen=True)
class ExecuteResult:
    imported_count: int
    imported_event_ids: tuple[str, ...]


@dataclass(frozen=True)
class RollbackResult:
    deleted_count: int


def _unwrap_list(payload: Any, key: str) -> List[Mapping[str, Any]]:
    """Accept either a bare list or ``{key: [...]}``."""
    if isinstance(payload, list):
        items: Iterable[Any] = payload
    elif isinstance(payload, Mapping):
        items = payload.get(key) or []
    else:
        items = []
    return [item for item in items if isinstance(item, Mapping)]


class ClubAdminClient:
    """Thin wrapper over the reference-data and import-batch endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the club administration API client.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    # Reference data ---------------------------------------------------------------

    def get_clubs(self) -> list[Club]:
        return [Club.from_payload(item) for item in _unwrap_list(self._get("/clubs"), "clubs")]

    def get_event_types(self) -> list[EventType]:
        return [EventType.from_payload(item) for item in _unwrap_list(self._get("/event-types"), "eventTypes")]

    def get_zones(self) -> list[Zone]:
        return [Zone.from_payload(item) for item in _unwrap_list(self._get("/zones"), "zones")]

    def load_reference_data(self) -> ReferenceData:
        return ReferenceData(
            clubs=tuple(self.get_clubs()),
            event_types=tuple(self.get_event_types()),
            zones=tuple(self.get_zones()),
        )

    # Import batches ---------------------------------------------------------------

    def create_batch(self, batch: ImportBatch) -> str:
        data = self._batch_action("create", batchData=batch.to_payload())
        batch_id = data.get("batchId")
        if not batch_id:
            raise ImportApiError("Batch creation response did not include a batchId.", action="create")
        return str(batch_id)

    def update_batch(self, batch_id: str, batch_data: Mapping[str, Any]) -> None:
        self._batch_action("update", batchId=batch_id, batchData=dict(batch_data))

    def execute_batch(self, batch_id: str) -> ExecuteResult:
        data = self._batch_action("execute", batchId=batch_id)
        imported_ids: Sequence[Any] = data.get("importedEventIds") or ()
        return ExecuteResult(
            imported_count=int(data.get("importedCount") or len(imported_ids)),
            imported_event_ids=tuple(str(item) for item in imported_ids),
        )

    def rollback_batch(self, batch_id: str) -> RollbackResult:
        data = self._batch_action("rollback", batchId=batch_id)
        return RollbackResult(deleted_count=int(data.get("deletedCount") or 0))

    def get_batch(self, batch_id: str) -> Mapping[str, Any]:
        payload = self._get(BATCHES_PATH, params={"batchId": batch_id})
        if not isinstance(payload, Mapping):
            raise ImportApiError(f"Unexpected response for batch {batch_id}.", action="get")
        return payload

    def list_batches(self) -> list[Mapping[str, Any]]:
        return _unwrap_list(self._get(BATCHES_PATH), "batches")

    # Internal helpers -------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get(self, path: str, *, params: Mapping[str, str] | None = None) -> Any:
        try:
            response = self.session.get(self._url(path), headers=self._headers, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ImportApiError(f"GET {path} failed: {exc}", action="get") from exc
        return self._decode(response, action="get", path=path)

    def _batch_action(self, action: str, **body: Any) -> Mapping[str, Any]:
        payload = {"action": action, **body}
        try:
            response = self.session.post(
                self._url(BATCHES_PATH),
                headers={**self._headers, "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ImportApiError(f"Import batch {action} request failed: {exc}", action=action) from exc

        data = self._decode(response, action=action, path=BATCHES_PATH)
        if not isinstance(data, Mapping) or not data.get("success"):
            message = data.get("error") if isinstance(data, Mapping) else None
            raise ImportApiError(
                f"Import batch {action} was not successful: {message or 'no error message returned'}",
                status_code=response.status_code,
                action=action,
            )
        self.logger.info(
            "Import batch %s succeeded",
            action,
            extra={"importer_batch_action": action, "importer_batch_id": body.get("batchId")},
        )
        return data

    def _decode(self, response: requests.Response, *, action: str, path: str) -> Any:
        if not response.ok:
            try:
                error_data = response.json()
                if isinstance(error_data, Mapping):
                    error_msg = error_data.get("error") or error_data.get("message") or str(error_data)
                else:
                    error_msg = str(error_data)
            except ValueError:
                error_msg = response.text
            self.logger.error(
                "Club admin API %s %s failed: %s",
                action,
                path,
                error_msg,
                extra={"status_code": response.status_code, "error": error_msg},
            )
            raise ImportApiError(
                f"{action} {path} returned HTTP {response.status_code}: {error_msg}",
                status_code=response.status_code,
                action=action,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ImportApiError(
                f"{action} {path} returned a non-JSON response.",
                status_code=response.status_code,
                action=action,
            ) from exc


__all__ = [
    "BATCHES_PATH",
    "ClubAdminClient",
    "ExecuteResult",
    "ImportApiError",
    "RollbackResult",
]
