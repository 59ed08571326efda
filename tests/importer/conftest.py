from __future__ import annotations

import copy
from urllib.parse import urlparse

import pytest
from flask import Flask

from club_admin.importer import IMPORTER_EXTENSION_KEY, init_importer
from club_admin.importer.client import ClubAdminClient
from club_admin.importer.models import Club, EventType, ReferenceData, Zone
from club_admin.importer.service import CalendarImportService

API_URL = "https://clubs.example.test/api"

CLUBS = [
    {"id": "club-melb", "name": "Melbourne Pony Club", "zoneId": "zone-central"},
    {"id": "club-geel", "name": "Geelong Pony Club", "zoneId": "zone-west"},
    {"id": "club-ball", "name": "Ballarat Riding Club", "zoneId": "zone-west"},
]
EVENT_TYPES = [
    {"id": "type-rally", "name": "Rally"},
    {"id": "type-sj", "name": "Show Jumping"},
    {"id": "type-dressage", "name": "Dressage"},
    {"id": "type-ode", "name": "One Day Event"},
    {"id": "type-gymkhana", "name": "Gymkhana"},
]
ZONES = [
    {"id": "zone-central", "name": "Central Zone"},
    {"id": "zone-west", "name": "Western Zone"},
]


class FakeResponse:
    def __init__(self, *, status_code=200, json_data=None, text: str = ""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.ok = status_code < 400

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class FakeClubAdminSession:
    """In-memory stand-in for the club administration API."""

    def __init__(self, *, clubs=None, event_types=None, zones=None):
        self.clubs = list(CLUBS if clubs is None else clubs)
        self.event_types = list(EVENT_TYPES if event_types is None else event_types)
        self.zones = list(ZONES if zones is None else zones)
        self.batches: dict[str, dict] = {}
        self.get_calls: list[tuple[str, dict | None]] = []
        self.post_calls: list[tuple[str, dict]] = []
        self.fail_actions: dict[str, FakeResponse] = {}
        self.raise_on_get: Exception | None = None
        self.last_headers: dict | None = None
        self.last_timeout: float | None = None
        self._next_id = 1

    @property
    def actions(self) -> list[str]:
        return [payload.get("action") for _url, payload in self.post_calls]

    def get(self, url, headers=None, params=None, timeout=None):
        self.get_calls.append((url, params))
        self.last_headers, self.last_timeout = headers, timeout
        if self.raise_on_get is not None:
            raise self.raise_on_get
        path = urlparse(url).path.replace("/api", "", 1)
        if path == "/clubs":
            return FakeResponse(json_data={"clubs": self.clubs})
        if path == "/event-types":
            return FakeResponse(json_data=self.event_types)
        if path == "/zones":
            return FakeResponse(json_data={"zones": self.zones})
        if path == "/admin/import-batches":
            if params and params.get("batchId"):
                batch = self.batches.get(params["batchId"])
                if batch is None:
                    return FakeResponse(status_code=404, json_data={"error": "Batch not found"})
                return FakeResponse(json_data=copy.deepcopy(batch))
            return FakeResponse(json_data={"batches": copy.deepcopy(list(self.batches.values()))})
        return FakeResponse(status_code=404, json_data={"error": f"Unknown path {path}"})

    def post(self, url, headers=None, json=None, timeout=None):
        payload = json or {}
        self.post_calls.append((url, payload))
        self.last_headers, self.last_timeout = headers, timeout
        action = payload.get("action")
        if action in self.fail_actions:
            failed = self.batches.get(payload.get("batchId"))
            if action == "execute" and failed is not None:
                # The API records a thrown execute on the stored batch.
                failed["status"] = "failed"
                failed["error"] = "Import failed"
            return self.fail_actions[action]

        if action == "create":
            batch_id = f"remote-{self._next_id}"
            self._next_id += 1
            self.batches[batch_id] = {
                "id": batch_id,
                "status": "draft",
                "createdAt": "2025-03-01T09:00:00Z",
                **copy.deepcopy(payload["batchData"]),
            }
            return FakeResponse(status_code=201, json_data={"success": True, "batchId": batch_id})

        batch = self.batches.get(payload.get("batchId"))
        if batch is None:
            return FakeResponse(status_code=404, json_data={"error": "Batch not found"})

        if action == "update":
            batch.update(copy.deepcopy(payload["batchData"]))
            return FakeResponse(json_data={"success": True})
        if action == "execute":
            imported = [
                f"event-{index}"
                for index, event in enumerate(batch["events"], start=1)
                if event.get("status") == "matched" and not event.get("validationErrors")
            ]
            batch["status"] = "completed"
            batch.pop("error", None)
            batch["importedEventIds"] = imported
            return FakeResponse(
                json_data={"success": True, "importedCount": len(imported), "importedEventIds": imported}
            )
        if action == "rollback":
            deleted = len(batch.get("importedEventIds") or ())
            batch["status"] = "rolled_back"
            batch["importedEventIds"] = []
            return FakeResponse(json_data={"success": True, "deletedCount": deleted})
        return FakeResponse(status_code=400, json_data={"error": "Invalid action"})


@pytest.fixture
def reference_data() -> ReferenceData:
    return ReferenceData(
        clubs=tuple(Club.from_payload(item) for item in CLUBS),
        event_types=tuple(EventType.from_payload(item) for item in EVENT_TYPES),
        zones=tuple(Zone.from_payload(item) for item in ZONES),
    )


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_api() -> FakeClubAdminSession:
    return FakeClubAdminSession()


@pytest.fixture
def import_service(fake_api) -> CalendarImportService:
    return CalendarImportService(ClubAdminClient(API_URL, token="test-token", session=fake_api))


def _build_app(*, enabled: bool = True, service: CalendarImportService | None = None, **config) -> Flask:
    app = Flask(__name__)
    settings = {
        "SECRET_KEY": "test-secret",
        "TESTING": True,
        "IMPORTER_ENABLED": enabled,
        "CLUB_ADMIN_API_URL": API_URL,
        "IMPORTER_MAX_UPLOAD_MB": 1,
    }
    settings.update(config)
    app.config.update(settings)
    init_importer(app)
    if service is not None:
        app.extensions[IMPORTER_EXTENSION_KEY]["service"] = service
    return app


@pytest.fixture
def build_importer_app():
    """Return a factory for fresh apps; blueprints cannot be added after an app serves requests."""
    return _build_app


@pytest.fixture
def importer_app(import_service) -> Flask:
    return _build_app(service=import_service)


@pytest.fixture
def calendar_csv() -> bytes:
    return (
        "Event Name,Start Date,End Date,Club,Location,Type\n"
        "Spring Rally,2025-03-15,2025-03-15,Melbourne Pony Club,Main Arena,Rally\n"
        "Autumn Camp,2025-04-10,2025-04-12,Unknown Club,Bush Camp,Camp\n"
    ).encode("utf-8")


@pytest.fixture
def matched_csv() -> bytes:
    return (
        "Event Name,Start Date,End Date,Club,Location,Type\n"
        "Spring Rally,2025-03-15,2025-03-15,Melbourne Pony Club,Main Arena,Rally\n"
        "Winter Dressage,2025-06-01,2025-06-02,Geelong Pony Club,Indoor Arena,Dressage\n"
    ).encode("utf-8")

