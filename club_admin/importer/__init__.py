"""
Calendar importer feature package.

Provides conditional blueprint and CLI registration so the importer stays
inert when ``IMPORTER_ENABLED`` is off.
"""

from __future__ import annotations

from flask import Flask

from club_admin.utils.importer import get_api_base_url, is_importer_enabled

from .cli import get_disabled_importer_group, importer_cli
from .client import ImportApiError
from .service import CalendarImportService, create_import_service, get_import_service
from .views import importer_blueprint

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "CalendarImportService",
    "ImportApiError",
    "create_import_service",
    "get_import_service",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "service": None,
        },
    )


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Conditionally mount the importer blueprint and CLI based on configuration.

    Records importer state inside ``app.extensions['importer']``. The service
    itself is created lazily on first use so a missing API URL only fails the
    requests that need it.
    """
    enabled = is_importer_enabled(app)
    state = _ensure_extension_state(app)
    state["enabled"] = enabled

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    if not get_api_base_url(app):
        app.logger.warning(
            "Importer enabled but CLUB_ADMIN_API_URL is not set; calendar imports will fail until it is configured."
        )

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)
    app.logger.info("Calendar importer enabled (api=%s)", get_api_base_url(app) or "unset")
