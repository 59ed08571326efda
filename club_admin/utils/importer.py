"""
Utility helpers for importer feature flag checks.
"""

from __future__ import annotations

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def get_api_base_url(app=None) -> str | None:
    """Return the configured club administration API base URL, if any."""
    config = _get_config(app)
    value = config.get("CLUB_ADMIN_API_URL")
    return value.rstrip("/") if value else None


def get_max_upload_bytes(app=None) -> int:
    config = _get_config(app)
    return int(config.get("IMPORTER_MAX_UPLOAD_MB", 25)) * 1024 * 1024
