# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_number(value, default, *, cast=int, minimum=None):
    """Parse a numeric environment value, falling back to ``default`` when invalid."""
    if value is None or str(value).strip() == "":
        return default
    try:
        number = cast(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None and number < minimum:
        return default
    return number


class Config:
    # SECRET_KEY must be set via environment variable in production
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY environment variable before deploying.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    # Importer configuration
    IMPORTER_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=False)
    IMPORTER_MAX_UPLOAD_MB = _coerce_number(os.environ.get("IMPORTER_MAX_UPLOAD_MB"), 25, minimum=1)
    IMPORTER_DEFAULT_EVENT_TYPE = os.environ.get("IMPORTER_DEFAULT_EVENT_TYPE", "Rally")
    IMPORTER_CLUB_MATCH_THRESHOLD = _coerce_number(
        os.environ.get("IMPORTER_CLUB_MATCH_THRESHOLD"), 30.0, cast=float, minimum=0
    )
    IMPORTER_CALENDAR_MAPPING_PATH = os.environ.get(
        "IMPORTER_CALENDAR_MAPPING_PATH",
        os.path.join(os.path.dirname(__file__), "mappings", "calendar_v1.yaml"),
    )

    # Club administration API (source of truth for clubs, zones, event types and batches)
    CLUB_ADMIN_API_URL = os.environ.get("CLUB_ADMIN_API_URL")
    CLUB_ADMIN_API_TOKEN = os.environ.get("CLUB_ADMIN_API_TOKEN")
    CLUB_ADMIN_API_TIMEOUT = _coerce_number(os.environ.get("CLUB_ADMIN_API_TIMEOUT"), 30.0, cast=float, minimum=1)

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    ENABLE_CONSOLE_LOGGING = _coerce_bool(os.environ.get("ENABLE_CONSOLE_LOGGING"), default=True)
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"), default=False)
    LOG_DIR = os.environ.get("LOG_DIR")

    # Werkzeug rejects request bodies above this before the view runs; the
    # importer views enforce IMPORTER_MAX_UPLOAD_MB themselves.
    MAX_CONTENT_LENGTH = (IMPORTER_MAX_UPLOAD_MB + 1) * 1024 * 1024


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    ENABLE_FILE_LOGGING = False


class ProductionConfig(Config):
    DEBUG = False
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"), default=True)
