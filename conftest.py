# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so app.py loads TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from club_admin.importer import IMPORTER_EXTENSION_KEY, init_importer  # noqa: E402
from club_admin.utils.logging_config import setup_logging  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Provide the application with importer defaults restored for each test"""
    original_config = dict(flask_app.config)
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": True,
            "LOG_LEVEL": "DEBUG",
            "IMPORTER_ENABLED": False,
            "CLUB_ADMIN_API_URL": "https://clubs.example.test/api",
            "CLUB_ADMIN_API_TOKEN": "test-token",
            "IMPORTER_MAX_UPLOAD_MB": 25,
        }
    )
    # Re-initialize logging with updated config to pick up LOG_LEVEL=DEBUG
    setup_logging(flask_app)
    flask_app.extensions.pop(IMPORTER_EXTENSION_KEY, None)
    init_importer(flask_app)

    with flask_app.app_context():
        yield flask_app

    flask_app.extensions.pop(IMPORTER_EXTENSION_KEY, None)
    flask_app.config.clear()
    flask_app.config.update(original_config)


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()
