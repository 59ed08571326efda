# config/validation.py

"""
Environment variable validation for the calendar importer service.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple
from urllib.parse import urlparse


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key in {"your-secret-key", "your_secret_key"}:
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    api_url = os.environ.get("CLUB_ADMIN_API_URL", "")
    if not api_url:
        errors.append("CLUB_ADMIN_API_URL is required in production. Set it to the club administration API base URL.")
    elif urlparse(api_url).scheme not in {"http", "https"}:
        errors.append(f"CLUB_ADMIN_API_URL must be an http(s) URL, got '{api_url}'.")

    if os.environ.get("ENABLE_FILE_LOGGING", "true").lower() == "true":
        log_dir = os.environ.get("LOG_DIR")
        if log_dir and os.path.exists(log_dir) and not os.path.isdir(log_dir):
            errors.append(f"LOG_DIR '{log_dir}' exists but is not a directory.")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
