# app.py

import logging
import os
from http import HTTPStatus

from dotenv import load_dotenv
from flask import Flask, jsonify

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.validation import validate_and_exit  # noqa: E402
from club_admin.importer import init_importer  # noqa: E402
from club_admin.utils.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Validate environment variables (only in production)
flask_env = os.environ.get("FLASK_ENV", "development")
if flask_env == "production":
    validate_and_exit(flask_env)

# Load configuration based on the environment
if flask_env == "production":
    app.config.from_object(ProductionConfig)
elif flask_env == "testing":
    app.config.from_object(TestingConfig)
else:
    app.config.from_object(DevelopmentConfig)

setup_logging(app)
init_importer(app)


@app.errorhandler(404)
def not_found_error(error):
    return jsonify({"error": "Not found."}), HTTPStatus.NOT_FOUND


@app.errorhandler(413)
def request_too_large(error):
    return jsonify({"error": "Upload exceeds maximum size limit."}), HTTPStatus.REQUEST_ENTITY_TOO_LARGE


@app.errorhandler(500)
def internal_error(error):
    logger.error("Unhandled server error: %s", error)
    return jsonify({"error": "Internal server error."}), HTTPStatus.INTERNAL_SERVER_ERROR


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port)
