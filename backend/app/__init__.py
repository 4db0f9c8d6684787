"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - `flask db migrate` to work without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise SQLAlchemy via init_app()
  3. Build the Mapbox and S3 adapters and attach them to app.extensions
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a JSON provider that writes datetimes as ISO-8601 and enums
     as their values

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here; the import side-effect is sufficient.
"""

from __future__ import annotations

import enum
import logging
import traceback
from datetime import date, datetime

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from backend.app.errors import ErrorCode
from backend.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default provider writes datetimes in RFC 822 form and cannot handle
# enums. Service builders already convert both; this covers anything that
# reaches jsonify() unconverted.

class ApiJSONProvider(DefaultJSONProvider):
    """
    Example: datetime(2026, 1, 2, 3, 4, tzinfo=utc) → "2026-01-02T03:04:00+00:00"
             AlertType.POLICE                       → "police"
    """

    def default(self, o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, enum.Enum):
            return o.value
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = ApiJSONProvider
    app.json = ApiJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    app.logger.setLevel(getattr(logging, app.config["LOG_LEVEL"], logging.INFO))

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.extensions import db
    db.init_app(app)

    _register_clients(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from backend.app.models import (  # noqa: F401
            friendship,
            group,
            membership,
            message,
            notification,
            offline_map,
            place,
            refresh_token,
            review,
            route,
            safety_alert,
            trip,
            user,
        )

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _register_clients(app: Flask) -> None:
    """
    Builds one adapter of each kind per app. Services receive them as
    arguments; routes fetch them with get_mapbox() / get_storage().
    """
    from backend.app.clients.mapbox_client import MapboxClient
    from backend.app.clients.storage_client import S3Storage

    app.extensions["mapbox"] = MapboxClient(
        access_token=app.config["MAPBOX_ACCESS_TOKEN"],
        base_url=app.config["MAPBOX_BASE_URL"],
        timeout=app.config["MAPBOX_TIMEOUT_SECONDS"],
        max_concurrency=app.config["MAPBOX_MAX_CONCURRENCY"],
    )
    app.extensions["storage"] = S3Storage(
        bucket=app.config["S3_BUCKET_NAME"],
        region=app.config["AWS_REGION"],
        public_base_url=app.config["S3_PUBLIC_BASE_URL"] or None,
        signed_url_expires=app.config["S3_SIGNED_URL_EXPIRES"],
        timeout=app.config["S3_TIMEOUT_SECONDS"],
        max_concurrency=app.config["UPLOAD_MAX_CONCURRENCY"],
    )


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Blueprint names match the route files in app/routes/.
    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/" and "/<int:id>").
    """
    from backend.app.routes.auth import auth_bp
    from backend.app.routes.maps import maps_bp
    from backend.app.routes.places import places_bp
    from backend.app.routes.routes import routes_bp
    from backend.app.routes.social import social_bp
    from backend.app.routes.trips import trips_bp
    from backend.app.routes.users import users_bp

    app.register_blueprint(auth_bp,   url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,  url_prefix="/api/v1/users")
    app.register_blueprint(routes_bp, url_prefix="/api/v1/routes")
    app.register_blueprint(trips_bp,  url_prefix="/api/v1/trips")
    app.register_blueprint(places_bp, url_prefix="/api/v1/places")
    app.register_blueprint(social_bp, url_prefix="/api/v1/social")
    app.register_blueprint(maps_bp,   url_prefix="/api/v1/maps")


def _first_error(messages, prefix: str = "") -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages to the first leaf.

    {"origin": {"coordinates": ["Not a valid list."]}}
        → ("origin.coordinates", "Not a valid list.")
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            if key == "_schema":
                return (prefix or None), _first_error(value)[1]
            path = f"{prefix}.{key}" if prefix else str(key)
            return _first_error(value, path)
    if isinstance(messages, list) and messages:
        first = messages[0]
        if isinstance(first, (dict, list)):
            return _first_error(first, prefix)
        return (prefix or None), str(first)
    return (prefix or None), "Invalid input."


_HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.TOKEN_MISSING,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    413: ErrorCode.PAYLOAD_TOO_LARGE,
}


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD responses (400) with every message in
                        "details"
      HTTPException   → werkzeug errors (unknown URL, 405, 413, malformed JSON)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route, adapter) into the standard error envelope.

        Routes never catch AppError; they let it propagate here.
        """
        if error.http_status >= 500:
            app.logger.error("%s on %s %s: %s", error.code, request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        The first failing field decides `error`, `message` and `field`;
        `details` carries marshmallow's full messages dict.
        """
        field, message = _first_error(error.messages)
        if message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        body = {
            "success": False,
            "error": code,
            "message": message,
            "details": error.messages if isinstance(error.messages, dict) else {"_schema": error.messages},
        }
        if field is not None:
            body["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        status = error.code or 500
        code = _HTTP_ERROR_CODES.get(status, ErrorCode.INTERNAL_ERROR if status >= 500 else ErrorCode.VALIDATION_ERROR)
        if status == 413:
            message = "The uploaded payload is too large."
        else:
            message = error.description or error.name
        return jsonify({"success": False, "error": code, "message": message}), status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The full traceback is logged to the application logger. The session is
        rolled back so the failed transaction does not leak into the next
        request on this connection.
        """
        from backend.app.extensions import db

        db.session.rollback()
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "success": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "An unexpected error occurred. Please try again later.",
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            # Reflect origin when present so bearer-auth requests from local
            # dev servers are accepted by browsers.
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response
