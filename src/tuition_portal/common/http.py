from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DataUnavailableError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def ok(message: str = "", status: int = 200, **payload: Any):
    body = {"success": True, "message": message}
    body.update(payload)
    return jsonify(body), status


def fail(message: str, status: int, **payload: Any):
    body = {"success": False, "message": message}
    body.update(payload)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    """Map domain exceptions to the JSON envelope."""

    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        if e.errors:
            return fail(str(e), 400, errors=e.errors)
        return fail(str(e), 400)

    @app.errorhandler(AuthenticationError)
    def _authentication(e: AuthenticationError):
        return fail(str(e), 401)

    @app.errorhandler(AuthorizationError)
    def _authorization(e: AuthorizationError):
        return fail(str(e), 403)

    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return fail(str(e), 404)

    @app.errorhandler(DataUnavailableError)
    def _unavailable(e: DataUnavailableError):
        return fail(str(e), 503)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        logger.exception("Unhandled error")
        return fail("Server error", 500, error=str(e))
