# bms_backend/errors.py
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 400
    error = "bad_request"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.error, "message": self.message}


class ValidationError(DomainError):
    status_code = 400
    error = "validation_error"


class NotFoundError(DomainError):
    status_code = 404
    error = "not_found"


class AccessDeniedError(DomainError):
    """Cross-organization access or a role restriction."""

    status_code = 403
    error = "forbidden"


class ConflictError(DomainError):
    status_code = 409
    error = "conflict"


def register_error_handlers(app):
    @app.errorhandler(DomainError)
    def domain_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify(error="bad_request", message=getattr(e, "description", "Bad Request")), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found", message=getattr(e, "description", "Not Found")), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(422)
    def unprocessable(e): return jsonify(error="unprocessable"), 422

    @app.errorhandler(500)
    def server_error(e): return jsonify(error="server_error"), 500

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled exception: %s", e)
        return jsonify(error="server_error", message="Internal Server Error"), 500
