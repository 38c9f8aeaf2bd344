# errors.py
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto a JSON ``{"message": ...}`` response."""

    status_code = 500
    default_message = "Unexpected server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"message": self.message}


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors=None, message=None):
        super().__init__(message)
        # field name -> list of messages
        self.errors = dict(errors or {})

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class InvalidArgument(ApiError):
    status_code = 400
    default_message = "Invalid argument"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        db.session.rollback()
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        db.session.rollback()
        return jsonify({"message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        logger.exception("Unhandled error: %s", err)
        return jsonify({"message": ApiError.default_message}), 500
