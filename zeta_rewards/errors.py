"""
Error taxonomy for Zeta Rewards.

Every business-rule failure raised by the services is a RewardsError subclass
carrying the HTTP status it maps to. register_error_handlers() renders them
(and framework errors) as JSON in the same shape the routes use for success.
"""

from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


class RewardsError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400
    default_message = "Request could not be processed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self):
        return jsonify({"status": "error", "message": self.message}), self.status_code


class ValidationError(RewardsError):
    status_code = 400
    default_message = "Invalid or missing input."


class NotFound(RewardsError):
    status_code = 404
    default_message = "Resource not found."


class BudgetNotFound(NotFound):
    default_message = "No budget found for this admin."


class InvalidReason(NotFound):
    default_message = "Reward reason not found."


class InvalidCredentials(RewardsError):
    status_code = 401
    default_message = "Invalid email or password."


class Forbidden(RewardsError):
    status_code = 403
    default_message = "Forbidden: Role not allowed"


class InsufficientPoints(RewardsError):
    status_code = 400
    default_message = "Not enough points."


class InsufficientBudget(RewardsError):
    status_code = 400
    default_message = "Not enough remaining budget."


class Conflict(RewardsError):
    status_code = 409
    default_message = "Conflicting request."


class AlreadyAssigned(Conflict):
    default_message = "Points already assigned to this manager. Use increment instead."


class InternalError(RewardsError):
    status_code = 500
    default_message = "An internal error occurred. Please try again."


def register_error_handlers(app):
    """Attach JSON error handlers to the Flask app."""

    @app.errorhandler(RewardsError)
    def handle_rewards_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__}: {error.message}")
        else:
            app.logger.info(f"{type(error).__name__}: {error.message}")
        return error.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({"status": "error", "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        current_app.logger.exception("Unhandled exception")
        return InternalError().to_response()
