from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from auth_core.errors import (
    AuthError,
    EmailTaken,
    InvalidCredentials,
    InvalidToken,
    Malformed,
    StoreError,
    TokenRevoked,
    UserNotFound,
    WeakCredential,
)

logger = logging.getLogger(__name__)

HTTP_ERROR_NAMES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    @app.errorhandler(EmailTaken)
    def handle_email_taken(err: EmailTaken):
        return error_response("CONFLICT", err.message, 409)

    @app.errorhandler(WeakCredential)
    def handle_weak_credential(err: WeakCredential):
        return error_response(err.code, "Password does not meet the password policy", 422,
                              details={"password": err.problems})

    @app.errorhandler(InvalidCredentials)
    def handle_invalid_credentials(err: InvalidCredentials):
        # same body for unknown email and wrong password
        return error_response("INVALID_CREDENTIALS", "Invalid email or password", 401)

    # Token failures all look alike to the client; the reason stays in the log
    @app.errorhandler(InvalidToken)
    def handle_invalid_token(err: InvalidToken):
        logger.info("Rejected token: %s", err.reason)
        return error_response("UNAUTHORIZED", "Invalid or expired token", 401)

    @app.errorhandler(TokenRevoked)
    def handle_token_revoked(err: TokenRevoked):
        logger.info("Rejected token: revoked")
        return error_response("UNAUTHORIZED", "Invalid or expired token", 401)

    @app.errorhandler(UserNotFound)
    def handle_user_not_found(err: UserNotFound):
        return error_response("NOT_FOUND", err.message, 404)

    @app.errorhandler(Malformed)
    def handle_malformed(err: Malformed):
        return error_response("BAD_REQUEST", "Invalid token format", 400)

    @app.errorhandler(StoreError)
    def handle_store_error(err: StoreError):
        # the store already logged the driver error with its traceback
        return error_response("SERVICE_UNAVAILABLE", "Credential store unavailable", 503)

    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        logger.warning("Unmapped auth error %s: %s", err.code, err.message)
        return error_response(err.code, err.message, 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        return error_response(HTTP_ERROR_NAMES.get(status, "BAD_REQUEST"), err.description, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
