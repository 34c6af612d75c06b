# commissions/errors.py
from flask import jsonify, current_app
from sqlalchemy.exc import IntegrityError, NoResultFound


def error_response(message, status_code, error=None):
    body = {"message": message}
    if error is not None:
        body["error"] = error
    return jsonify(body), status_code


def handle_db_error(error, operation="database operation", session=None):
    """Turn an unexpected exception into a JSON error response"""
    current_app.logger.error(f"Error during {operation}: {error}", exc_info=error)

    if session is not None:
        session.rollback()

    if isinstance(error, IntegrityError):
        return error_response(
            "A record with this unique constraint already exists",
            409,
            f"Duplicate value: {getattr(error, 'orig', error)}",
        )

    if isinstance(error, NoResultFound):
        return error_response("Record not found", 404, str(error))

    production = current_app.config.get("FLASK_ENV") == "production"
    return error_response(
        f"An error occurred during {operation}",
        500,
        "Internal server error" if production else str(error),
    )
