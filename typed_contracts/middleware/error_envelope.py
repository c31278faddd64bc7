"""
Error envelope middleware - Standardize error responses around typed routes.

Contract errors reach Flask's error handlers only when a route or global
error handler defers (returns None). They are rendered as:
{
    "error": {
        "code": "CONTRACT_VIOLATION",
        "message": "Request validation failed in body",
        "segment": "body",
        "details": {"email": ["Field required"]}
    }
}
Response contract errors never expose their details.
"""

import logging
from typing import Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..errors import ContractValidationError, ResponseValidationError


logger = logging.getLogger('typed_contracts.middleware.error')


# Error codes reference
ERROR_CODES = {
    # Client errors (4xx)
    "BAD_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "UNPROCESSABLE_ENTITY": 422,

    # Contract errors
    "CONTRACT_VIOLATION": 400,
    "RESPONSE_SCHEMA_MISMATCH": 500,

    # Server errors (5xx)
    "INTERNAL_ERROR": 500,
}


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - Deferred contract errors (request and response)
    - HTTP exceptions (400, 404, 500, etc.)

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ContractValidationError)
    def handle_contract_error(error):
        """Render a contract error that a handler deferred."""
        if isinstance(error, ResponseValidationError):
            logger.error(
                f"Deferred response contract violation: status={error.status_code}",
                extra={
                    "event": "response_contract_violation",
                    "status_code": error.status_code,
                    "details": error.field_errors,
                },
            )
            return make_error_response(
                "RESPONSE_SCHEMA_MISMATCH",
                "Response does not match contract",
            )
        return make_error_response(
            "CONTRACT_VIOLATION",
            error.message,
            segment=error.segment,
            details=error.field_errors,
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')
        return make_error_response(code, error.description, status_code=error.code)


def make_error_response(
    code: str,
    message: str,
    status_code: Optional[int] = None,
    segment: Optional[str] = None,
    details: Optional[Dict] = None,
):
    """
    Create a standardized error response.

    Args:
        code: Error code (e.g., "CONTRACT_VIOLATION")
        message: Human-readable error message
        status_code: HTTP status code (defaults based on error code)
        segment: Optional request segment that failed
        details: Optional additional details dict

    Returns:
        Tuple of (response, status_code)
    """
    if status_code is None:
        status_code = ERROR_CODES.get(code, 500)

    error = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if segment:
        error["error"]["segment"] = segment
    if details:
        error["error"]["details"] = details

    return jsonify(error), status_code
