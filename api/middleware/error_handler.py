# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured problem responses.
Maps registry errors, request validation failures and HTTP errors onto JSON
problem documents for Flask applications.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError as RequestValidationError
from typing import Dict, Any, List, Optional, Tuple
from opentelemetry import trace
import logging

from domain.errors import SafetyError, ValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_BASE = "https://tourist-safety.local/problems"

TITLES = {
    "validation-error": "Validation Error",
    "insufficient-permissions": "Insufficient Permissions",
    "resource-not-found": "Resource Not Found",
    "resource-conflict": "Resource Conflict",
    "invalid-state": "Invalid State",
}


def build_problem(error_type: str, title: str, status: int, detail: str,
                  errors: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Build a problem document for the current request."""
    problem = {
        "type": f"{PROBLEM_BASE}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path
    }
    if errors:
        problem["errors"] = errors
    return problem


class ErrorHandlerMiddleware:
    """Centralized error handling for the registry API."""

    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(SafetyError)
        def handle_safety_error(error):
            return self.handle_safety_error(error)

        @self.app.errorhandler(RequestValidationError)
        def handle_request_validation_error(error):
            return self.handle_request_validation_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            return self.handle_http_exception(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_safety_error(self, error: SafetyError) -> Tuple[Any, int]:
        """
        Handle registry errors raised by service operations.

        Args:
            error: Registry error

        Returns:
            Tuple of (problem response, status code)
        """
        with tracer.start_as_current_span("error_handler.safety_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Request rejected: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            errors = error.validation_errors if isinstance(error, ValidationError) else None
            problem = build_problem(
                error.error_type,
                TITLES.get(error.error_type, "Request Failed"),
                error.status_code,
                error.message,
                errors
            )
            return jsonify(problem), error.status_code

    def handle_request_validation_error(self, error: RequestValidationError) -> Tuple[Any, int]:
        """Handle malformed request bodies."""
        errors = [
            {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
            for item in error.errors()
        ]
        logger.warning(
            "Request body validation failed",
            extra={"path": request.path, "method": request.method, "errors_count": len(errors)}
        )
        problem = build_problem("request-validation-error", "Unprocessable Entity", 422,
                                "Request body failed validation", errors)
        return jsonify(problem), 422

    def handle_http_exception(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle werkzeug HTTP errors (404 for unknown routes, 405, 400 bad JSON)."""
        detail = str(error.description) if error.description else error.name
        log = logger.error if error.code >= 500 else logger.warning
        log(
            f"HTTP error: {error.name}",
            extra={"status_code": error.code, "path": request.path, "method": request.method}
        )
        problem = build_problem(error.name.lower().replace(" ", "-"), error.name, error.code, detail)
        return jsonify(problem), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (problem response, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            # Don't expose internal error details in production
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            problem = build_problem("internal-server-error", "Internal Server Error", 500, detail)
            return jsonify(problem), 500
