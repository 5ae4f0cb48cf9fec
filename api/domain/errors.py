# SPDX-License-Identifier: Apache-2.0

"""
Typed errors raised by registry operations.

Each error carries the HTTP status and error type the boundary reports, in the
same shape as the platform's other custom exceptions. A raised error always
means the operation changed nothing.
"""


class SafetyError(Exception):
    """Base class for registry errors."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationError(SafetyError):
    """Required field missing or value out of range."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthorizationError(SafetyError):
    """Caller lacks the capability an operation requires."""

    def __init__(self, message: str, missing_capability: str = None):
        super().__init__(message, 403, "insufficient-permissions")
        self.missing_capability = missing_capability


class NotFoundError(SafetyError):
    """Unknown tourist ID or alert sequence number."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictError(SafetyError):
    """Duplicate registration or repeated resolution."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class StateError(SafetyError):
    """Operation requires an active record."""

    def __init__(self, message: str):
        super().__init__(message, 409, "invalid-state")
