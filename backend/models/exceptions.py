"""Custom exceptions for model, repository, and service layers.

Every error carries the HTTP status and a stable machine-readable `code`
that API handlers place in the response envelope.
"""

from typing import Optional


class ModelError(Exception):
    """Base class for domain failures."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ModelValidationError(ModelError):
    """Raised when input or model data fails business validation."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class StateConflictError(ModelError):
    """Raised when an action is not valid in the current lifecycle state."""

    status_code = 400
    default_code = "STATE_CONFLICT"


class AccessDeniedError(ModelError):
    """Raised on role or ownership mismatch."""

    status_code = 403
    default_code = "FORBIDDEN"


class ModelNotFoundError(ModelError):
    """Raised when a requested document does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class VersionConflictError(ModelError):
    """Raised when optimistic concurrency version checks fail."""

    status_code = 409
    default_code = "VERSION_CONFLICT"


class PaymentVerificationError(ModelError):
    """Raised when a gateway payment signature does not verify."""

    status_code = 400
    default_code = "SIGNATURE_INVALID"
