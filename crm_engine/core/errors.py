# crm_engine/core/errors.py
"""
Error taxonomy for the record engine.

Every operation reports failures by raising one of these types. The HTTP
layer maps them onto status codes in crm_engine.logging.exception_handlers.
"""

from typing import Any, Dict, Optional


class RecordEngineError(Exception):
    """Base class for all errors raised by the record engine."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None, operator: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.operator = operator

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.field is not None:
            body["field"] = self.field
        if self.operator is not None:
            body["operator"] = self.operator
        return body


class NotFoundError(RecordEngineError):
    """Unknown object type, record id or report id."""

    code = "NOT_FOUND"
    status_code = 404


class ValidationFailure(RecordEngineError):
    """Malformed filter, sort, search or aggregation input."""

    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidFieldError(ValidationFailure):
    code = "INVALID_FIELD"


class InvalidOperatorError(ValidationFailure):
    code = "INVALID_OPERATOR"


class InvalidValueError(ValidationFailure):
    code = "INVALID_VALUE"


class StorageError(RecordEngineError):
    """Failure reported by the storage collaborator."""

    code = "STORAGE_ERROR"
    status_code = 503


class StorageUnavailableError(StorageError):
    code = "STORAGE_UNAVAILABLE"
    status_code = 503


class StorageTimeoutError(StorageError):
    code = "STORAGE_TIMEOUT"
    status_code = 504


class InternalEngineError(RecordEngineError):
    """Anything else, e.g. non-numeric data behind a numeric field."""

    code = "INTERNAL"
    status_code = 500
