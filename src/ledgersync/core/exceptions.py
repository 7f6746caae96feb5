"""Application-level exceptions."""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class LocalValidationError(AppError):
    """Raised when a precondition fails before any network call."""

    def __init__(self, message: str):
        super().__init__(message, code="LOCAL_VALIDATION_ERROR")


class RemoteValidationError(AppError):
    """
    Structured error returned by the remote resource service.

    `body` is the decoded response body: either a dict with a top-level
    message/error, or a field-name -> message map.
    """

    def __init__(
        self,
        message: str,
        body: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code="REMOTE_VALIDATION_ERROR")
        self.body = body
        self.status_code = status_code

    @property
    def field_errors(self) -> dict[str, str]:
        """Field-keyed messages, excluding the envelope's own message/error keys."""
        if not isinstance(self.body, dict):
            return {}
        result = {}
        for key, value in self.body.items():
            if key in ("message", "error", "status", "timestamp", "path"):
                continue
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if value:
                result[key] = str(value)
        return result


class TransportError(AppError):
    """Raised on network failure or an unstructured error response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, code="TRANSPORT_ERROR")
        self.status_code = status_code


class PartialBatchError(AppError):
    """Raised when some independent sub-operations of a mutation failed."""

    def __init__(self, message: str, failures: list[str]):
        super().__init__(message, code="PARTIAL_BATCH_ERROR")
        self.failures = failures


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")
