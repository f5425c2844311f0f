"""
Error taxonomy for the publishing pipeline.

Every error carries the HTTP status and error code it is rendered with by
``responses.api_exception_handler``.
"""
from typing import Any, Dict, Optional


class CrosspostError(Exception):
    """Base class for errors raised by the publishing components."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class Forbidden(CrosspostError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFound(CrosspostError):
    status_code = 404
    error_code = "NOT_FOUND"


class InvalidState(CrosspostError):
    status_code = 400
    error_code = "INVALID_STATE"


class ValidationError(CrosspostError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NoValidAccounts(ValidationError):
    error_code = "NO_VALID_ACCOUNTS"


class UpstreamError(CrosspostError):
    """The aggregation service (or another external store) reported failure."""

    status_code = 502
    error_code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        payload: Optional[Any] = None,
    ):
        details = {"upstream_status": upstream_status} if upstream_status else None
        super().__init__(message, details)
        self.upstream_status = upstream_status
        self.payload = payload


class ConfigurationError(CrosspostError):
    status_code = 500
    error_code = "CONFIGURATION_ERROR"
