# backend/app/core/exceptions.py
"""Custom exception hierarchy for the TLS risk scanner."""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidRequestError(AppException):
    """Raised when a domain or scan ID is empty or malformed."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppException):
    """Raised when a scan ID is not known to the registry."""

    def __init__(self, message: str = "Scan request not found") -> None:
        super().__init__(message, status_code=404)


class RateLimitError(AppException):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message, status_code=429)


class ScanError(AppException):
    """Raised when a scan operation fails."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=500, details=details)


class RemoteAssessmentError(ScanError):
    """Raised when the assessment service reports ERROR for a domain."""


class TransportError(AppException):
    """Raised when the assessment service cannot be reached or answers badly."""

    def __init__(
        self,
        message: str = "Unable to reach assessment service",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=502, details=details)


class ReportError(AppException):
    """Raised when a raw assessment report cannot be reduced."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=422, details=details)


class EmptyInputError(ReportError):
    """Raised when the raw report is empty."""

    def __init__(
        self, message: str = "Raw report is empty (no data received from assessment service)"
    ) -> None:
        super().__init__(message)


class MalformedInputError(ReportError):
    """Raised when the raw report is not a JSON object."""

    def __init__(
        self,
        message: str = "Raw report is not valid JSON",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
