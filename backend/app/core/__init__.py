# backend/app/core/__init__.py
"""Core utilities for the TLS risk scanner."""

from .config import settings
from .exceptions import (
    AppException,
    EmptyInputError,
    InvalidRequestError,
    MalformedInputError,
    NotFoundError,
    RateLimitError,
    RemoteAssessmentError,
    ReportError,
    ScanError,
    TransportError,
)
from .observability import logs

__all__ = [
    "settings",
    "logs",
    "AppException",
    "InvalidRequestError",
    "NotFoundError",
    "RateLimitError",
    "ScanError",
    "RemoteAssessmentError",
    "TransportError",
    "ReportError",
    "EmptyInputError",
    "MalformedInputError",
]
