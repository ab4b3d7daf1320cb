# backend/app/features/scanner/__init__.py
"""Scanner feature module for the TLS risk scanner."""

from .models import (
    FilteredCertificate,
    FilteredEndpoint,
    FilteredReport,
    ScanRequest,
    ScanStatus,
)
from .reduction import Verdict, get_grade_priority, reduce_report, summarize
from .schemas import ScanStartRequest, ScanStartResponse, ScanStatusResponse

__all__ = [
    "FilteredCertificate",
    "FilteredEndpoint",
    "FilteredReport",
    "ScanRequest",
    "ScanStatus",
    "Verdict",
    "get_grade_priority",
    "reduce_report",
    "summarize",
    "ScanStartRequest",
    "ScanStartResponse",
    "ScanStatusResponse",
]
