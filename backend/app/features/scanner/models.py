# backend/app/features/scanner/models.py
"""Data models for TLS scans and reduced assessment reports."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScanStatus(str, Enum):
    """Lifecycle states of a scan request."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not ScanStatus.IN_PROGRESS


class FilteredCertificate(BaseModel):
    """Leaf certificate summary for one endpoint."""

    subject: str = ""
    issuer: str = ""
    validity_years: float = 0.0
    expires_in_days: float = 0.0


class FilteredEndpoint(BaseModel):
    """Security-relevant signals for one server IP of the host."""

    ip_address: str = ""
    grade: str = ""
    has_warnings: bool = False
    is_exceptional: bool = False
    certificate: Optional[FilteredCertificate] = None
    protocols: List[str] = Field(default_factory=list)  # e.g. "TLS 1.3"
    negotiated_cipher_strength: float = 0.0
    max_cipher_strength: float = 0.0
    has_weak_ciphers: bool = False
    hsts: str = ""
    server: str = ""
    chain_issues: int = 0


class FilteredReport(BaseModel):
    """Compact, human-readable reduction of a raw assessment report."""

    host: str = ""
    web_protocol: str = ""
    endpoints: List[FilteredEndpoint] = Field(default_factory=list)
    summary: str = ""
    verdict: Optional[str] = None  # unset when no endpoint was assessed
    timestamp: datetime


class ScanRequest(BaseModel):
    """
    Immutable snapshot of a scan's state.

    The registry replaces snapshots whole, so a reader holding one never sees
    a status paired with the result or error of another state.
    """

    model_config = ConfigDict(frozen=True)

    scan_id: str
    domain: str
    status: ScanStatus = ScanStatus.IN_PROGRESS
    result: Optional[FilteredReport] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
