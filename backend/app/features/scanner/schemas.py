# backend/app/features/scanner/schemas.py
"""API request/response schemas for the scanner."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .models import FilteredReport, ScanRequest, ScanStatus


class ScanStartRequest(BaseModel):
    """Request to start a new TLS scan."""

    domain: str = Field(..., max_length=2048, description="Bare host name, e.g. example.com")

    @field_validator("domain")
    @classmethod
    def strip_domain(cls, v: str) -> str:
        """Trim surrounding whitespace; format checks happen in the orchestrator."""
        return v.strip()


class ScanStartResponse(BaseModel):
    """Response after starting a scan."""

    scan_id: str
    message: str = "Scan started"


class ScanStatusResponse(BaseModel):
    """Response for scan status queries."""

    scan_id: str
    domain: str
    status: ScanStatus
    result: Optional[FilteredReport] = None
    error: Optional[str] = None

    @classmethod
    def from_request(cls, request: ScanRequest) -> "ScanStatusResponse":
        return cls(
            scan_id=request.scan_id,
            domain=request.domain,
            status=request.status,
            result=request.result,
            error=request.error,
        )


class ScanCancelResponse(BaseModel):
    """Response after a cancellation request."""

    scan_id: str
    cancelled: bool
