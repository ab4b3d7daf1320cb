# backend/app/features/scanner/routes.py
"""FastAPI routes for the scanner API."""

import asyncio
import json
import time
from collections import defaultdict
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from backend.app.core import RateLimitError, logs, settings
from .models import ScanStatus
from .schemas import (
    ScanCancelResponse,
    ScanStartRequest,
    ScanStartResponse,
    ScanStatusResponse,
)
from .services import ScanOrchestrator, normalize_domain

router = APIRouter(prefix="/scanner", tags=["scanner"])

# In-memory rate limiting (per IP)
rate_limit_store: Dict[str, list] = defaultdict(list)

STREAM_INTERVAL_SECONDS = 0.5


def get_orchestrator(request: Request) -> ScanOrchestrator:
    """Orchestrator owned by the application (set up in the lifespan)."""
    return request.app.state.orchestrator


def get_client_ip(request: Request) -> str:
    """Get real client IP, handling reverse proxies."""
    # Check X-Forwarded-For (take first IP - original client)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def check_rate_limit(client_ip: str) -> None:
    """
    Check if client has exceeded rate limit.

    Buckets whose requests have all left the window are dropped.

    Raises:
        RateLimitError: If rate limit exceeded
    """
    now = time.time()
    window_start = now - settings.RATE_LIMIT_WINDOW

    for ip in list(rate_limit_store):
        recent = [ts for ts in rate_limit_store[ip] if ts > window_start]
        if recent:
            rate_limit_store[ip] = recent
        else:
            del rate_limit_store[ip]

    requests = rate_limit_store.get(client_ip, [])
    if len(requests) >= settings.RATE_LIMIT_REQUESTS:
        logs.security(
            "Rate limit exceeded",
            "rate_limit",
            {"ip": client_ip, "requests": len(requests)},
        )
        raise RateLimitError(
            f"Rate limit exceeded. Please wait {settings.RATE_LIMIT_WINDOW} seconds."
        )

    rate_limit_store[client_ip].append(now)


@router.post("/scan/start", response_model=ScanStartResponse)
async def start_scan(
    request: ScanStartRequest,
    http_request: Request,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> ScanStartResponse:
    """
    Start a new TLS scan.

    The assessment runs in the background; poll the status endpoint (or
    subscribe to the stream) with the returned scan_id.
    """
    client_ip = get_client_ip(http_request)
    logs.info(
        "Scan request received",
        "api",
        {"domain": request.domain, "client_ip": client_ip},
    )

    domain = normalize_domain(request.domain)
    check_rate_limit(client_ip)

    scan_id = orchestrator.start_scan(domain)
    return ScanStartResponse(scan_id=scan_id)


@router.get("/scan/{scan_id}/status", response_model=ScanStatusResponse)
async def get_scan_status(
    scan_id: str,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> ScanStatusResponse:
    """Get the current status of a scan, with its report once complete."""
    return ScanStatusResponse.from_request(orchestrator.get_scan_status(scan_id))


@router.post("/scan/{scan_id}/cancel", response_model=ScanCancelResponse)
async def cancel_scan(
    scan_id: str,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> ScanCancelResponse:
    """Abort a running scan. Finished scans are left untouched."""
    cancelled = orchestrator.cancel_scan(scan_id)
    return ScanCancelResponse(scan_id=scan_id, cancelled=cancelled)


@router.get("/scan/{scan_id}/stream")
async def stream_scan(
    scan_id: str,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> EventSourceResponse:
    """
    Stream scan progress via Server-Sent Events.

    Events:
    - type: "status" - emitted whenever the scan status changes
    - type: "result" - final reduced report (JSON)
    - type: "error" - error message if the scan failed
    """
    orchestrator.get_scan_status(scan_id)

    async def event_generator() -> AsyncGenerator[dict, None]:
        last_status = None

        while True:
            scan = orchestrator.get_scan_status(scan_id)

            if scan.status != last_status:
                last_status = scan.status
                yield {
                    "event": "message",
                    "data": json.dumps({"type": "status", "status": scan.status.value}),
                }

            if scan.status is ScanStatus.COMPLETE:
                yield {
                    "event": "message",
                    "data": json.dumps(
                        {"type": "result", "data": scan.result.model_dump(mode="json")}
                    ),
                }
                break
            if scan.status is ScanStatus.ERROR:
                yield {
                    "event": "message",
                    "data": json.dumps(
                        {"type": "error", "message": scan.error or "Scan failed"}
                    ),
                }
                break

            await asyncio.sleep(STREAM_INTERVAL_SECONDS)

    return EventSourceResponse(event_generator())
