# backend/app/features/scanner/services.py
"""Scan orchestrator - drives TLS assessments and tracks their state."""

import asyncio
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from backend.app.core import (
    AppException,
    InvalidRequestError,
    NotFoundError,
    RemoteAssessmentError,
    logs,
    settings,
)
from .client import (
    STATUS_ERROR,
    STATUS_READY,
    AssessmentClient,
    describe_remote_error,
    read_assessment_status,
)
from .models import ScanRequest, ScanStatus
from .reduction import reduce_report
from .registry import ScanRegistry

CANCELLED_MESSAGE = "Scan cancelled"

LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")

ProgressCallback = Callable[[str], None]


def normalize_domain(domain: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Validate and normalize a bare host name.

    Raises:
        InvalidRequestError: domain is empty, too long, or not a bare host name
    """
    max_length = max_length or settings.MAX_DOMAIN_LENGTH
    value = (domain or "").strip().lower().rstrip(".")
    if not value:
        raise InvalidRequestError("Domain must not be empty")
    if len(value) > max_length:
        raise InvalidRequestError(
            f"Domain is too long (max {max_length} characters)",
            details={"domain": value[:64]},
        )
    if "://" in value or "/" in value:
        raise InvalidRequestError(
            "Invalid domain format (domain only, no http/https/path)",
            details={"domain": value},
        )
    labels = value.split(".")
    if len(labels) < 2 or not all(LABEL_RE.match(label) for label in labels):
        raise InvalidRequestError("Invalid domain format", details={"domain": value})
    return value


@dataclass
class ScanHandle:
    """A running scan worker together with its cancellation signal."""

    scan_id: str
    domain: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for up to ``seconds``; return True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


class ScanOrchestrator:
    """
    Starts TLS scans in the background and answers status queries.

    Each scan runs as its own asyncio task: start an assessment, poll it at a
    fixed interval until the service reports READY or ERROR, then reduce the
    raw report. The outcome lands in the registry as ``complete`` or
    ``error``; worker failures never propagate to the caller of start_scan.
    """

    def __init__(
        self,
        client: AssessmentClient,
        registry: Optional[ScanRegistry] = None,
        poll_interval: Optional[float] = None,
        max_duration: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.client = client
        self.registry = registry if registry is not None else ScanRegistry()
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.POLL_INTERVAL_SECONDS
        )
        self.max_duration = max_duration
        self._clock = clock
        self._handles: Dict[str, ScanHandle] = {}

    def start_scan(
        self,
        domain: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Register a scan for the domain and launch its worker.

        Must be called from a running event loop. Returns the scan ID without
        waiting on the assessment service.
        """
        domain = normalize_domain(domain)
        scan_id = str(uuid.uuid4())
        self.registry.insert(ScanRequest(scan_id=scan_id, domain=domain))

        handle = ScanHandle(scan_id=scan_id, domain=domain)
        self._handles[scan_id] = handle
        handle.task = asyncio.get_running_loop().create_task(
            self._run(handle, on_progress), name=f"scan-{scan_id[:8]}"
        )

        logs.info("Scan started", "orchestrator", {"scan_id": scan_id, "domain": domain})
        return scan_id

    def get_scan_status(self, scan_id: str) -> ScanRequest:
        if not scan_id or not scan_id.strip():
            raise InvalidRequestError("Scan ID must not be empty")
        request = self.registry.get(scan_id)
        if request is None:
            raise NotFoundError()
        return request

    def cancel_scan(self, scan_id: str) -> bool:
        """
        Stop a running scan and mark it as errored.

        Returns False if the scan had already finished.
        """
        self.get_scan_status(scan_id)
        handle = self._handles.get(scan_id)
        if handle is None:
            return False
        handle.cancel()
        cancelled = self.registry.update(scan_id, ScanStatus.ERROR, error=CANCELLED_MESSAGE)
        if cancelled:
            logs.info("Scan cancelled", "orchestrator", {"scan_id": scan_id})
        return cancelled

    async def wait_for_scan(self, scan_id: str) -> ScanRequest:
        """Wait until the scan's worker has exited and return its final state."""
        request = self.get_scan_status(scan_id)
        handle = self._handles.get(scan_id)
        if handle is not None and handle.task is not None:
            await asyncio.gather(handle.task, return_exceptions=True)
            request = self.get_scan_status(scan_id)
        return request

    async def shutdown(self) -> None:
        """Cancel every in-flight scan and wait for the workers to exit."""
        handles = list(self._handles.values())
        for handle in handles:
            handle.cancel()
            if handle.task is not None:
                handle.task.cancel()
        tasks = [h.task for h in handles if h.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        # a task cancelled before its first step never reaches its own handler
        for handle in handles:
            self.registry.update(handle.scan_id, ScanStatus.ERROR, error=CANCELLED_MESSAGE)
            self._handles.pop(handle.scan_id, None)
        if handles:
            logs.info("Orchestrator shut down", "orchestrator", {"cancelled": len(handles)})

    @property
    def active_scans(self) -> int:
        return len(self._handles)

    async def _run(self, handle: ScanHandle, on_progress: Optional[ProgressCallback]) -> None:
        """Scan worker: runs once per scan ID."""
        try:
            if self.max_duration is None:
                await self._assess(handle, on_progress)
            else:
                try:
                    await asyncio.wait_for(self._assess(handle, on_progress), self.max_duration)
                except asyncio.TimeoutError:
                    self._fail(handle, f"Scan timed out after {self.max_duration:g}s", on_progress)

        except asyncio.CancelledError:
            self._fail(handle, CANCELLED_MESSAGE, on_progress)
            raise
        except AppException as e:
            self._fail(handle, e.message, on_progress, exception=e)
        except Exception as e:
            logs.error("Scan worker crashed", "orchestrator", {"scan_id": handle.scan_id}, exception=e)
            self._fail(handle, str(e) or type(e).__name__, on_progress)
        finally:
            self._handles.pop(handle.scan_id, None)

    async def _assess(self, handle: ScanHandle, on_progress: Optional[ProgressCallback]) -> None:
        domain = handle.domain
        _notify(on_progress, f"[INFO] Requesting new assessment for {domain}...")
        await self.client.start_assessment(domain)

        while True:
            if handle.cancelled:
                self._fail(handle, CANCELLED_MESSAGE, on_progress)
                return

            raw = await self.client.poll_assessment(domain)
            status = read_assessment_status(raw)
            logs.debug(
                "Assessment polled",
                "orchestrator",
                {"scan_id": handle.scan_id, "status": status or "<none>"},
            )

            if status == STATUS_READY:
                report = reduce_report(raw, now=self._clock() if self._clock else None)
                if self.registry.update(handle.scan_id, ScanStatus.COMPLETE, result=report):
                    logs.info(
                        "Scan complete",
                        "orchestrator",
                        {"scan_id": handle.scan_id, "verdict": report.verdict},
                    )
                    _notify(on_progress, f"[PASS] Assessment ready for {domain}")
                return
            if status == STATUS_ERROR:
                raise RemoteAssessmentError(describe_remote_error(raw, domain))

            _notify(on_progress, f"[INFO] Assessment status: {status or 'pending'}")
            if await handle.sleep(self.poll_interval):
                self._fail(handle, CANCELLED_MESSAGE, on_progress)
                return

    def _fail(
        self,
        handle: ScanHandle,
        message: str,
        on_progress: Optional[ProgressCallback],
        exception: Optional[BaseException] = None,
    ) -> None:
        if not self.registry.update(handle.scan_id, ScanStatus.ERROR, error=message):
            return
        if message == CANCELLED_MESSAGE:
            logs.info("Scan cancelled", "orchestrator", {"scan_id": handle.scan_id})
        else:
            logs.error(
                "Scan failed",
                "orchestrator",
                {"scan_id": handle.scan_id, "domain": handle.domain},
                exception=exception,
            )
        _notify(on_progress, f"[ERROR] {message}")


def _notify(on_progress: Optional[ProgressCallback], message: str) -> None:
    if on_progress:
        on_progress(message)
