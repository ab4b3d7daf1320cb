# backend/app/features/scanner/registry.py
"""Concurrency-safe, in-memory store of scan request snapshots."""

import threading
from typing import Dict, List, Optional

from backend.app.core import ScanError
from .models import FilteredReport, ScanRequest, ScanStatus


class ScanRegistry:
    """
    Maps scan IDs to immutable ScanRequest snapshots.

    A single lock guards the dict. It is held only for a lookup or an
    assignment, never across I/O. Updates build a new snapshot and swap it in,
    so readers always get either the full old state or the full new one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scans: Dict[str, ScanRequest] = {}

    def insert(self, request: ScanRequest) -> None:
        with self._lock:
            if request.scan_id in self._scans:
                raise ScanError(
                    "Duplicate scan ID", details={"scan_id": request.scan_id}
                )
            self._scans[request.scan_id] = request

    def update(
        self,
        scan_id: str,
        status: ScanStatus,
        result: Optional[FilteredReport] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move an in-progress scan to a new status.

        Returns False when the ID is unknown or the scan is already terminal;
        terminal states never change.
        """
        with self._lock:
            current = self._scans.get(scan_id)
            if current is None or current.status.is_terminal:
                return False
            self._scans[scan_id] = current.model_copy(
                update={"status": status, "result": result, "error": error}
            )
            return True

    def get(self, scan_id: str) -> Optional[ScanRequest]:
        with self._lock:
            return self._scans.get(scan_id)

    def in_progress(self) -> List[str]:
        with self._lock:
            return [
                scan_id
                for scan_id, request in self._scans.items()
                if request.status is ScanStatus.IN_PROGRESS
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._scans)
