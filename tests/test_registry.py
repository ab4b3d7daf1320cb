"""Tests for the scan registry."""

import threading

import pytest
from pydantic import ValidationError

from backend.app.core import ScanError
from backend.app.features.scanner.models import FilteredReport, ScanRequest, ScanStatus
from backend.app.features.scanner.registry import ScanRegistry
from conftest import FIXED_NOW


def _report() -> FilteredReport:
    return FilteredReport(host="example.com", summary="ok", timestamp=FIXED_NOW)


def test_insert_and_get():
    registry = ScanRegistry()
    registry.insert(ScanRequest(scan_id="abc", domain="example.com"))

    request = registry.get("abc")
    assert request.status is ScanStatus.IN_PROGRESS
    assert request.result is None
    assert request.error is None
    assert registry.get("abc") is not None
    assert len(registry) == 1


def test_get_unknown_returns_none():
    assert ScanRegistry().get("missing") is None


def test_duplicate_insert_rejected():
    registry = ScanRegistry()
    registry.insert(ScanRequest(scan_id="abc", domain="example.com"))
    with pytest.raises(ScanError):
        registry.insert(ScanRequest(scan_id="abc", domain="other.com"))


def test_update_unknown_is_ignored():
    registry = ScanRegistry()
    assert registry.update("missing", ScanStatus.ERROR, error="boom") is False
    assert len(registry) == 0


def test_terminal_state_is_final():
    registry = ScanRegistry()
    registry.insert(ScanRequest(scan_id="abc", domain="example.com"))

    assert registry.update("abc", ScanStatus.COMPLETE, result=_report()) is True
    assert registry.update("abc", ScanStatus.ERROR, error="late failure") is False

    request = registry.get("abc")
    assert request.status is ScanStatus.COMPLETE
    assert request.error is None
    assert request.result.host == "example.com"


def test_update_replaces_snapshot():
    registry = ScanRegistry()
    registry.insert(ScanRequest(scan_id="abc", domain="example.com"))
    before = registry.get("abc")

    registry.update("abc", ScanStatus.ERROR, error="boom")

    assert before.status is ScanStatus.IN_PROGRESS
    assert before.error is None
    assert registry.get("abc").error == "boom"


def test_snapshots_are_immutable():
    request = ScanRequest(scan_id="abc", domain="example.com")
    with pytest.raises(ValidationError):
        request.status = ScanStatus.COMPLETE


def test_in_progress_listing():
    registry = ScanRegistry()
    registry.insert(ScanRequest(scan_id="a", domain="a.example"))
    registry.insert(ScanRequest(scan_id="b", domain="b.example"))
    registry.update("b", ScanStatus.ERROR, error="boom")

    assert registry.in_progress() == ["a"]


def test_concurrent_readers_never_see_torn_entries():
    registry = ScanRegistry()
    ids = [f"scan-{i}" for i in range(200)]
    for scan_id in ids:
        registry.insert(ScanRequest(scan_id=scan_id, domain="example.com"))

    torn = []
    done = threading.Event()

    def reader():
        while not done.is_set():
            for scan_id in ids:
                request = registry.get(scan_id)
                if request.status is ScanStatus.IN_PROGRESS:
                    ok = request.result is None and request.error is None
                elif request.status is ScanStatus.COMPLETE:
                    ok = request.result is not None and request.error is None
                else:
                    ok = request.result is None and request.error == "boom"
                if not ok:
                    torn.append(request)

    def writer():
        for i, scan_id in enumerate(ids):
            if i % 2:
                registry.update(scan_id, ScanStatus.COMPLETE, result=_report())
            else:
                registry.update(scan_id, ScanStatus.ERROR, error="boom")

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    writer()
    done.set()
    for t in readers:
        t.join()

    assert torn == []
    assert registry.in_progress() == []
