"""Tests for the scan orchestrator."""

import asyncio

import pytest

from backend.app.core import InvalidRequestError, NotFoundError, TransportError
from backend.app.features.scanner.models import ScanStatus
from backend.app.features.scanner.reduction import Verdict
from backend.app.features.scanner.registry import ScanRegistry
from backend.app.features.scanner.services import (
    CANCELLED_MESSAGE,
    ScanOrchestrator,
    normalize_domain,
)
from conftest import FIXED_NOW, FakeAssessmentClient, encode, make_endpoint, make_report, pending


def _orchestrator(client, **kwargs) -> ScanOrchestrator:
    kwargs.setdefault("poll_interval", 0)
    return ScanOrchestrator(client, clock=lambda: FIXED_NOW, **kwargs)


class TestNormalizeDomain:
    def test_strips_and_lowercases(self):
        assert normalize_domain("  Example.COM. ") == "example.com"

    @pytest.mark.parametrize(
        "domain",
        ["", "   ", None, "https://example.com", "example.com/path", "localhost",
         "-bad.example.com", "exa mple.com", "a" * 300 + ".com"],
    )
    def test_rejects_invalid(self, domain):
        with pytest.raises(InvalidRequestError):
            normalize_domain(domain)


class TestStartScan:
    @pytest.mark.asyncio
    async def test_returns_immediately_with_in_progress_entry(self):
        gate = asyncio.Event()
        client = FakeAssessmentClient(start_gate=gate)
        orchestrator = _orchestrator(client)

        scan_id = orchestrator.start_scan("example.com")

        request = orchestrator.get_scan_status(scan_id)
        assert request.status is ScanStatus.IN_PROGRESS
        assert request.domain == "example.com"
        assert request.result is None and request.error is None

        # the worker is parked on the service; status is still readable
        await asyncio.sleep(0)
        assert client.calls == [("start", "example.com")]
        assert orchestrator.get_scan_status(scan_id).status is ScanStatus.IN_PROGRESS

        gate.set()
        await orchestrator.shutdown()

    @pytest.mark.asyncio
    async def test_invalid_domain_is_rejected_without_entry(self):
        registry = ScanRegistry()
        orchestrator = _orchestrator(FakeAssessmentClient(), registry=registry)

        with pytest.raises(InvalidRequestError):
            orchestrator.start_scan("")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_each_submission_gets_a_fresh_id(self):
        gate = asyncio.Event()
        orchestrator = _orchestrator(FakeAssessmentClient(start_gate=gate))

        first = orchestrator.start_scan("example.com")
        second = orchestrator.start_scan("example.com")

        assert first != second
        assert orchestrator.active_scans == 2
        await orchestrator.shutdown()


class TestScanWorker:
    @pytest.mark.asyncio
    async def test_completes_with_reduced_report(self):
        ready = encode(make_report(make_endpoint()))
        client = FakeAssessmentClient(polls=[pending(), pending(), ready])
        orchestrator = _orchestrator(client)

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.COMPLETE
        assert request.error is None
        assert request.result.host == "example.com"
        assert request.result.verdict == Verdict.EXCELLENT.value
        assert request.result.timestamp == FIXED_NOW
        assert client.calls[0] == ("start", "example.com")
        assert client.poll_count == 3
        assert orchestrator.active_scans == 0

    @pytest.mark.asyncio
    async def test_start_failure_is_stored_as_error(self):
        client = FakeAssessmentClient(start_error=TransportError("connection refused"))
        orchestrator = _orchestrator(client)

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert request.error == "connection refused"
        assert request.result is None
        assert client.poll_count == 0

    @pytest.mark.asyncio
    async def test_remote_error_status(self):
        failed = encode({"host": "nope.example", "status": "ERROR",
                         "statusMessage": "Unable to resolve domain name"})
        orchestrator = _orchestrator(FakeAssessmentClient(polls=[pending(), failed]))

        scan_id = orchestrator.start_scan("nope.example")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert request.error == (
            "Error during TLS assessment for domain nope.example: Unable to resolve domain name"
        )

    @pytest.mark.asyncio
    async def test_poll_transport_failure(self):
        client = FakeAssessmentClient(polls=[pending(), TransportError("HTTP 529")])
        orchestrator = _orchestrator(client)

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert request.error == "HTTP 529"

    @pytest.mark.asyncio
    async def test_service_errors_payload(self):
        rejected = encode({"errors": [{"field": "host", "message": "Invalid host"}]})
        orchestrator = _orchestrator(FakeAssessmentClient(polls=[rejected]))

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert "Invalid host" in request.error

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_captured(self):
        orchestrator = _orchestrator(FakeAssessmentClient(polls=[RuntimeError("kaboom")]))

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert request.error == "kaboom"

    @pytest.mark.asyncio
    async def test_timeout_from_client_without_bound_is_captured(self):
        orchestrator = _orchestrator(
            FakeAssessmentClient(polls=[asyncio.TimeoutError("read timed out")])
        )

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert request.error == "read timed out"
        assert orchestrator.active_scans == 0

    @pytest.mark.asyncio
    async def test_max_duration_bounds_the_scan(self):
        orchestrator = _orchestrator(
            FakeAssessmentClient(polls=[pending()]), poll_interval=0.01, max_duration=0.05
        )

        scan_id = orchestrator.start_scan("example.com")
        request = await orchestrator.wait_for_scan(scan_id)

        assert request.status is ScanStatus.ERROR
        assert "timed out" in request.error

    @pytest.mark.asyncio
    async def test_concurrent_reads_during_completion_are_consistent(self):
        ready = encode(make_report(make_endpoint()))
        orchestrator = _orchestrator(FakeAssessmentClient(polls=[pending()] * 5 + [ready]))
        scan_id = orchestrator.start_scan("example.com")

        seen = []
        while True:
            request = orchestrator.get_scan_status(scan_id)
            seen.append(request)
            if request.status.is_terminal:
                break
            await asyncio.sleep(0)

        for request in seen:
            if request.status is ScanStatus.IN_PROGRESS:
                assert request.result is None and request.error is None
            else:
                assert request.status is ScanStatus.COMPLETE
                assert request.result is not None and request.error is None


class TestStatusAndCancel:
    @pytest.mark.asyncio
    async def test_unknown_scan_id(self):
        orchestrator = _orchestrator(FakeAssessmentClient())
        with pytest.raises(NotFoundError):
            orchestrator.get_scan_status("00000000-0000-0000-0000-000000000000")
        with pytest.raises(NotFoundError):
            orchestrator.get_scan_status("not-a-uuid")

    @pytest.mark.asyncio
    async def test_empty_scan_id(self):
        orchestrator = _orchestrator(FakeAssessmentClient())
        with pytest.raises(InvalidRequestError):
            orchestrator.get_scan_status(" ")

    @pytest.mark.asyncio
    async def test_cancel_wakes_the_poll_loop(self):
        client = FakeAssessmentClient(polls=[pending()])
        orchestrator = _orchestrator(client, poll_interval=60)

        scan_id = orchestrator.start_scan("example.com")
        while client.poll_count == 0:
            await asyncio.sleep(0)

        assert orchestrator.cancel_scan(scan_id) is True
        assert orchestrator.get_scan_status(scan_id).error == CANCELLED_MESSAGE

        request = await asyncio.wait_for(orchestrator.wait_for_scan(scan_id), timeout=5)
        assert request.status is ScanStatus.ERROR
        assert request.error == CANCELLED_MESSAGE
        assert client.poll_count == 1

    @pytest.mark.asyncio
    async def test_cancel_finished_scan_is_noop(self):
        ready = encode(make_report(make_endpoint()))
        orchestrator = _orchestrator(FakeAssessmentClient(polls=[ready]))

        scan_id = orchestrator.start_scan("example.com")
        await orchestrator.wait_for_scan(scan_id)

        assert orchestrator.cancel_scan(scan_id) is False
        assert orchestrator.get_scan_status(scan_id).status is ScanStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_cancel_unknown_scan(self):
        orchestrator = _orchestrator(FakeAssessmentClient())
        with pytest.raises(NotFoundError):
            orchestrator.cancel_scan("missing")

    @pytest.mark.asyncio
    async def test_shutdown_cancels_in_flight_scans(self):
        gate = asyncio.Event()
        orchestrator = _orchestrator(FakeAssessmentClient(start_gate=gate))
        started = orchestrator.start_scan("example.com")
        await asyncio.sleep(0)
        never_ran = orchestrator.start_scan("example.org")

        await orchestrator.shutdown()

        for scan_id in (started, never_ran):
            request = orchestrator.get_scan_status(scan_id)
            assert request.status is ScanStatus.ERROR
            assert request.error == CANCELLED_MESSAGE
        assert orchestrator.active_scans == 0

    @pytest.mark.asyncio
    async def test_independent_orchestrators(self):
        ready = encode(make_report(make_endpoint()))
        first = _orchestrator(FakeAssessmentClient(polls=[ready]))
        second = _orchestrator(FakeAssessmentClient(polls=[ready]))

        scan_id = first.start_scan("example.com")
        await first.wait_for_scan(scan_id)

        with pytest.raises(NotFoundError):
            second.get_scan_status(scan_id)
