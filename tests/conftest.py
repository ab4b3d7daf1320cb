"""
Shared fixtures for the TLS risk scanner tests.

Provides builders for raw assessment documents shaped like the service's
``analyze`` payload, a pinned reference time, and a scripted fake of the
assessment client so the orchestrator can be driven without network access.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Union

import pytest

from backend.app.features.scanner import routes

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def make_endpoint(
    grade: str = "A+",
    protocols: Iterable[tuple] = (("TLS", "1.3"),),
    suites: Iterable[float] = (256,),
    hsts: str = "present",
    expires_in_days: Optional[float] = 100,
    validity_days: float = 365,
    has_warnings: bool = False,
    is_exceptional: bool = False,
    chain_issues: int = 0,
    ip_address: str = "93.184.216.34",
    now: datetime = FIXED_NOW,
) -> dict:
    details = {
        "protocols": [{"name": n, "version": v} for n, v in protocols],
        "suites": {"list": [{"name": f"SUITE_{s}", "cipherStrength": s} for s in suites]},
        "hstsPolicy": {"status": hsts},
        "serverSignature": "nginx",
        "chain": {"issues": chain_issues},
    }
    if expires_in_days is not None:
        not_after = now + timedelta(days=expires_in_days)
        details["cert"] = {
            "subject": "CN=example.com",
            "issuerSubject": "CN=R3, O=Let's Encrypt, C=US",
            "notBefore": to_ms(not_after - timedelta(days=validity_days)),
            "notAfter": to_ms(not_after),
        }
    return {
        "ipAddress": ip_address,
        "grade": grade,
        "hasWarnings": has_warnings,
        "isExceptional": is_exceptional,
        "details": details,
    }


def make_report(*endpoints: dict, host: str = "example.com", status: str = "READY") -> dict:
    return {
        "host": host,
        "port": 443,
        "protocol": "http",
        "status": status,
        "endpoints": list(endpoints),
    }


def encode(document: dict) -> bytes:
    return json.dumps(document).encode("utf-8")


def pending(status: str = "IN_PROGRESS") -> bytes:
    return encode({"host": "example.com", "status": status})


class FakeAssessmentClient:
    """
    Scripted stand-in for AssessmentClient.

    ``polls`` is consumed in order; the last entry repeats once the script runs
    out. Entries that are exceptions are raised instead of returned.
    ``start_gate``, when given, blocks start_assessment until it is set.
    """

    def __init__(
        self,
        polls: Optional[List[Union[bytes, Exception]]] = None,
        start_error: Optional[Exception] = None,
        start_gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.polls = list(polls or [pending()])
        self.start_error = start_error
        self.start_gate = start_gate
        self.calls: List[tuple] = []

    async def start_assessment(self, domain: str) -> bytes:
        self.calls.append(("start", domain))
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        return pending("DNS")

    async def poll_assessment(self, domain: str) -> bytes:
        self.calls.append(("poll", domain))
        item = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def poll_count(self) -> int:
        return sum(1 for kind, _ in self.calls if kind == "poll")


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def excellent_report() -> bytes:
    return encode(make_report(make_endpoint()))


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Each test starts with an empty per-IP rate limit window."""
    routes.rate_limit_store.clear()
    yield
    routes.rate_limit_store.clear()
