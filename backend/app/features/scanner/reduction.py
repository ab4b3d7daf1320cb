# backend/app/features/scanner/reduction.py
"""
Report reduction engine.

Turns the deeply nested JSON document returned by the assessment service into
a compact FilteredReport and a narrative summary with a single verdict.
Everything here is pure: given the same bytes and the same ``now`` the output
is identical.
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from backend.app.core import EmptyInputError, MalformedInputError
from .models import FilteredCertificate, FilteredEndpoint, FilteredReport

WEAK_CIPHER_THRESHOLD = 112.0
EXPIRY_WARNING_DAYS = 30
NO_CERTIFICATE_SENTINEL = 9999.0

MS_PER_DAY = 24 * 60 * 60 * 1000
DAYS_PER_YEAR = 365.25

NO_INFORMATION_SUMMARY = "No valid information could be obtained from the TLS analysis."

GRADE_PRIORITY = {
    "A+": 11,
    "A": 10,
    "A-": 9,
    "B+": 8,
    "B": 7,
    "B-": 6,
    "C+": 5,
    "C": 4,
    "C-": 3,
    "D+": 2,
    "D": 1,
    "D-": 0,
    "E+": -1,
    "E": -2,
    "E-": -3,
    "F": -10,
}
UNKNOWN_GRADE_PRIORITY = -100

FieldPath = Sequence[Union[str, int]]


class Verdict(str, Enum):
    """Final verdict tiers, best first."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    ACCEPTABLE = "Acceptable (improvement recommended)"
    POOR = "Poor (high risk)"
    VERY_POOR = "Very poor (insecure site)"


# --- absent-tolerant accessors -------------------------------------------------


def _lookup(node: Any, path: FieldPath) -> Any:
    """Walk dict keys and list indices; return None as soon as a step is missing."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or not -len(node) <= step < len(node):
                return None
            node = node[step]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(step)
        if node is None:
            return None
    return node


def _string(node: Any, *path: Union[str, int]) -> str:
    value = _lookup(node, path)
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _number(node: Any, *path: Union[str, int]) -> float:
    """Numeric field as a finite float; anything unusable reads as 0."""
    value = _lookup(node, path)
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if not isinstance(value, (int, float, str)):
        return 0.0
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _integer(node: Any, *path: Union[str, int]) -> int:
    return int(_number(node, *path))


def _boolean(node: Any, *path: Union[str, int]) -> bool:
    value = _lookup(node, path)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return False


def _array(node: Any, *path: Union[str, int]) -> list:
    value = _lookup(node, path)
    return value if isinstance(value, list) else []


def _round1(value: float) -> float:
    """Round to one decimal, halves away from zero. Out-of-range values read as 0."""
    scaled = abs(value) * 10 + 0.5
    if not math.isfinite(scaled):
        return 0.0
    return math.copysign(math.floor(scaled) / 10, value)


# --- endpoint extraction -------------------------------------------------------


def extract_protocols(endpoint: Any) -> List[str]:
    return [
        f"{_string(p, 'name')} {_string(p, 'version')}"
        for p in _array(endpoint, "details", "protocols")
    ]


def _suite_strengths(endpoint: Any) -> List[float]:
    return [
        _number(suite, "cipherStrength")
        for suite in _array(endpoint, "details", "suites", "list")
    ]


def max_cipher_strength(endpoint: Any) -> float:
    return max(_suite_strengths(endpoint), default=0.0)


def has_weak_cipher(endpoint: Any) -> bool:
    return any(s < WEAK_CIPHER_THRESHOLD for s in _suite_strengths(endpoint))


def certificate_validity(cert: Any, now: datetime) -> tuple:
    """
    Derive (validity_years, expires_in_days) from notBefore/notAfter.

    Both timestamps are milliseconds since the epoch. If either is missing or
    zero the certificate is treated as unknown and (0, 0) is returned.
    """
    not_before_ms = _number(cert, "notBefore")
    not_after_ms = _number(cert, "notAfter")
    if not_before_ms == 0 or not_after_ms == 0:
        return 0.0, 0.0

    now_ms = now.timestamp() * 1000
    validity_years = (not_after_ms - not_before_ms) / MS_PER_DAY / DAYS_PER_YEAR
    expires_in_days = (not_after_ms - now_ms) / MS_PER_DAY
    return _round1(validity_years), _round1(expires_in_days)


def extract_certificate(endpoint: Any, now: datetime) -> Optional[FilteredCertificate]:
    cert = _lookup(endpoint, ("details", "cert"))
    if not isinstance(cert, dict):
        return None
    validity_years, expires_in_days = certificate_validity(cert, now)
    return FilteredCertificate(
        subject=_string(cert, "subject"),
        issuer=_string(cert, "issuerSubject"),
        validity_years=validity_years,
        expires_in_days=expires_in_days,
    )


def reduce_endpoint(endpoint: Any, now: datetime) -> FilteredEndpoint:
    return FilteredEndpoint(
        ip_address=_string(endpoint, "ipAddress"),
        grade=_string(endpoint, "grade"),
        has_warnings=_boolean(endpoint, "hasWarnings"),
        is_exceptional=_boolean(endpoint, "isExceptional"),
        certificate=extract_certificate(endpoint, now),
        protocols=extract_protocols(endpoint),
        negotiated_cipher_strength=_number(endpoint, "details", "suites", "list", 0, "cipherStrength"),
        max_cipher_strength=max_cipher_strength(endpoint),
        has_weak_ciphers=has_weak_cipher(endpoint),
        hsts=_string(endpoint, "details", "hstsPolicy", "status"),
        server=_string(endpoint, "details", "serverSignature"),
        chain_issues=_integer(endpoint, "details", "chain", "issues"),
    )


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def reduce_report(raw: bytes, now: Optional[datetime] = None) -> FilteredReport:
    """
    Parse a raw assessment document and reduce it to a FilteredReport.

    Any valid JSON value is accepted. A document that is not an object has
    no fields and reduces to an empty report.

    Args:
        raw: JSON bytes as returned by the assessment service
        now: Reference time for expiry maths and the report timestamp;
            defaults to the current UTC time

    Raises:
        EmptyInputError: raw is empty
        MalformedInputError: raw is not valid JSON
    """
    if not raw:
        raise EmptyInputError()

    try:
        document = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedInputError(details={"reason": str(e)}) from e

    if now is None:
        now = datetime.now(timezone.utc)

    report = FilteredReport(
        host=_string(document, "host"),
        web_protocol=_string(document, "protocol"),
        endpoints=[reduce_endpoint(ep, now) for ep in _array(document, "endpoints")],
        timestamp=now,
    )
    report.summary = summarize(report)
    if report.endpoints:
        report.verdict = compute_verdict(aggregate_signals(report)).value
    return report


# --- summary -------------------------------------------------------------------


def get_grade_priority(grade: str) -> int:
    """Numeric priority of a letter grade; higher is better."""
    return GRADE_PRIORITY.get(grade, UNKNOWN_GRADE_PRIORITY)


@dataclass
class SummarySignals:
    """Aggregates across all endpoints of a report."""

    best_grade: str = "F"
    has_warnings: bool = False
    is_exceptional: bool = False
    has_weak_ciphers: bool = False
    has_hsts: bool = False
    has_tls13: bool = False
    has_certificate: bool = False
    min_expires_in_days: float = NO_CERTIFICATE_SENTINEL
    max_chain_issues: int = 0


def aggregate_signals(report: FilteredReport) -> SummarySignals:
    signals = SummarySignals()
    best_priority = get_grade_priority(signals.best_grade)

    for ep in report.endpoints:
        priority = get_grade_priority(ep.grade)
        if priority > best_priority:
            best_priority = priority
            signals.best_grade = ep.grade

        signals.has_warnings = signals.has_warnings or ep.has_warnings
        signals.is_exceptional = signals.is_exceptional or ep.is_exceptional
        signals.has_weak_ciphers = signals.has_weak_ciphers or ep.has_weak_ciphers
        if "present" in ep.hsts.lower():
            signals.has_hsts = True
        if "TLS 1.3" in ep.protocols:
            signals.has_tls13 = True
        if ep.chain_issues > signals.max_chain_issues:
            signals.max_chain_issues = ep.chain_issues
        if ep.certificate is not None:
            signals.has_certificate = True
            signals.min_expires_in_days = min(
                signals.min_expires_in_days, ep.certificate.expires_in_days
            )

    return signals


def compute_verdict(signals: SummarySignals) -> Verdict:
    grade = signals.best_grade
    # Grade families rank as a whole: A- without TLS 1.3 and HSTS and every
    # B/C variant are Acceptable, D/E variants are Poor. Only F and unrecognized
    # grades fall through to Very poor.
    if grade == "A+" or (
        grade == "A"
        and signals.is_exceptional
        and not signals.has_warnings
        and signals.has_tls13
        and signals.has_hsts
    ):
        return Verdict.EXCELLENT
    if grade == "A" or (grade == "A-" and signals.has_tls13 and signals.has_hsts):
        return Verdict.GOOD
    if grade == "A-" or grade[:1] in ("B", "C"):
        return Verdict.ACCEPTABLE
    if grade[:1] in ("D", "E"):
        return Verdict.POOR
    return Verdict.VERY_POOR


def summarize(report: FilteredReport) -> str:
    """Build the narrative summary and final verdict for a reduced report."""
    if not report.endpoints:
        return NO_INFORMATION_SUMMARY

    signals = aggregate_signals(report)
    first = report.endpoints[0]
    parts = [f"TLS analysis for {report.host} - Overall grade: {signals.best_grade}."]

    # Protocols
    if signals.has_tls13:
        parts.append("Supports TLS 1.3 (excellent current security level).")
    elif "TLS 1.2" in first.protocols:
        parts.append("Supports TLS 1.2 but not TLS 1.3 (acceptable, not optimal).")
    else:
        parts.append("Obsolete or insecure protocols detected.")

    # Cipher strength, first endpoint as reference
    if first.max_cipher_strength >= 256:
        parts.append("Strong encryption (up to 256 bits).")
    elif first.max_cipher_strength >= 128:
        parts.append("Acceptable encryption (128 bits).")
    else:
        parts.append("Weak encryption detected.")
    if signals.has_weak_ciphers:
        parts.append("Warning: weak cipher suites are enabled.")

    if signals.has_hsts:
        parts.append("HSTS is active (good protection against downgrade attacks).")
    else:
        parts.append("No HSTS: vulnerable to downgrade attacks (plain HTTP possible).")

    # Certificate
    days = signals.min_expires_in_days
    if not signals.has_certificate:
        parts.append("No certificate information was reported.")
    elif days > EXPIRY_WARNING_DAYS:
        parts.append(f"Certificate valid for more than {EXPIRY_WARNING_DAYS} days.")
    elif days > 0:
        parts.append(f"Certificate expires in {days:.1f} days: renew soon.")
    else:
        parts.append("Certificate expired or invalid: site is insecure.")

    if signals.has_warnings:
        parts.append("There are minor configuration warnings.")
    if signals.is_exceptional:
        parts.append("At least one endpoint has an exceptional configuration.")
    if signals.max_chain_issues > 0:
        parts.append("Problems detected in the certificate chain.")

    parts.append(f"FINAL VERDICT: {compute_verdict(signals).value}")
    return " ".join(parts)
