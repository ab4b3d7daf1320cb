# backend/app/features/scanner/client.py
"""HTTP client for the external TLS assessment service (SSL Labs API v2)."""

import json
from typing import Optional

import httpx

from backend.app.core import RemoteAssessmentError, TransportError, logs, settings

STATUS_READY = "READY"
STATUS_ERROR = "ERROR"


class AssessmentClient:
    """
    Issues single request/response cycles against the assessment service.

    The client holds no scan state. Pass an existing ``httpx.AsyncClient`` to
    share a connection pool (or a mock transport in tests); otherwise one is
    created and closed with :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url or settings.ASSESSMENT_API_URL
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            follow_redirects=True,
        )

    async def start_assessment(self, domain: str) -> bytes:
        """Trigger a fresh analysis run for the domain."""
        return await self._analyze(domain, start_new=True)

    async def poll_assessment(self, domain: str) -> bytes:
        """Fetch the latest, possibly cached, analysis state for the domain."""
        return await self._analyze(domain, start_new=False)

    async def _analyze(self, domain: str, start_new: bool) -> bytes:
        params = {
            "host": domain,
            "publish": "off",
            "all": "done",
            "ignoreMismatch": "on",
        }
        if start_new:
            params["startNew"] = "on"
        else:
            params["fromCache"] = "on"

        try:
            response = await self._client.get(self.base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Assessment service returned HTTP {e.response.status_code} for {domain}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Assessment request for {domain} failed: {e}",
                details={"type": type(e).__name__},
            ) from e

        logs.debug(
            "Assessment response received",
            "assessment",
            {"domain": domain, "start_new": start_new, "bytes": len(response.content)},
        )
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AssessmentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def read_assessment_status(raw: bytes) -> str:
    """
    Extract the ``status`` field from an assessment payload.

    Raises:
        TransportError: payload is not a JSON object
        RemoteAssessmentError: service answered with an ``errors`` list instead
            of a status
    """
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise TransportError("Assessment service returned invalid JSON") from e
    if not isinstance(document, dict):
        raise TransportError("Assessment service returned an unexpected payload")

    status = document.get("status")
    if isinstance(status, str) and status:
        return status

    errors = document.get("errors")
    if isinstance(errors, list) and errors:
        messages = [
            str(err.get("message", err)) if isinstance(err, dict) else str(err)
            for err in errors
        ]
        raise RemoteAssessmentError(
            "Assessment service rejected the request: " + "; ".join(messages),
            details={"errors": messages},
        )
    return ""


def describe_remote_error(raw: bytes, domain: str) -> str:
    """Human-readable message for a payload whose status is ERROR."""
    message = f"Error during TLS assessment for domain {domain}"
    try:
        document = json.loads(raw)
    except ValueError:
        return message
    status_message = document.get("statusMessage") if isinstance(document, dict) else None
    if status_message:
        message = f"{message}: {status_message}"
    return message
