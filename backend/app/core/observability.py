# backend/app/core/observability.py
"""Category-tagged logging facade over the standard logging module."""

import logging
import sys
from typing import Any, Dict, Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SECURITY = logging.WARNING + 5
logging.addLevelName(SECURITY, "SECURITY")


def _format(message: str, category: str, extra: Optional[Dict[str, Any]]) -> str:
    text = f"[{category}] {message}"
    if extra:
        pairs = " ".join(f"{key}={value}" for key, value in extra.items())
        text = f"{text} | {pairs}"
    return text


class Logs:
    """
    Thin wrapper that tags every record with a category and optional extras.

    Usage:
        logs.info("Scan started", "orchestrator", {"scan_id": scan_id})
        logs.error("Scan failed", "orchestrator", exception=e)
    """

    def __init__(self, name: str, level: str = "INFO") -> None:
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)
        self.logger.setLevel(level.upper())

    def _log(
        self,
        level: int,
        message: str,
        category: str,
        extra: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        if exception is not None:
            extra = {**(extra or {}), "error": f"{type(exception).__name__}: {exception}"}
        self.logger.log(
            level,
            _format(message, category, extra),
            exc_info=exception if exception is not None and settings.DEBUG else None,
        )

    def debug(self, message: str, category: str = "app", extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, category, extra)

    def info(self, message: str, category: str = "app", extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, category, extra)

    def warning(self, message: str, category: str = "app", extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, category, extra)

    def error(
        self,
        message: str,
        category: str = "app",
        extra: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        self._log(logging.ERROR, message, category, extra, exception)

    def security(self, message: str, category: str = "security", extra: Optional[Dict[str, Any]] = None) -> None:
        """Record a security-relevant event such as a rate limit hit."""
        self._log(SECURITY, message, category, extra)


logs = Logs(settings.APP_NAME, settings.LOG_LEVEL)
