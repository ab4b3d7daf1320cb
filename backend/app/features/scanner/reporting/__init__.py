# backend/app/features/scanner/reporting/__init__.py
"""Reporting modules for scan results."""

from .console import (
    console,
    show_endpoint_table,
    show_error,
    show_progress,
    show_summary,
)
from .export import write_report_json

__all__ = [
    "console",
    "show_progress",
    "show_endpoint_table",
    "show_summary",
    "show_error",
    "write_report_json",
]
