# backend/app/features/scanner/reporting/export.py
"""JSON export of reduced reports."""

from pathlib import Path

from backend.app.core import logs
from ..models import FilteredReport


def write_report_json(report: FilteredReport, output_path: str) -> str:
    """
    Write the reduced report as pretty-printed JSON.

    Args:
        report: Reduced report to export
        output_path: Destination file path

    Returns:
        Absolute path to the written file
    """
    output_file = Path(output_path).absolute()
    with open(output_file, "w", encoding="utf-8") as f:
        f.write(report.model_dump_json(indent=2))

    logs.info("Report written", "reporting", {"path": str(output_file)})
    return str(output_file)
