# backend/app/cli.py
"""Typer CLI application for the TLS risk scanner."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from backend.app.core import AppException, settings
from backend.app.features.scanner.client import AssessmentClient
from backend.app.features.scanner.models import ScanRequest, ScanStatus
from backend.app.features.scanner.reduction import Verdict, reduce_report
from backend.app.features.scanner.reporting import (
    console,
    show_endpoint_table,
    show_error,
    show_progress,
    show_summary,
    write_report_json,
)
from backend.app.features.scanner.services import ScanOrchestrator

app = typer.Typer(
    name="scanner",
    help="TLS Risk Scanner - Assess a domain's TLS configuration and summarize the risk",
    add_completion=False,
    no_args_is_help=True,
)

FAILING_VERDICTS = {Verdict.POOR.value, Verdict.VERY_POOR.value}


@app.command()
def scan(
    domain: str = typer.Argument(..., help="Domain to assess (e.g., example.com)"),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the reduced report as JSON to this file",
    ),
    poll_interval: float = typer.Option(
        settings.POLL_INTERVAL_SECONDS,
        "--poll-interval",
        help="Seconds between status polls of the assessment service",
    ),
    timeout: Optional[float] = typer.Option(
        settings.SCAN_MAX_DURATION_SECONDS,
        "--timeout",
        help="Give up after this many seconds (default: wait until the service finishes)",
    ),
) -> None:
    """
    Run a TLS assessment for a domain and print the risk summary.

    Example usage:

        scanner scan example.com

        scanner scan example.com --output report.json
    """
    try:
        console.print()
        console.print(f"[bold cyan]TLS Risk Scanner[/bold cyan] v{settings.APP_VERSION}")
        console.print()
        console.print(f"Domain: [cyan]{domain}[/cyan]")
        console.print(f"Service: [dim]{settings.ASSESSMENT_API_URL}[/dim]")
        console.print()

        request = asyncio.run(_run_scan(domain, poll_interval, timeout))

        if request.status is ScanStatus.ERROR:
            show_error(request.error or "Scan failed")
            raise typer.Exit(1)

        report = request.result
        show_endpoint_table(report)
        show_summary(report, scan_id=request.scan_id)

        if output:
            path = write_report_json(report, output)
            console.print()
            console.print(f"[dim]Report saved to: {path}[/dim]")

        if report.verdict in FAILING_VERDICTS:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except AppException as e:
        show_error(e.message)
        raise typer.Exit(1)
    except Exception as e:
        show_error(str(e))
        raise typer.Exit(1)


async def _run_scan(domain: str, poll_interval: float, timeout: Optional[float]) -> ScanRequest:
    """Run one scan in-process with a spinner, returning its final state."""
    async with AssessmentClient() as client:
        orchestrator = ScanOrchestrator(
            client,
            poll_interval=poll_interval,
            max_duration=timeout,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Submitting scan...", total=None)

            def on_progress(message: str) -> None:
                progress.update(task, description=message)
                show_progress(message)

            scan_id = orchestrator.start_scan(domain, on_progress=on_progress)
            try:
                return await orchestrator.wait_for_scan(scan_id)
            finally:
                await orchestrator.shutdown()


@app.command()
def reduce(
    report_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Raw assessment JSON saved from the service",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the reduced report as JSON to this file",
    ),
) -> None:
    """Reduce a saved raw assessment report without contacting the service."""
    try:
        report = reduce_report(report_file.read_bytes())
    except AppException as e:
        show_error(e.message)
        raise typer.Exit(1)

    show_endpoint_table(report)
    show_summary(report)
    if output:
        path = write_report_json(report, output)
        console.print(f"[dim]Report saved to: {path}[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"TLS Risk Scanner v{settings.APP_VERSION}")


@app.command()
def info() -> None:
    """Show configuration information."""
    console.print()
    console.print("[bold]Configuration[/bold]")
    console.print()
    console.print(f"  App Name:       {settings.APP_NAME}")
    console.print(f"  Version:        {settings.APP_VERSION}")
    console.print(f"  Environment:    {settings.ENVIRONMENT}")
    console.print(f"  Service URL:    {settings.ASSESSMENT_API_URL}")
    console.print(f"  Poll Interval:  {settings.POLL_INTERVAL_SECONDS:g}s")
    console.print(f"  Timeout:        {settings.REQUEST_TIMEOUT}s")
    console.print()


if __name__ == "__main__":
    app()
