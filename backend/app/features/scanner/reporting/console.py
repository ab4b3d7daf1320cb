# backend/app/features/scanner/reporting/console.py
"""Rich terminal UI for CLI output."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models import FilteredEndpoint, FilteredReport
from ..reduction import Verdict, get_grade_priority

# Global console instance
console = Console()

VERDICT_STYLES = {
    Verdict.EXCELLENT.value: "bold green",
    Verdict.GOOD.value: "green",
    Verdict.ACCEPTABLE.value: "yellow",
    Verdict.POOR.value: "orange1",
    Verdict.VERY_POOR.value: "bold red",
}


def show_progress(message: str) -> None:
    """Show a progress message in the terminal."""
    if "[ERROR]" in message or "[WARN]" in message:
        console.print(f"[bold red]{message}[/bold red]")
    elif "[PASS]" in message:
        console.print(f"[green]{message}[/green]")
    else:
        console.print(f"[cyan]{message}[/cyan]")


def _grade_style(grade: str) -> str:
    priority = get_grade_priority(grade)
    if priority >= get_grade_priority("A-"):
        return "bold green"
    if priority >= get_grade_priority("C-"):
        return "yellow"
    return "bold red"


def _expiry_display(endpoint: FilteredEndpoint) -> str:
    cert = endpoint.certificate
    if cert is None:
        return "[dim]n/a[/dim]"
    if cert.expires_in_days <= 0:
        return f"[bold red]{cert.expires_in_days:.1f}d[/bold red]"
    if cert.expires_in_days <= 30:
        return f"[yellow]{cert.expires_in_days:.1f}d[/yellow]"
    return f"{cert.expires_in_days:.1f}d"


def show_endpoint_table(report: FilteredReport) -> None:
    """Display one row per assessed endpoint."""
    if not report.endpoints:
        console.print("[yellow]No endpoints were assessed.[/yellow]")
        return

    table = Table(
        title=f"Endpoints for {report.host}",
        show_header=True,
        header_style="bold cyan",
        title_style="bold cyan",
    )
    table.add_column("IP Address", style="cyan")
    table.add_column("Grade", justify="center", width=6)
    table.add_column("Protocols")
    table.add_column("Max Cipher", justify="right")
    table.add_column("HSTS", justify="center")
    table.add_column("Cert Expiry", justify="right")
    table.add_column("Chain Issues", justify="center")

    for ep in report.endpoints:
        style = _grade_style(ep.grade)
        cipher = f"{ep.max_cipher_strength:g} bits"
        if ep.has_weak_ciphers:
            cipher = f"[bold red]{cipher} (weak)[/bold red]"
        table.add_row(
            ep.ip_address,
            f"[{style}]{ep.grade or '-'}[/{style}]",
            ", ".join(ep.protocols) or "[dim]none[/dim]",
            cipher,
            ep.hsts or "[dim]-[/dim]",
            _expiry_display(ep),
            f"[bold red]{ep.chain_issues}[/bold red]" if ep.chain_issues else "[dim]0[/dim]",
        )

    console.print()
    console.print(table)


def show_summary(report: FilteredReport, scan_id: Optional[str] = None) -> None:
    """Show the narrative summary in a panel colored by verdict."""
    style = VERDICT_STYLES.get(report.verdict or "", "yellow")
    border = style.split()[-1]
    content = f"{report.summary}\n\nGenerated: {report.timestamp.isoformat()}"
    if scan_id:
        content += f"\nScan ID: {scan_id[:8]}"

    panel = Panel(
        content,
        border_style=border,
        title=f"[{style}]{report.verdict or 'NO DATA'}[/{style}]",
        title_align="left",
    )

    console.print()
    console.print(panel)


def show_error(message: str) -> None:
    """Display an error message without stack trace."""
    console.print(f"\n[bold red][ERROR][/bold red] {message}\n")
