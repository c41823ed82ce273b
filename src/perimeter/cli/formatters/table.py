"""Table formatter for CLI output."""

from collections.abc import Sequence
from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from perimeter.database.models import DnsRecord, DnsZone, ScanLog
from perimeter.models import ExposureStats, ExposureStatus, ScanStatus

STATUS_STYLES = {
    ExposureStatus.PUBLIC.value: "yellow",
    ExposureStatus.PRIVATE.value: "green",
    ExposureStatus.UNREACHABLE.value: "dim",
    ExposureStatus.ERROR.value: "red",
    ExposureStatus.PENDING.value: "cyan",
}


def _format_datetime(value: datetime | None) -> str:
    """Safely format a timestamp to string."""
    if value is None:
        return "N/A"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _origin_label(value: bool | None) -> str:
    if value is None:
        return "[dim]N/A[/dim]"
    return "[green]Yes[/green]" if value else "[bold red]No[/bold red]"


def format_scan_log(console: Console, scan_log: ScanLog) -> None:
    """Display a scan log with its counters."""
    color = {
        ScanStatus.COMPLETED.value: "green",
        ScanStatus.FAILED.value: "red",
    }.get(scan_log.status, "yellow")

    lines = [
        f"Organization: [cyan]{scan_log.organization_id}[/cyan]",
        f"Status: [{color}]{scan_log.status}[/]",
        f"Triggered by: {scan_log.triggered_by}",
        f"Started: {_format_datetime(scan_log.started_at)}",
        f"Completed: {_format_datetime(scan_log.completed_at)}",
    ]
    if scan_log.current_domain:
        lines.append(f"Current domain: [cyan]{scan_log.current_domain}[/cyan]")
    if scan_log.error:
        lines.append(f"Error: [red]{scan_log.error}[/red]")

    console.print(Panel("\n".join(lines), title=f"Scan {scan_log.id}"))

    table = Table(title="Counters")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Zones scanned", str(scan_log.zones_scanned))
    table.add_row("Records scanned", str(scan_log.records_scanned))
    table.add_row("Checked", f"{scan_log.checked_records}/{scan_log.total_records}")
    table.add_row("Public", f"[yellow]{scan_log.public_count}[/yellow]")
    table.add_row("Private", f"[green]{scan_log.private_count}[/green]")
    table.add_row("Unreachable", str(scan_log.unreachable_count))
    table.add_row("Errors", f"[red]{scan_log.error_count}[/red]")
    table.add_row("Origin exposed", f"[bold red]{scan_log.origin_exposed_count}[/bold red]")
    console.print(table)


def format_stats(console: Console, organization_id: str, stats: ExposureStats) -> None:
    """Display aggregate exposure figures."""
    configured = "[green]Yes[/green]" if stats.is_configured else "[red]No[/red]"
    enabled = "[green]Yes[/green]" if stats.is_enabled else "[red]No[/red]"
    last_scan = (
        _format_datetime(stats.last_scan.completed_at) if stats.last_scan else "Never"
    )
    console.print(
        Panel(
            f"Organization: [cyan]{organization_id}[/cyan]\n"
            f"Configured: {configured}  Enabled: {enabled}\n"
            f"Schedule: {stats.scan_schedule or 'N/A'}\n"
            f"Last completed scan: {last_scan}",
            title="Infrastructure Exposure",
        )
    )

    table = Table()
    table.add_column("Zones", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Public", justify="right", style="yellow")
    table.add_column("Private", justify="right", style="green")
    table.add_column("Unreachable", justify="right")
    table.add_column("Pending", justify="right", style="cyan")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Origin exposed", justify="right", style="bold red")
    table.add_row(
        str(stats.zone_count),
        str(stats.total_records),
        str(stats.public_count),
        str(stats.private_count),
        str(stats.unreachable_count),
        str(stats.pending_count),
        str(stats.error_count),
        str(stats.origin_exposed_count),
    )
    console.print(table)

    if stats.by_type:
        console.print(
            "By type: " + ", ".join(f"{t}={n}" for t, n in sorted(stats.by_type.items()))
        )


def format_records(
    console: Console,
    rows: Sequence[tuple[DnsRecord, str]],
    total: int,
) -> None:
    """Display DNS records with their exposure state."""
    table = Table(title=f"DNS Records ({len(rows)} of {total})")
    table.add_column("Name", style="cyan")
    table.add_column("Zone")
    table.add_column("Type")
    table.add_column("Content")
    table.add_column("Proxied")
    table.add_column("Exposure")
    table.add_column("HTTP", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Origin protected")

    for record, zone_name in rows:
        style = STATUS_STYLES.get(record.exposure_status, "white")
        table.add_row(
            record.name,
            zone_name,
            record.record_type,
            record.content,
            "Yes" if record.proxied else "No",
            f"[{style}]{record.exposure_status}[/{style}]",
            str(record.http_status_code) if record.http_status_code is not None else "-",
            str(record.response_time_ms) if record.response_time_ms is not None else "-",
            _origin_label(record.origin_protected),
        )
    console.print(table)

    exposed = [r for r, _ in rows if r.origin_protected is False and r.origin_exposure_details]
    for record in exposed:
        console.print(
            f"  [bold red]{record.origin_exposure_type}[/bold red] "
            f"{record.name}: {record.origin_exposure_details}"
        )


def format_zones(console: Console, zones: Sequence[tuple[DnsZone, int]]) -> None:
    table = Table(title=f"DNS Zones ({len(zones)})")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Nameservers")
    table.add_column("Records", justify="right")
    for zone, count in zones:
        table.add_row(zone.name, zone.status, ", ".join(zone.nameservers), str(count))
    console.print(table)
