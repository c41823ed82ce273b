"""Main CLI application using Typer."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Optional, TypeVar
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from perimeter.version import __version__
from perimeter.core.config import get_settings
from perimeter.core.exceptions import PerimeterError
from perimeter.core.logging import setup_logging

app = typer.Typer(
    name="perimeter",
    help="Perimeter - infrastructure exposure scanner",
    no_args_is_help=True,
)

console = Console()

T = TypeVar("T")


def version_callback(value: bool) -> None:
    if value:
        console.print(f"Perimeter version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Perimeter - find what your CDN is supposed to hide."""
    setup_logging()


def _run(func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    """Run a coroutine against an initialized database."""
    from perimeter.database import init_db, close_db

    async def runner() -> T:
        await init_db()
        try:
            return await func(*args, **kwargs)
        finally:
            await close_db()

    try:
        return asyncio.run(runner())
    except PerimeterError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from None


@app.command()
def configure(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
    token: Annotated[
        str,
        typer.Option("--token", "-t", help="DNS provider API token", prompt=True, hide_input=True),
    ],
    proxy: Annotated[
        Optional[str],
        typer.Option("--proxy", help="HTTP/HTTPS forward proxy for probes"),
    ] = None,
    schedule: Annotated[
        Optional[str],
        typer.Option("--schedule", "-s", help="Cron expression, e.g. '0 0 * * *'"),
    ] = None,
    disable: Annotated[
        bool,
        typer.Option("--disable", help="Store the configuration with scheduled scans off"),
    ] = False,
) -> None:
    """Verify a provider token and store an organization's configuration."""
    from perimeter.orchestration import ScanConfigService

    config = _run(
        ScanConfigService().save_config,
        organization,
        api_token=token,
        http_proxy=proxy,
        scan_schedule=schedule,
        is_enabled=not disable,
    )
    console.print(
        f"[green]Configuration saved for {config.organization_id}[/green] "
        f"(schedule: {config.scan_schedule}, enabled: {config.is_enabled})"
    )


@app.command()
def scan(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
    triggered_by: Annotated[
        str,
        typer.Option("--triggered-by", help="Recorded trigger source"),
    ] = "manual",
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the scan log as JSON"),
    ] = None,
) -> None:
    """
    Run a full exposure scan for an organization.

    Examples:
        perimeter scan acme
        perimeter scan acme --output scan.json
    """
    from perimeter.cli.formatters import export_json, format_scan_log
    from perimeter.database import ScanLogRepository, get_session
    from perimeter.orchestration import ScanOrchestrator

    async def run() -> Any:
        async with get_session() as db:
            running = await ScanLogRepository(db).get_running(organization)
        if running is not None:
            console.print(f"[yellow]A scan is already in progress ({running.id})[/yellow]")
            raise typer.Exit(1)
        return await ScanOrchestrator().run_full_scan(organization, triggered_by)

    console.print(
        Panel(
            f"[bold blue]Perimeter Scan[/bold blue]\n"
            f"Organization: [green]{organization}[/green]",
            title="Starting Scan",
        )
    )

    with console.status("[bold green]Scanning...[/bold green]"):
        try:
            scan_log = _run(run)
        except (typer.Exit, PerimeterError):
            raise
        except Exception as e:
            console.print(f"[red]Scan failed: {e}[/red]")
            raise typer.Exit(1) from None

    if output:
        export_json(scan_log.to_dict(), output)
        console.print(f"[green]Scan log saved to {output}[/green]")
    format_scan_log(console, scan_log)


@app.command()
def check(
    record_id: Annotated[str, typer.Argument(help="DNS record id")],
    organization: Annotated[str, typer.Option("--org", help="Organization identifier")],
) -> None:
    """Re-check a single record's reachability."""
    from perimeter.cli.formatters import format_json
    from perimeter.orchestration import ScanOrchestrator

    try:
        record_uuid = UUID(record_id)
    except ValueError:
        console.print(f"[red]Invalid record id: {record_id}[/red]")
        raise typer.Exit(1) from None

    record = _run(ScanOrchestrator().check_single_record, record_uuid, organization)
    format_json(console, record.to_dict())


@app.command("run-scheduled")
def run_scheduled() -> None:
    """Scan every enabled organization once."""
    from perimeter.orchestration import ScanScheduler

    outcomes = _run(ScanScheduler().run_scheduled_scans)

    table = Table(title="Scheduled Scans")
    table.add_column("Organization", style="cyan")
    table.add_column("Outcome")
    for organization, outcome in outcomes.items():
        color = {"completed": "green", "skipped": "yellow"}.get(outcome, "red")
        table.add_row(organization, f"[{color}]{outcome}[/{color}]")
    console.print(table)


@app.command()
def schedule() -> None:
    """Run the cron scheduler until interrupted."""
    from perimeter.orchestration import ScanScheduler

    async def daemon() -> None:
        scheduler = ScanScheduler()
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown()

    console.print("[bold blue]Scheduler running[/bold blue] (Ctrl+C to stop)")
    try:
        _run(daemon)
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


@app.command()
def status(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
) -> None:
    """Show exposure statistics and the latest scan."""
    from perimeter.cli.formatters import format_scan_log, format_stats
    from perimeter.database import ScanLogRepository, get_session
    from perimeter.orchestration.queries import get_exposure_stats

    async def load() -> Any:
        async with get_session() as db:
            stats = await get_exposure_stats(db, organization)
            latest = await ScanLogRepository(db).latest(organization)
        return stats, latest

    stats, latest = _run(load)
    format_stats(console, organization, stats)
    if latest is not None:
        format_scan_log(console, latest)


@app.command()
def records(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
    exposure: Annotated[
        Optional[str],
        typer.Option("--status", help="PUBLIC, PRIVATE, UNREACHABLE, ERROR or PENDING"),
    ] = None,
    record_type: Annotated[
        Optional[str],
        typer.Option("--type", help="A, AAAA or CNAME"),
    ] = None,
    exposed_only: Annotated[
        bool,
        typer.Option("--exposed", help="Only records with an exposed origin"),
    ] = False,
    search: Annotated[
        Optional[str],
        typer.Option("--search", help="Substring of the hostname"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n")] = 100,
) -> None:
    """List DNS records and their exposure state."""
    from perimeter.cli.formatters import format_records
    from perimeter.database import DnsRecordRepository, get_session

    async def load() -> Any:
        async with get_session() as db:
            return await DnsRecordRepository(db).search(
                organization,
                search=search,
                record_type=record_type.upper() if record_type else None,
                exposure_status=exposure.upper() if exposure else None,
                origin_protected=False if exposed_only else None,
                limit=limit,
            )

    rows, total = _run(load)
    format_records(console, rows, total)


@app.command()
def zones(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
) -> None:
    """List synced DNS zones."""
    from perimeter.cli.formatters import format_zones
    from perimeter.database import ZoneRepository, get_session

    async def load() -> Any:
        async with get_session() as db:
            return await ZoneRepository(db).list_with_counts(organization)

    format_zones(console, _run(load))


@app.command()
def export(
    organization: Annotated[str, typer.Argument(help="Organization identifier")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="CSV file path"),
    ] = None,
) -> None:
    """Export the exposure report as CSV."""
    from perimeter.database import DnsRecordRepository, ScanLogRepository, get_session
    from perimeter.reports import CSVReportGenerator

    async def load() -> Any:
        async with get_session() as db:
            rows, _ = await DnsRecordRepository(db).search(organization, limit=0)
            last_scan = await ScanLogRepository(db).latest_completed(organization)
        return rows, last_scan

    rows, last_scan = _run(load)
    generator = CSVReportGenerator()
    path = output or Path(generator.filename())
    generator.generate(rows, last_scan, output_path=path)
    console.print(f"[green]Report with {len(rows)} records saved to {path}[/green]")


@app.command("init-db")
def init_database() -> None:
    """Create database tables."""

    async def noop() -> None:
        return None

    _run(noop)
    console.print(f"[green]Database ready at {get_settings().database_url}[/green]")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Provider API", settings.cloudflare_api_base)
    table.add_row("Provider Requests/s", str(settings.provider_requests_per_second))
    table.add_row("Probe Timeout", f"{settings.probe_timeout}s")
    table.add_row("Probe Max Redirects", str(settings.probe_max_redirects))
    table.add_row("Direct Probe Timeout", f"{settings.direct_probe_timeout}s")
    table.add_row("Probe Batch Size", str(settings.probe_batch_size))
    table.add_row("Default Schedule", settings.default_scan_schedule)
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Format", settings.log_format)
    table.add_row("API Host", settings.api_host)
    table.add_row("API Port", str(settings.api_port))

    console.print(table)


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", "-r", help="Enable auto-reload for development"),
    ] = False,
) -> None:
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(
        Panel(
            f"[bold blue]Starting API Server[/bold blue]\n"
            f"Host: [green]{host}[/green]\n"
            f"Port: [green]{port}[/green]\n"
            f"Docs: [cyan]http://{host}:{port}/docs[/cyan]",
            title="API Server",
        )
    )

    uvicorn.run(
        "perimeter.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
