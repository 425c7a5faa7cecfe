"""ghgcalc CLI.

Commands:
- init: Initialize database schema
- calculate: Corporate Scope 1/2/3 footprint for an organization and year
- finalize: Mark a cached corporate report as Finalized
- mix-status: Production-mix completeness of a product footprint
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from ghgcalc.allocation.production_mix import ProductionMixAllocator
from ghgcalc.config import get_config
from ghgcalc.core.logging import configure_logging
from ghgcalc.db.connection import close_db, get_session, get_session_factory, init_db
from ghgcalc.errors import SourceUnavailableError
from ghgcalc.models import SCOPE3_BUCKETS
from ghgcalc.reporting.composer import CorporateEmissionsCalculator
from ghgcalc.reporting.reports import finalize_report, save_breakdown

app = typer.Typer(
    name="ghgcalc",
    help="ghgcalc - GHG Protocol corporate emissions engine",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def _setup() -> None:
    config = get_config()
    configure_logging(config.log_level, config.log_format)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def calculate(
    org_id: str | None = typer.Option(None, "--org", help="Organization ID"),
    year: int = typer.Option(..., "--year", help="Reporting year"),
    persist: bool = typer.Option(False, "--persist", help="Save into the corporate report"),
    as_json: bool = typer.Option(False, "--json", help="Print canonical JSON only"),
):
    """Calculate the corporate footprint (kg CO2e)."""
    config = get_config()
    org_id = org_id or config.org_id

    async def _calculate():
        try:
            calculator = CorporateEmissionsCalculator(
                get_session_factory(), config.accounting
            )
            result = await calculator.calculate(org_id, year)
            if persist:
                async with get_session() as session:
                    await save_breakdown(session, org_id, result)
            return result
        finally:
            await close_db()

    try:
        result = asyncio.run(_calculate())
    except (ValueError, SourceUnavailableError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(result.to_json())
        return

    console.print(f"[bold]Corporate footprint:[/bold] org={org_id}, year={year}")
    if not result.has_data:
        console.print("[yellow]No emissions data for this period[/yellow]")

    table = Table(title="Emissions (kg CO2e)")
    table.add_column("Line", style="cyan")
    table.add_column("kg CO2e", justify="right", style="green")

    table.add_row("Scope 1", f"{result.scope1:,.2f}")
    table.add_row("Scope 2", f"{result.scope2:,.2f}")
    for bucket in SCOPE3_BUCKETS:
        table.add_row(f"  Scope 3 {bucket}", f"{getattr(result.scope3, bucket):,.2f}")
    table.add_row("Scope 3", f"{result.scope3.total:,.2f}")
    table.add_row("[bold]Total[/bold]", f"[bold]{result.total:,.2f}[/bold]")
    console.print(table)

    if persist:
        console.print("[green]✓[/green] Saved to corporate report")


@app.command()
def finalize(
    org_id: str | None = typer.Option(None, "--org", help="Organization ID"),
    year: int = typer.Option(..., "--year", help="Reporting year"),
):
    """Mark the corporate report for a year as Finalized."""
    config = get_config()
    org_id = org_id or config.org_id

    async def _finalize():
        try:
            async with get_session() as session:
                report = await finalize_report(session, org_id, year)
                return report.finalized_at
        finally:
            await close_db()

    try:
        finalized_at = asyncio.run(_finalize())
    except LookupError as e:
        console.print(f"[red]✗[/red] {e}")
        console.print("Run 'ghgcalc calculate --persist' first")
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]✓[/bold green] Report {org_id}/{year} finalized at {finalized_at.isoformat()}"
    )


@app.command(name="mix-status")
def mix_status_cmd(
    footprint_id: UUID = typer.Argument(..., help="Product footprint ID"),
):
    """Show production-mix completeness for a footprint."""
    config = get_config()

    async def _status():
        try:
            async with get_session() as session:
                allocator = ProductionMixAllocator(
                    session, tolerance=config.accounting.share_tolerance
                )
                return (
                    await allocator.allocations(footprint_id),
                    await allocator.completeness(footprint_id),
                )
        finally:
            await close_db()

    allocations, summary = asyncio.run(_status())

    if not allocations:
        console.print("[yellow]No production mix recorded for this footprint[/yellow]")
        return

    table = Table(title=f"Production mix {footprint_id}")
    table.add_column("Facility", style="cyan")
    table.add_column("Share", justify="right", style="green")
    table.add_column("Intensity", justify="right")
    table.add_column("Source")

    for allocation in allocations:
        table.add_row(
            str(allocation.facility_id),
            f"{allocation.production_share * 100:.4f}%",
            str(allocation.facility_intensity) if allocation.facility_intensity is not None else "-",
            allocation.data_source_type.value if allocation.data_source_type else "-",
        )
    console.print(table)

    status = "[green]complete[/green]" if summary.is_complete else "[yellow]incomplete[/yellow]"
    console.print(f"Total share: {summary.total_share * 100:.4f}% ({status})")
    console.print(f"Weighted average intensity: {summary.weighted_average_intensity}")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
