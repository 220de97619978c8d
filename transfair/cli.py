"""Command Line Interface for TransFAIR.

Runs transfers between the biobank, clinical-core and discovery-catalog
schemas and lists the available mapping directions.

Security Impact:
    - Configuration is validated before any record is read
    - API keys are taken from configuration files or the environment,
      never from command line options
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from transfair import __version__
from transfair.domain.directions import MappingDirection, build_registry
from transfair.domain.ports import TransferError
from transfair.infrastructure.config_manager import ConfigManager
from transfair.infrastructure.logging_config import setup_logging
from transfair.infrastructure.settings import settings
from transfair.main import TransferSummary, run_transfer

app = typer.Typer(
    name="transfair",
    help="TransFAIR: transform clinical and biobank records between schemas",
    add_completion=False,
)
console = Console()

_DIRECTION_SCHEMAS = {
    MappingDirection.BIOBANK_TO_CORE: ("BBMRI.de biobank", "MII core"),
    MappingDirection.CORE_TO_BIOBANK: ("MII core", "BBMRI.de biobank"),
    MappingDirection.BIOBANK_TO_CATALOG: ("BBMRI.de biobank", "Beacon v2 catalog"),
    MappingDirection.COPY: ("any", "same"),
}


def _print_summary(summary: TransferSummary) -> None:
    routing = summary.routing
    console.print("\n[bold]Transfer Summary:[/bold]")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Direction:", summary.direction)
    table.add_row("Records read:", f"[bold]{routing.received:,}[/bold]")
    table.add_row("Records written:", f"[green]{summary.records_written:,}[/green]")
    table.add_row("Unmappable kinds:", f"{routing.unmappable:,}")
    table.add_row("Unrepresentable:", f"{routing.unrepresentable:,}")
    if summary.records_unrelabelled:
        table.add_row("Unmapped ids:", f"[yellow]{summary.records_unrelabelled:,}[/yellow]")
    table.add_row("Batches written:", f"{summary.batches_written:,}")
    table.add_row(
        "Batches failed:",
        f"[red]{summary.batches_failed:,}[/red]" if summary.batches_failed else "0",
    )
    console.print(table)

    if routing.by_kind:
        kinds = Table(title="Input records by kind")
        kinds.add_column("Kind")
        kinds.add_column("Count", justify="right")
        for kind, count in sorted(routing.by_kind.items()):
            kinds.add_row(kind, f"{count:,}")
        console.print(kinds)


@app.command()
def transfer(
    direction: Optional[str] = typer.Option(None, "--direction", "-d", help="Mapping direction (see 'directions')"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON transfer configuration file", exists=True, dir_okay=False),
    input_source: Optional[str] = typer.Option(None, "--input", "-i", help="FHIR base URL or input file/directory"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="FHIR base URL, output directory or database file"),
    writer: Optional[str] = typer.Option(None, "--writer", "-w", help="Writer: fhir, file, duckdb or catalog"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", help="Records per bundle", min=1),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Transform records from a source and write them to a target.

    Options override values from --config, which override TF_* environment
    variables.

    Examples:
        transfair transfer -d bbmri2mii -i http://bbmri:8080/fhir -o http://mii:8080/fhir
        transfair transfer -d bbmri2beacon -i export.ndjson -o catalog/ -w catalog
        transfair transfer -c transfer.json --verbose
    """
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)

    try:
        manager = settings.config_manager
        if config:
            manager = manager.merged(ConfigManager.from_file(str(config)).as_dict())
        if manager.get("reader.batch_size") is None and batch_size is None:
            batch_size = settings.batch_size
        manager = manager.merged({
            "direction": direction,
            "reader": {"source": input_source, "batch_size": batch_size},
            "writer": {"kind": writer, "target": output},
        })
        transfer_config = manager.get_transfer_config()

        console.print("\n[bold blue]TransFAIR[/bold blue]")
        console.print(f"[dim]Direction:[/dim] {transfer_config.direction.value}")
        console.print(f"[dim]Source:[/dim] {transfer_config.reader.source}")
        console.print(f"[dim]Target:[/dim] {transfer_config.writer.kind} {transfer_config.writer.target}")
        console.print(f"[dim]Batch size:[/dim] {transfer_config.reader.batch_size}")

        with console.status("[bold green]Transferring records..."):
            summary = run_transfer(transfer_config, circuit_breaker_config=settings.circuit_breaker_config())
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠[/yellow] Transfer interrupted by user")
        raise typer.Exit(code=130)
    except TransferError as e:
        console.print(f"\n[red]✗[/red] Transfer failed: {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=1)

    _print_summary(summary)
    if summary.has_failures:
        console.print(f"\n[yellow]⚠[/yellow] Transfer completed with {summary.batches_failed} failed batches")
        raise typer.Exit(code=1)
    console.print("\n[green]✓[/green] Transfer completed successfully")


@app.command()
def directions() -> None:
    """List the mapping directions and the record kinds each one handles."""
    logging.getLogger("transfair").setLevel(logging.WARNING)

    table = Table(title="Mapping directions")
    table.add_column("Direction", style="bold")
    table.add_column("Source")
    table.add_column("Target")
    table.add_column("Record kinds")
    for direction in MappingDirection:
        source, target = _DIRECTION_SCHEMAS[direction]
        kinds = build_registry(direction).kinds or ["* (any)"]
        table.add_row(direction.value, source, target, ", ".join(kinds))
    console.print(table)


@app.callback()
def main_callback(
    version: bool = typer.Option(False, "--version", help="Show version information")
) -> None:
    """TransFAIR: transform clinical and biobank records between schemas."""
    if version:
        console.print(f"TransFAIR v{__version__}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
