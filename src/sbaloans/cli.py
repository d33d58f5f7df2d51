"""Command-line interface for the sbaloans pipeline."""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from sbaloans.config.settings import PipelineConfig

app = typer.Typer(
    name="sbaloans",
    help="Normalize SBA 7(a) loan extracts into a canonical loan table.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


def _load_config(config: Path, log_level: str | None = None) -> "PipelineConfig":
    """Load configuration and set up logging; exit on invalid config."""
    import yaml

    from sbaloans.config.loader import load_config
    from sbaloans.utils.logging import configure_logging

    try:
        pipeline_config = load_config(config)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration {config}: {e}[/red]")
        raise typer.Exit(code=1) from e

    logging_config = pipeline_config.logging
    configure_logging(
        level=log_level or logging_config.level,
        json_output=logging_config.json_output,
    )
    return pipeline_config


@app.command()
def ingest(
    config: ConfigOption,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Transform and validate without writing outputs.",
        ),
    ] = False,
    sequential: Annotated[
        bool,
        typer.Option(
            "--sequential",
            help="Map sources one after another instead of in parallel.",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level."),
    ] = None,
) -> None:
    """Normalize all configured extracts into the canonical loan table."""
    import pandera.errors

    from sbaloans.etl import IngestionError, IngestionPipeline
    from sbaloans.validation import ConsoleReporter

    pipeline_config = _load_config(config, log_level)
    if sequential:
        execution = pipeline_config.execution.model_copy(update={"parallel": False})
        pipeline_config = pipeline_config.model_copy(update={"execution": execution})

    console.print(
        f"[blue]Ingesting {len(pipeline_config.sources)} extract(s) "
        f"for project {pipeline_config.project}[/blue]"
    )

    try:
        result = IngestionPipeline(pipeline_config).run(write=not dry_run)
    except IngestionError as e:
        console.print(f"[red]Ingestion aborted, previous outputs left intact: {e}[/red]")
        raise typer.Exit(code=1) from e
    except (pandera.errors.SchemaError, pandera.errors.SchemaErrors) as e:
        console.print(f"[red]Canonical table failed validation: {e}[/red]")
        raise typer.Exit(code=1) from e

    ConsoleReporter(console).print_quality_report(result.report)

    if result.canonical_path:
        console.print(f"\n[green]Saved {result.n_loans:,} loans to: {result.canonical_path}[/green]")
        console.print(f"[green]Quality report: {result.quality_report_path}[/green]")
    else:
        console.print(f"\n[yellow]Dry run: {result.n_loans:,} loans not written[/yellow]")


@app.command()
def derive(config: ConfigOption) -> None:
    """Compute derived metrics for the canonical table."""
    import pandera.errors

    from sbaloans.etl.output import read_canonical_csv, write_csv_atomic
    from sbaloans.metrics import add_derived_metrics
    from sbaloans.schemas import SchemaRegistry

    pipeline_config = _load_config(config)

    try:
        df = read_canonical_csv(pipeline_config.canonical_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}. Run 'sbaloans ingest' first.[/red]")
        raise typer.Exit(code=1) from e

    try:
        enriched = SchemaRegistry.validate(add_derived_metrics(df), "enriched_loan")
    except (pandera.errors.SchemaError, pandera.errors.SchemaErrors) as e:
        console.print(f"[red]Enriched table failed validation: {e}[/red]")
        raise typer.Exit(code=1) from e

    path = write_csv_atomic(enriched, pipeline_config.enriched_path)

    table = Table(title="Derived Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Non-null", justify="right", style="green")
    for column in enriched.columns[len(df.columns) :]:
        table.add_row(column, f"{int(enriched[column].notna().sum()):,}/{len(enriched):,}")
    console.print(table)
    console.print(f"\n[green]Saved to: {path}[/green]")


@app.command()
def validate(config: ConfigOption) -> None:
    """Validate written outputs against their schemas."""
    from sbaloans.validation import ConsoleReporter, ValidationRunner

    console.print("[blue]Running output validation...[/blue]")
    pipeline_config = _load_config(config)

    results = ValidationRunner(pipeline_config).run()
    ConsoleReporter(console).print_results(results)

    if any(r.schema_valid is False for r in results):
        raise typer.Exit(code=1)


@app.command()
def report(
    config: ConfigOption,
    all_fields: Annotated[
        bool,
        typer.Option("--all-fields", help="List fields without quality issues too."),
    ] = False,
) -> None:
    """Show the quality report of the last ingestion run."""
    from sbaloans.etl.quality import QualityReport
    from sbaloans.validation import ConsoleReporter

    pipeline_config = _load_config(config)
    path = pipeline_config.quality_report_path
    if not path.exists():
        console.print(f"[red]Error: quality report not found: {path}[/red]")
        raise typer.Exit(code=1)

    quality = QualityReport.from_dict(json.loads(path.read_text(encoding="utf-8")))
    ConsoleReporter(console).print_quality_report(quality, all_fields=all_fields)


@app.command()
def summary(config: ConfigOption) -> None:
    """Summarize the canonical loan table."""
    from sbaloans.etl.output import read_canonical_csv
    from sbaloans.reporting import summarize
    from sbaloans.validation import ConsoleReporter

    pipeline_config = _load_config(config)
    try:
        df = read_canonical_csv(pipeline_config.canonical_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}. Run 'sbaloans ingest' first.[/red]")
        raise typer.Exit(code=1) from e

    ConsoleReporter(console).print_summary(summarize(df))


@app.command()
def version() -> None:
    """Show version information."""
    from sbaloans import __version__

    console.print(f"sbaloans version {__version__}")


if __name__ == "__main__":
    app()
