"""
Console reporter for validation results and run reports.

Formats results using Rich for clear, colored output.
"""

from rich.console import Console
from rich.table import Table

from sbaloans.etl.quality import DATASET_CHECKS, QUALITY_FLAGS, QualityReport
from sbaloans.reporting.summary import ImportSummary
from sbaloans.validation.core import ValidationResult


class ConsoleReporter:
    """Formats and displays results to the console."""

    def __init__(self, console: Console) -> None:
        """
        Initialize console reporter.

        Args:
            console: Rich Console instance for output.
        """
        self.console = console

    def print_results(self, results: list[ValidationResult]) -> None:
        """
        Print validation results as a formatted table.

        Args:
            results: List of validation results to display.
        """
        table = Table(title="Output Validation Results", show_header=True)
        table.add_column("Dataset", style="cyan", no_wrap=True)
        table.add_column("Schema", style="blue")
        table.add_column("Status", justify="center")
        table.add_column("Rows", justify="right")
        table.add_column("Details", style="dim")

        for result in results:
            row_count = str(result.row_count) if result.row_count is not None else "-"
            table.add_row(
                result.dataset_name,
                result.schema_name or "-",
                self._format_status(result),
                row_count,
                self._format_details(result),
            )

        self.console.print(table)
        self._print_summary(results)
        self._print_detailed_errors(results)

    def _format_status(self, result: ValidationResult) -> str:
        if not result.exists:
            return "[yellow]Missing[/yellow]"
        if result.schema_valid is None:
            return "[yellow]Skipped[/yellow]"
        if result.schema_valid:
            return "[green]Pass[/green]"
        return "[red]Fail[/red]"

    def _format_details(self, result: ValidationResult) -> str:
        if not result.exists:
            return "File not found"
        if result.schema_valid is None:
            return result.error_message or "No schema"
        if result.schema_valid:
            return "OK"
        return "See errors below"

    def _print_summary(self, results: list[ValidationResult]) -> None:
        passed = sum(1 for r in results if r.schema_valid is True)
        failed = sum(1 for r in results if r.schema_valid is False)
        skipped = sum(1 for r in results if r.schema_valid is None)

        self.console.print()
        self.console.print("[bold]Summary:[/bold]")
        self.console.print(f"  Total outputs: {len(results)}")
        self.console.print(f"  [green]Passed: {passed}[/green]")
        self.console.print(f"  [red]Failed: {failed}[/red]")
        self.console.print(f"  [yellow]Skipped: {skipped}[/yellow]")

    def _print_detailed_errors(self, results: list[ValidationResult]) -> None:
        """Print error messages of failed validations."""
        failed = [r for r in results if r.schema_valid is False]
        if not failed:
            return

        self.console.print()
        self.console.print("[bold red]Validation Errors:[/bold red]")
        for result in failed:
            self.console.print()
            self.console.print(
                f"[bold]{result.dataset_name}[/bold] (schema: {result.schema_name or '-'}):"
            )
            self.console.print(f"  File: {result.file_path}")
            if result.error_message:
                for line in result.error_message.split("\n"):
                    self.console.print(f"  {line}")

    def print_quality_report(self, report: QualityReport, *, all_fields: bool = False) -> None:
        """
        Print row counts, flags and per-field quality of an ingestion run.

        Args:
            report: Quality report to display.
            all_fields: Include fields without nulls or invalid values.
        """
        rows = Table(title="Ingestion", show_header=True)
        rows.add_column("Source", style="cyan")
        rows.add_column("Rows", justify="right")
        for source, count in sorted(report.rows_per_source.items()):
            rows.add_row(source, f"{count:,}")
        rows.add_row("[bold]Total[/bold]", f"[bold]{report.total_rows:,}[/bold]")
        self.console.print(rows)

        self.console.print(
            f"Accepted: [green]{report.accepted:,}[/green]  "
            f"Rejected: [red]{report.rejected:,}[/red]  "
            f"({report.acceptance_rate:.2f}% accepted)"
        )
        for reason, count in sorted(report.rejection_reasons.items()):
            self.console.print(f"  [dim]{reason}: {count:,}[/dim]")

        fields = Table(title="Field Quality", show_header=True)
        fields.add_column("Field", style="cyan", no_wrap=True)
        fields.add_column("Null", justify="right")
        fields.add_column("Null %", justify="right")
        fields.add_column("Invalid", justify="right")
        fields.add_column("Invalid %", justify="right")
        for fq in report.fields():
            if not all_fields and not (fq.null_count or fq.invalid_count):
                continue
            invalid_style = "red" if fq.invalid_count else "dim"
            fields.add_row(
                fq.field,
                f"{fq.null_count:,}",
                f"{fq.null_pct:.2f}",
                f"[{invalid_style}]{fq.invalid_count:,}[/{invalid_style}]",
                f"{fq.invalid_pct:.2f}",
            )
        self.console.print(fields)

        flags = Table(title="Quality Flags", show_header=True)
        flags.add_column("Flag", style="cyan")
        flags.add_column("Loans", justify="right")
        for name in QUALITY_FLAGS:
            count = report.flag_counts[name]
            flags.add_row(name, f"[yellow]{count:,}[/yellow]" if count else "0")
        for name in DATASET_CHECKS:
            count = report.dataset_counts[name]
            flags.add_row(name, f"[yellow]{count:,}[/yellow]" if count else "0")
        self.console.print(flags)

    def print_summary(self, summary: ImportSummary) -> None:
        """Print the headline figures of an imported portfolio."""
        table = Table(title="Import Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Total loans", f"{summary.total_loans:,}")
        for status, count in summary.status_counts.items():
            table.add_row(f"  {status}", f"{count:,}")
        if summary.first_fiscal_year is not None:
            table.add_row(
                "Fiscal years", f"{summary.first_fiscal_year}-{summary.last_fiscal_year}"
            )
        table.add_row("States", str(summary.distinct_states))
        table.add_row("Gross approved", f"${summary.total_gross_approved:,.2f}")
        table.add_row("SBA guaranteed", f"${summary.total_sba_approved:,.2f}")
        table.add_row("Charged off", f"${summary.total_chargeoff_amount:,.2f}")
        if summary.average_loan_size is not None:
            table.add_row("Average loan size", f"${summary.average_loan_size:,.0f}")
        if summary.average_term_months is not None:
            table.add_row("Average term", f"{summary.average_term_months:.0f} months")

        self.console.print(table)
