"""
TestMedic CLI
Main entry point for the command-line interface

Usage:
    testmedic heal [RESULTS]       # Heal failing tests from a results document
    testmedic analyze [RESULTS]    # Classify failures without changing anything
    testmedic audit show           # Print the audit log
    testmedic audit clear          # Truncate the audit log
    testmedic backups prune        # Apply the backup retention policy
    testmedic version              # Show version information
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from testmedic import __version__
from testmedic.audit.logger import AuditLogger, AuditStatus
from testmedic.classification.classifier import ErrorClassifier
from testmedic.healing.backends.registry import create_backend
from testmedic.healing.backup import BackupManager
from testmedic.healing.models import HealingSessionSummary
from testmedic.healing.orchestrator import HealerOrchestrator, save_session
from testmedic.results.parser import ResultsJsonParser
from testmedic.shared.domain.exceptions import ConfigurationError, TestMedicError
from testmedic.shared.infrastructure.config import Settings, load_settings
from testmedic.shared.infrastructure.logging import configure_logging

app = typer.Typer(
    name="testmedic",
    help="TestMedic - repairs failing Playwright tests and keeps only verified fixes",
    add_completion=False,
    no_args_is_help=True,
)
audit_app = typer.Typer(help="Inspect the audit log", no_args_is_help=True)
backups_app = typer.Typer(help="Manage test file backups", no_args_is_help=True)
app.add_typer(audit_app, name="audit")
app.add_typer(backups_app, name="backups")

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="YAML config file (default: .testmedic.yml)")

_STATUS_STYLES = {
    AuditStatus.SUCCESS: "green",
    AuditStatus.WARNING: "yellow",
    AuditStatus.FAILURE: "red",
}


def _settings(config: Optional[Path]) -> Settings:
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    configure_logging(settings)
    return settings


def _locate_results(parser: ResultsJsonParser, results: Optional[Path], base_dir: Path) -> Path:
    path = results or parser.find_results_file(base_dir)
    if path is None or not Path(path).is_file():
        console.print(f"[red]No results document found[/red] (looked in {base_dir})")
        console.print("[dim]Run your tests with --reporter=json first, or pass the file explicitly.[/dim]")
        raise typer.Exit(1)
    return Path(path)


def _render_summary(summary: HealingSessionSummary) -> None:
    table = Table(title="Healing Session", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Test")
    table.add_column("Kind")
    table.add_column("Outcome")
    table.add_column("Reason", overflow="fold")

    for index, result in enumerate(summary.results, start=1):
        style = "green" if result.success else ("yellow" if result.outcome.value == "skipped" else "red")
        table.add_row(
            str(index),
            escape(result.test_name),
            result.classification.kind.value if result.classification else "-",
            f"[{style}]{result.outcome.value}[/{style}]",
            escape(result.reason),
        )

    console.print(table)
    console.print(
        f"[bold]{summary.healed}/{summary.total}[/bold] healed "
        f"({summary.success_rate:.0%}) in {summary.duration_seconds:.1f}s"
    )


@app.command()
def heal(
    results: Optional[Path] = typer.Argument(None, help="Results document (default: search the project)"),
    base_dir: Path = typer.Option(Path("."), "--base-dir", "-d", help="Project directory"),
    config: Optional[Path] = ConfigOption,
):
    """Heal every failing test in a results document"""
    settings = _settings(config)
    parser = ResultsJsonParser(base_dir=base_dir)
    results_path = _locate_results(parser, results, base_dir)

    failures = parser.parse(results_path)
    if not failures:
        console.print(f"[green]No failing tests in {results_path}[/green]")
        return

    console.print(f"[cyan]Healing {len(failures)} failing test(s) from {results_path}[/cyan]")
    try:
        backend = create_backend(settings, cwd=base_dir)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    orchestrator = HealerOrchestrator.from_settings(settings, backend)
    summary = asyncio.run(orchestrator.heal_all(failures))
    _render_summary(summary)

    try:
        session_path = save_session(summary, base_dir / settings.session_dir)
        console.print(f"[dim]Session saved to {session_path}[/dim]")
    except TestMedicError as e:
        console.print(f"[yellow]Could not save session summary:[/yellow] {escape(str(e))}")


@app.command()
def analyze(
    results: Optional[Path] = typer.Argument(None, help="Results document (default: search the project)"),
    base_dir: Path = typer.Option(Path("."), "--base-dir", "-d", help="Project directory"),
    as_json: bool = typer.Option(False, "--json", help="Print the analysis as JSON"),
    detailed: bool = typer.Option(False, "--detailed", help="Print the full text report"),
    config: Optional[Path] = ConfigOption,
):
    """Classify failing tests without calling any service or changing files"""
    _settings(config)
    parser = ResultsJsonParser(base_dir=base_dir)
    results_path = _locate_results(parser, results, base_dir)
    failures = parser.parse(results_path)

    if as_json:
        typer.echo(parser.export_as_json(failures))
        return
    if detailed:
        typer.echo(parser.generate_detailed_report(failures))
        return

    table = Table(title=f"Failures in {results_path}")
    table.add_column("Test")
    table.add_column("Kind")
    table.add_column("Severity")
    table.add_column("Score", justify="right")
    table.add_column("Diagnosis", overflow="fold")
    for failure in failures:
        classified = failure.classified
        table.add_row(
            escape(failure.test_name),
            classified.kind.value,
            classified.severity.value,
            str(ErrorClassifier.severity_score(classified.kind)),
            escape(classified.message),
        )
    console.print(table)

    summary = parser.generate_summary(failures)
    console.print(f"[bold]{summary.total}[/bold] failing test(s), [red]{summary.critical_count}[/red] critical")


@audit_app.command("show")
def audit_show(
    tail: int = typer.Option(0, "--tail", "-n", help="Only the last N entries"),
    config: Optional[Path] = ConfigOption,
):
    """Print audit log entries"""
    settings = _settings(config)
    entries = AuditLogger(settings.audit_log_path).entries()
    if tail > 0:
        entries = entries[-tail:]
    if not entries:
        console.print("[dim]Audit log is empty[/dim]")
        return
    for entry in entries:
        style = _STATUS_STYLES[entry.status]
        console.print(
            f"[dim]{entry.timestamp}[/dim] [{style}]{entry.status.value.upper():7}[/{style}] "
            f"[bold]{entry.action}[/bold] {escape(entry.file_path)} [dim]|[/dim] {escape(entry.details)}",
            highlight=False,
        )


@audit_app.command("clear")
def audit_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Optional[Path] = ConfigOption,
):
    """Truncate the audit log"""
    settings = _settings(config)
    if not yes and not typer.confirm(f"Clear {settings.audit_log_path}?"):
        raise typer.Abort()
    AuditLogger(settings.audit_log_path).clear()
    console.print("[green]Audit log cleared[/green]")


@backups_app.command("prune")
def backups_prune(config: Optional[Path] = ConfigOption):
    """Delete backups outside the retention policy"""
    settings = _settings(config)
    manager = BackupManager(
        settings.backup_dir,
        retention_days=settings.backup_retention_days,
        max_count=settings.backup_max_count,
    )
    removed = manager.enforce_retention()
    console.print(f"[green]Removed {len(removed)} backup(s)[/green], {len(manager.list_backups())} kept")


@app.command()
def version():
    """Show TestMedic version information"""
    console.print(Panel.fit(
        f"[bold cyan]TestMedic[/bold cyan]\n[dim]Version:[/dim] {__version__}",
        title="About TestMedic",
        border_style="cyan",
    ))


def main():
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
