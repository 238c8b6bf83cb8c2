"""
VITALS command line interface.

Usage:
    vitals analyze --project-root . --format markdown --output report.md
    vitals fix --from-report report.json --issue security-3f2a9c1b0d4e
    vitals cache-stats
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import structlog
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import SCANNER_NAMES, ConfigLoader
from .core.health import health_band
from .core.orchestrator import Orchestrator
from .errors import VitalsError
from .logging_config import configure_logging
from .models import AnalysisResult, SeverityLevel
from .reports import ReportFormat, render


console = Console()
logger = structlog.get_logger(__name__)

SEVERITY_CHOICES = [level.value for level in SeverityLevel]
FORMAT_CHOICES = [fmt.format_name for fmt in ReportFormat]
BAND_STYLES = {"good": "green", "fair": "yellow", "poor": "dark_orange", "critical": "red"}

EXIT_ERROR = 1
EXIT_THRESHOLD = 2


def _overrides(project_root: str, **values: Any) -> Dict[str, Any]:
    return {"project_root": Path(project_root), **values}


def _fail(error: Exception):
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if isinstance(error, VitalsError) and error.details:
        console.print(f"[dim]{json.dumps(error.details, default=str)}[/dim]")
    sys.exit(EXIT_ERROR)


def _print_summary(result: AnalysisResult):
    health = result.health
    style = BAND_STYLES[health_band(health.score)]

    table = Table(title="Project Health")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Health Score", f"[{style}]{health.score}/100[/{style}]")
    table.add_row("Critical", str(health.critical_issues))
    table.add_row("High", str(health.high_issues))
    table.add_row("Medium", str(health.medium_issues))
    table.add_row("Low", str(health.low_issues))
    table.add_row("Info", str(health.info_issues))
    table.add_row("Total Issues", str(health.total_issues))
    console.print(table)

    for failure in result.failures:
        console.print(f"[yellow]Scanner {failure.scanner} failed:[/yellow] {failure.error}")


@click.group()
@click.version_option(version=__version__, prog_name="VITALS")
def cli():
    """
    VITALS - Project Health Analysis Engine

    Scans a project, scores its health and renders reports.
    """
    pass


@cli.command()
@click.option("--project-root", default=".", type=click.Path(file_okay=False), help="Project to analyze (default: .)")
@click.option("--format", "output_format", type=click.Choice(FORMAT_CHOICES), help="Report format (default: terminal)")
@click.option("--output", type=click.Path(dir_okay=False), help="Write the report to a file instead of stdout")
@click.option("--severity", type=click.Choice(SEVERITY_CHOICES), help="Drop issues below this severity")
@click.option("--scanner", "scanners", multiple=True, type=click.Choice(SCANNER_NAMES), help="Run only these scanners (repeatable)")
@click.option("--fail-on", type=click.Choice(SEVERITY_CHOICES), help="Exit with status 2 when an issue at or above this severity is found")
@click.option("--no-cache", is_flag=True, help="Scan every file, ignoring and not updating the cache")
@click.option("--no-git", is_flag=True, help="Skip version-control checks")
@click.option("--no-deployment", is_flag=True, help="Skip deployment-readiness checks")
@click.option("--verbose", "-v", is_flag=True, help="Log debug events to stderr")
def analyze(
    project_root: str,
    output_format: Optional[str],
    output: Optional[str],
    severity: Optional[str],
    scanners: Tuple[str, ...],
    fail_on: Optional[str],
    no_cache: bool,
    no_git: bool,
    no_deployment: bool,
    verbose: bool,
):
    """
    Analyze a project and render a health report.

    Example:
        vitals analyze --format sarif --output vitals.sarif --fail-on high
    """
    configure_logging(verbose)
    overrides = _overrides(
        project_root,
        output_format=output_format,
        severity_threshold=severity,
        enabled_scanners=list(scanners) or None,
        enable_cache=False if no_cache else None,
        git_integration=False if no_git else None,
        deployment_checks=False if no_deployment else None,
    )

    try:
        config = ConfigLoader.load_config(overrides)
        orchestrator = Orchestrator(config)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("[cyan]Analyzing project...", total=None)

            def on_event(event: str, data: Dict[str, Any]):
                if event == "scanner_completed":
                    progress.update(task, description=f"[cyan]{data['scanner']} done ({data['issues']} issues)")
                elif event == "scanner_failed":
                    progress.update(task, description=f"[yellow]{data['scanner']} failed")

            orchestrator.subscribe(on_event)
            result = asyncio.run(orchestrator.analyze())

        report = render(result, orchestrator.config.output_format)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Analysis interrupted by user[/yellow]")
        sys.exit(EXIT_ERROR)
    except VitalsError as e:
        _fail(e)

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report, encoding="utf-8")
        _print_summary(result)
        console.print(f"\n[green]Report saved to:[/green] {output_path}")
    else:
        click.echo(report)

    if fail_on and any(issue.severity.is_at_least(SeverityLevel(fail_on)) for issue in result.issues):
        logger.info("fail_on_threshold_reached", threshold=fail_on)
        sys.exit(EXIT_THRESHOLD)


@cli.command()
@click.option("--project-root", default=".", type=click.Path(file_okay=False), help="Project to fix (default: .)")
@click.option("--issue", "issue_ids", multiple=True, help="Fix only these issue ids (repeatable)")
@click.option("--from-report", type=click.Path(exists=True, dir_okay=False), help="JSON report whose issues should be fixed")
@click.option("--dry-run", is_flag=True, help="Show what would be fixed without writing files")
@click.option("--verbose", "-v", is_flag=True, help="Log debug events to stderr")
def fix(project_root: str, issue_ids: Tuple[str, ...], from_report: Optional[str], dry_run: bool, verbose: bool):
    """
    Apply automatic fixes to auto-fixable issues.

    Without --from-report a fresh analysis runs first. Issue ids are only
    stable within one report, so --issue is normally combined with it.
    """
    configure_logging(verbose)

    try:
        orchestrator = Orchestrator(ConfigLoader.load_config(_overrides(project_root)))
        if from_report:
            data = json.loads(Path(from_report).read_text(encoding="utf-8"))
            orchestrator.last_result = AnalysisResult.from_dict(data)
        result = asyncio.run(orchestrator.auto_fix(issue_ids=list(issue_ids) or None, dry_run=dry_run))
    except (ValueError, KeyError) as e:
        _fail(click.ClickException(f"Invalid report file: {e}"))
    except VitalsError as e:
        _fail(e)

    verb = "Would fix" if dry_run else "Fixed"
    table = Table(title="Auto-fix Results")
    table.add_column("Status", no_wrap=True)
    table.add_column("Issue", style="cyan")
    table.add_column("Location")
    table.add_column("Detail", style="yellow")
    for issue in result.fixed:
        table.add_row(f"[green]{verb}[/green]", issue.title, str(issue.location), issue.rule_id)
    for failure in result.failed:
        table.add_row("[red]Failed[/red]", failure.issue.title, str(failure.issue.location), failure.reason)
    console.print(table)
    console.print(f"\n[green]{verb}:[/green] {len(result.fixed)}  [red]Failed:[/red] {len(result.failed)}")


@cli.command("cache-clear")
@click.option("--project-root", default=".", type=click.Path(file_okay=False), help="Project whose cache to clear")
def cache_clear(project_root: str):
    """Delete the analysis cache of a project"""
    configure_logging()
    try:
        orchestrator = Orchestrator(ConfigLoader.load_config(_overrides(project_root)))
        asyncio.run(orchestrator.clear_cache())
    except VitalsError as e:
        _fail(e)
    console.print("[green]Cache cleared[/green]")


@cli.command("cache-stats")
@click.option("--project-root", default=".", type=click.Path(file_okay=False), help="Project whose cache to inspect")
def cache_stats(project_root: str):
    """Show analysis cache statistics"""
    configure_logging()
    try:
        orchestrator = Orchestrator(ConfigLoader.load_config(_overrides(project_root)))
        stats = asyncio.run(orchestrator.get_cache_stats())
    except VitalsError as e:
        _fail(e)

    table = Table(title="Analysis Cache")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_row("Files", str(stats["total_files"]))
    table.add_row("Issues", str(stats["total_issues"]))
    table.add_row("Oldest Entry", str(stats["oldest_entry"] or "-"))
    table.add_row("Newest Entry", str(stats["newest_entry"] or "-"))
    console.print(table)


@cli.command()
def version():
    """Show version information and bundled scanners"""
    console.print(f"\n[bold cyan]VITALS v{__version__}[/bold cyan]")
    console.print("[cyan]Project Health Analysis Engine[/cyan]\n")

    table = Table(title="Report Formats")
    table.add_column("Format", style="cyan", no_wrap=True)
    table.add_column("Content Type", style="green")
    table.add_column("Extension", style="yellow")
    for fmt in ReportFormat:
        table.add_row(fmt.format_name, fmt.content_type, fmt.extension)
    console.print(table)
    console.print(f"\nScanners: {', '.join(SCANNER_NAMES)}\n")


if __name__ == "__main__":
    cli()
