"""DepHealth CLI: command line interface.

Usage:
    dephealth report [TARGET]       Score a project's dependency health
    dephealth security [TARGET]     Run only the vulnerability scan
    dephealth config init|show|set  Manage configuration
    dephealth cache clear           Drop cached registry and OSV.dev responses
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from dephealth_shared.constants.constants import (
    EXIT_CONFIG_ERROR,
    EXIT_GENERAL_ERROR,
    EXIT_NETWORK_ERROR,
    SUPPORTED_FORMATS,
)
from dephealth_shared.types.models import (
    AnalysisResult,
    DependencyReport,
    SecurityResult,
)

from dephealth.analysis.orchestrator import AnalysisOrchestrator
from dephealth.cache import ResponseCache
from dephealth.config import load_config, save_config
from dephealth.errors import ProviderError

# ─── App Setup ─────────────────────────────────────────────────────────────────

app = typer.Typer(
    name="dephealth",
    help="DepHealth -- dependency manifest health scoring",
    add_completion=False,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Manage DepHealth configuration",
)
app.add_typer(config_app, name="config")

cache_app = typer.Typer(
    name="cache",
    help="Manage the provider response cache",
)
app.add_typer(cache_app, name="cache")

console = Console()
error_console = Console(stderr=True)

_SEVERITY_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "bright_red",
    "MEDIUM": "yellow",
    "LOW": "dim",
    "UNKNOWN": "dim italic",
}

_UPDATE_STYLES = {
    "major": "bold red",
    "minor": "yellow",
    "patch": "green",
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """DepHealth -- dependency manifest health scoring."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


# ─── Report Command ───────────────────────────────────────────────────────────

@app.command()
def report(
    target: Optional[str] = typer.Argument(
        None,
        help="package.json or project directory (default: current directory)",
    ),
    manifest: Optional[str] = typer.Option(
        None,
        "--manifest",
        "-m",
        help="Manifest filename inside the project directory",
    ),
    outdated: Optional[str] = typer.Option(
        None,
        "--outdated",
        help="Read outdated data from 'npm outdated --json' output",
    ),
    audit: Optional[str] = typer.Option(
        None,
        "--audit",
        help="Read vulnerabilities from 'npm audit --json' output",
    ),
    registry: bool = typer.Option(
        True,
        "--registry/--no-registry",
        help="Query the npm registry for latest versions",
    ),
    osv: bool = typer.Option(
        True,
        "--osv/--no-osv",
        help="Query OSV.dev for vulnerabilities",
    ),
    ai: bool = typer.Option(
        False,
        "--ai/--no-ai",
        help="Generate recommendations via Ollama",
    ),
    policy: Optional[str] = typer.Option(
        None,
        "--policy",
        "-p",
        help="Scoring policy (auto, full, outdated-only)",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Save the JSON report to file",
    ),
    format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Console output format (json, table; default from config)",
    ),
) -> None:
    """Score the health of a project's dependencies."""
    target_path = Path(target or Path.cwd())
    config_dir = str(target_path if target_path.is_dir() else target_path.parent)
    config = load_config(config_dir)

    output_format = format or config.default_report_format
    if output_format not in SUPPORTED_FORMATS:
        error_console.print(
            f"[red]Error:[/red] Unsupported format: {output_format} "
            f"(choose from {', '.join(SUPPORTED_FORMATS)})"
        )
        raise typer.Exit(code=EXIT_GENERAL_ERROR)

    if output_format == "table":
        console.print(
            Panel(
                f"[bold blue]Analyzing:[/bold blue] {target_path.resolve()}",
                title="[bold]DepHealth[/bold]",
                border_style="blue",
            )
        )

    try:
        orchestrator = AnalysisOrchestrator(config=config)

        with console.status("[bold green]Analyzing dependencies...[/bold green]"):
            result = orchestrator.analyze(
                target=str(target_path),
                manifest=manifest,
                outdated_path=outdated,
                audit_path=audit,
                enable_registry=registry,
                enable_osv=osv,
                enable_ai=ai,
                policy=policy,
            )

        content = orchestrator.generate_report(result, output_path=output)

    except ProviderError as e:
        error_console.print(f"[red]Provider error:[/red] {e}")
        raise typer.Exit(code=EXIT_NETWORK_ERROR)
    except (FileNotFoundError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_GENERAL_ERROR)

    if output_format == "table":
        _display_report(result)
    elif not output:
        console.print_json(content)

    if output:
        console.print(f"\n[green]>[/green] Report saved to: [bold]{output}[/bold]")


# ─── Security Command ─────────────────────────────────────────────────────────

@app.command()
def security(
    target: Optional[str] = typer.Argument(
        None,
        help="package.json or project directory (default: current directory)",
    ),
    audit: Optional[str] = typer.Option(
        None,
        "--audit",
        help="Read vulnerabilities from 'npm audit --json' output",
    ),
) -> None:
    """Scan a project's dependencies for known vulnerabilities."""
    target_path = Path(target or Path.cwd())

    try:
        config_dir = str(target_path if target_path.is_dir() else target_path.parent)
        orchestrator = AnalysisOrchestrator(config=load_config(config_dir))
        with console.status("[bold green]Scanning for vulnerabilities...[/bold green]"):
            result = orchestrator.scan_security(str(target_path), audit_path=audit)
    except ProviderError as e:
        error_console.print(f"[red]Security scan failed:[/red] {e}")
        raise typer.Exit(code=EXIT_NETWORK_ERROR)
    except (FileNotFoundError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_GENERAL_ERROR)

    _display_security(result)


# ─── Display Helpers ──────────────────────────────────────────────────────────

def _score_style(score: int) -> str:
    if score >= 80:
        return "bold green"
    elif score >= 50:
        return "bold yellow"
    return "bold red"


def _display_report(report: DependencyReport) -> None:
    analysis = report.analysis
    style = _score_style(analysis.health_score)
    console.print(
        Panel(
            f"[{style}]{analysis.health_score}[/{style}] / 100\n"
            f"[dim]Policy: {analysis.policy}[/dim]",
            title=f"[bold]Health Score[/bold] {report.project_name}",
            border_style="blue",
        )
    )

    _display_outdated(analysis)

    if report.security is not None:
        _display_security(report.security)
    elif report.security_error:
        console.print(f"\n[yellow]![/yellow] Security scan failed: {report.security_error}")

    if report.narrative:
        console.print(Panel(report.narrative, title="[bold]Recommendations[/bold]"))


def _display_outdated(analysis: AnalysisResult) -> None:
    summary = analysis.summary
    if not analysis.outdated:
        console.print("\n[green]>[/green] All dependencies are up to date")
    else:
        table = Table(title=f"Outdated Dependencies ({summary.outdated})")
        table.add_column("Package", style="cyan", no_wrap=True)
        table.add_column("Declared", style="dim")
        table.add_column("Current")
        table.add_column("Wanted")
        table.add_column("Latest", style="green")
        table.add_column("Type", justify="center")

        for entry in analysis.outdated:
            kind = entry.update_type.value
            style = _UPDATE_STYLES.get(kind, "")
            table.add_row(
                entry.package + (" (dev)" if entry.is_dev else ""),
                entry.version_range,
                entry.current,
                entry.wanted or "-",
                entry.latest,
                f"[{style}]{kind}[/{style}]",
            )
        console.print(table)

    console.print(
        f"\n[bold]Total:[/bold] {analysis.total_dependencies} dependencies "
        f"({summary.total_deps} runtime, [dim]{summary.total_dev_deps}[/dim] dev) | "
        f"[red]{summary.major_updates}[/red] major, "
        f"[yellow]{summary.minor_updates}[/yellow] minor, "
        f"[green]{summary.patch_updates}[/green] patch"
    )


def _display_security(result: SecurityResult) -> None:
    if not result.vulnerabilities:
        console.print("\n[green]>[/green] No known vulnerabilities found")
        return

    table = Table(title=f"Vulnerabilities ({result.total_vulnerabilities} found)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Severity", justify="center")
    table.add_column("Package", style="white")
    table.add_column("Fixed In", style="green")
    table.add_column("Summary", max_width=50)

    for vuln in result.vulnerabilities:
        sev = vuln.severity.value
        style = _SEVERITY_STYLES.get(sev, "")
        summary = vuln.summary[:50] + "..." if len(vuln.summary) > 50 else vuln.summary
        table.add_row(
            vuln.id,
            f"[{style}]{sev}[/{style}]",
            vuln.package,
            vuln.fixed_version or "-",
            summary,
        )

    console.print(table)

    counts = result.summary
    parts = []
    for name, count, color in [
        ("critical", counts.critical, "red"),
        ("high", counts.high, "bright_red"),
        ("moderate", counts.medium, "yellow"),
        ("low", counts.low, "dim"),
        ("unknown", counts.unknown, "dim italic"),
    ]:
        if count:
            parts.append(f"[{color}]{count} {name}[/{color}]")

    fixable = sum(1 for v in result.vulnerabilities if v.fixed_version)
    console.print(
        f"\n[bold]Vulnerabilities:[/bold] {', '.join(parts)}"
        f" | [green]{fixable}[/green] fixable"
    )


# ─── Config Commands ──────────────────────────────────────────────────────────

@config_app.command("init")
def config_init(
    directory: Optional[str] = typer.Argument(
        None,
        help="Directory to create config in (default: current directory)",
    ),
) -> None:
    """Create .dephealth.yaml configuration file."""
    target_dir = directory or str(Path.cwd())

    try:
        config_path = save_config(target_dir)
        console.print(
            f"[green]>[/green] Config file created: [bold]{config_path}[/bold]"
        )
    except OSError as e:
        error_console.print(f"[red]Error:[/red] Failed to create config: {e}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)


@config_app.command("show")
def config_show(
    directory: Optional[str] = typer.Argument(
        None,
        help="Directory to load config from",
    ),
) -> None:
    """Display current configuration."""
    target_dir = directory or str(Path.cwd())
    config = load_config(target_dir)

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))
    console.print_json(json.dumps(config.to_dict()))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g., scoring.policy)"),
    value: str = typer.Argument(help="Config value"),
    directory: Optional[str] = typer.Option(
        None, "--dir", "-d", help="Directory with config file"
    ),
) -> None:
    """Set a configuration value."""
    target_dir = directory or str(Path.cwd())
    config = load_config(target_dir)

    # Booleans and numbers arrive as JSON literals
    try:
        parsed_value = json.loads(value)
    except (json.JSONDecodeError, ValueError):
        parsed_value = value

    config.set(key, parsed_value)
    save_config(target_dir, config)
    console.print(f"[green]>[/green] Set [bold]{key}[/bold] = {parsed_value}")


# ─── Cache Commands ───────────────────────────────────────────────────────────

@cache_app.command("clear")
def cache_clear(
    expired: bool = typer.Option(
        False, "--expired", help="Only remove entries older than the configured TTL"
    ),
    db_path: Optional[str] = typer.Option(
        None, "--db", help="Cache database (default: ~/.dephealth/cache.db)"
    ),
) -> None:
    """Remove cached registry and OSV.dev responses."""
    config = load_config()
    # An entry is stale only once every provider would ignore it
    ttl = max(config.registry_cache_ttl, config.osv_cache_ttl)

    try:
        cache = ResponseCache(db_path=db_path, ttl=ttl)
        removed = cache.clear_expired() if expired else cache.clear()
    except (OSError, sqlite3.Error) as e:
        error_console.print(f"[red]Error:[/red] Failed to clear cache: {e}")
        raise typer.Exit(code=EXIT_GENERAL_ERROR)

    label = "expired entries" if expired else "entries"
    console.print(f"[green]>[/green] Removed {removed} cached {label}")


# ─── Main Entry Point ─────────────────────────────────────────────────────────

def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
