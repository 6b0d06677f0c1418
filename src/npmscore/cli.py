"""CLI entry point for npm-security-score."""

import asyncio
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from npmscore.core.config import Settings, load_settings
from npmscore.core.errors import ConfigError, PackageNotFoundError, RegistryError
from npmscore.core.score_bands import SCORE_BANDS
from npmscore.models.schemas import RiskLevel, ScoreResult
from npmscore.pipeline import ScoringPipeline
from npmscore.utils.ci import detect_platform, get_exit_code, is_ci

app = typer.Typer(help="Security risk scoring for npm packages.")

console = Console()

BAND_COLORS = {
    "SAFE": "green",
    "REVIEW": "yellow",
    "HIGH_RISK": "red",
    "BLOCK": "bold red",
}

RISK_COLORS = {
    RiskLevel.NONE: "green",
    RiskLevel.LOW: "yellow",
    RiskLevel.MEDIUM: "dark_orange",
    RiskLevel.HIGH: "red",
    RiskLevel.ERROR: "magenta",
}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.command()
def score(
    package: str = typer.Argument(..., help="npm package name (e.g. lodash or @scope/pkg)"),
    version: str | None = typer.Option(None, "--version", "-V", help="Package version (default: latest)"),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON config file"),
    threshold: float | None = typer.Option(None, "--threshold", "-t", help="Minimum passing score"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the JSON result to a file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Score an npm package and exit non-zero if it falls below the threshold."""
    setup_logging(verbose)

    try:
        settings = load_settings(config)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    if threshold is not None:
        settings = settings.model_copy(update={"threshold": threshold})

    result = asyncio.run(_score_package(package, version, settings, show_progress=not as_json))

    if output:
        output.write_text(result.to_json())
        if not as_json:
            console.print(f"[green]Saved to {output}[/green]")

    if as_json:
        # Plain print so the JSON isn't wrapped or highlighted
        print(result.to_json())
    else:
        _print_result(result, settings.threshold)

    raise typer.Exit(get_exit_code(result.score, settings.threshold))


async def _score_package(
    package: str,
    version: str | None,
    settings: Settings,
    show_progress: bool,
) -> ScoreResult:
    """Async implementation of score."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=not show_progress or is_ci(),
    ) as progress:
        progress.add_task(f"Scoring {package}...", total=None)

        try:
            async with ScoringPipeline(settings) as pipeline:
                return await pipeline.score(package, version)
        except PackageNotFoundError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(2)
        except RegistryError as e:
            console.print(f"[red]Error fetching package: {e}[/red]")
            raise typer.Exit(2)


def _print_result(result: ScoreResult, threshold: float) -> None:
    band = result.band
    color = BAND_COLORS.get(band.key, "white")

    console.print()
    console.print(f"[bold cyan]{result.package_name}[/bold cyan] v{result.package_version}")
    console.print()
    console.print(
        Panel(
            f"[bold][{color}]{result.score:.0f}[/{color}][/bold] / 100  {band.emoji} [bold]{band.label}[/bold]\n"
            f"[dim]{band.description}[/dim]",
            title="Security Score",
            expand=False,
            border_style=color,
        )
    )
    console.print()

    table = Table(title="Rule Results", show_header=True)
    table.add_column("Rule", style="bold")
    table.add_column("Weight", justify="right", style="dim")
    table.add_column("Risk")
    table.add_column("Impact", justify="right")
    table.add_column("Findings", max_width=60)

    for report in result.rule_results:
        rule_result = report.result
        risk_color = RISK_COLORS.get(rule_result.risk_level, "white")
        if rule_result.deduction:
            impact = f"[red]-{rule_result.deduction:g}[/red]"
        elif rule_result.bonus:
            impact = f"[green]+{rule_result.bonus:g}[/green]"
        else:
            impact = "0"

        if "error" in rule_result.details:
            summary = f"[magenta]{rule_result.details['error']}[/magenta]"
        else:
            findings = rule_result.details.get("findings") or []
            summary = "; ".join(f.description for f in findings[:3]) or "-"
            if len(findings) > 3:
                summary += f" (+{len(findings) - 3} more)"

        table.add_row(
            report.rule_name,
            f"{report.weight:g}",
            f"[{risk_color}]{rule_result.risk_level.value}[/{risk_color}]",
            impact,
            summary,
        )

    console.print(table)

    platform = detect_platform()
    if platform:
        console.print(f"\n[dim]CI platform: {platform}[/dim]")

    if result.score >= threshold:
        console.print(f"\n[green]Passed (threshold {threshold:g})[/green]")
    else:
        console.print(f"\n[red]Failed: score below threshold {threshold:g}[/red]")


@app.command()
def bands() -> None:
    """List the score bands used for CI gating."""
    table = Table(title="Score Bands")
    table.add_column("Band", style="bold")
    table.add_column("Range", justify="right")
    table.add_column("Action")
    table.add_column("Description")

    for band in SCORE_BANDS.values():
        color = BAND_COLORS.get(band.key, "white")
        table.add_row(
            f"{band.emoji} [{color}]{band.label}[/{color}]",
            f"{band.min}-{band.max}",
            band.action,
            band.description,
        )

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from npmscore import __version__

    console.print(f"npm-security-score v{__version__}")


if __name__ == "__main__":
    app()
