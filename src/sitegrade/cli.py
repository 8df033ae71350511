"""Command-line interface for SiteGrade."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sitegrade import __version__
from sitegrade.config import Config, load_config
from sitegrade.exceptions import ConfigError, FetchError
from sitegrade.observability import configure_logging
from sitegrade.pipeline import GradingPipeline
from sitegrade.protocols import Confidence
from sitegrade.report import CompositeReport
from sitegrade.scoring import StatusBand, WeightTable

console = Console()

EXIT_FETCH_ERROR = 2
EXIT_CONFIG_ERROR = 3

BAND_STYLES = {
    StatusBand.EXCELLENT: "bold green",
    StatusBand.GOOD: "green",
    StatusBand.NEEDS_WORK: "yellow",
    StatusBand.POOR: "red",
}


def _load(config_path: Optional[Path], log_level: Optional[str]) -> Config:
    config = load_config(config_path)
    if log_level:
        config.monitoring.log_level = log_level
    return config


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides configuration)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], log_level: Optional[str]) -> None:
    """SiteGrade - grade a website across seven factors."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["log_level"] = log_level


@cli.command()
@click.argument("url")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def grade(ctx: click.Context, url: str, as_json: bool) -> None:
    """Grade URL and print its composite report."""
    try:
        config = _load(ctx.obj["config_path"], ctx.obj["log_level"])
    except (ValueError, OSError) as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    configure_logging(config.monitoring)

    try:
        report = asyncio.run(GradingPipeline(config).grade_website(url))
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except FetchError as e:
        if as_json:
            click.echo(json.dumps({"url": url, "error": e.kind.value, "message": e.message}))
        else:
            console.print(f"[red]Could not fetch {escape(url)} ({e.kind.value}): {escape(e.message)}[/red]")
        sys.exit(EXIT_FETCH_ERROR)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report)


def render_report(report: CompositeReport) -> None:
    style = BAND_STYLES[report.status_band]
    summary = (
        f"[bold]{escape(report.url)}[/bold]\n"
        f"Composite score: [{style}]{report.composite_score:.1f}[/{style}] ({report.status_band.value})\n"
        f"Confidence: {report.confidence.value}"
    )
    console.print(Panel.fit(summary, title="SiteGrade Report"))

    table = Table(title="Factors")
    table.add_column("Factor", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    table.add_column("Top finding")
    for score in report.factors:
        confidence = score.confidence.value
        if score.confidence is not Confidence.FULL:
            confidence = f"[yellow]{confidence}[/yellow]"
        top = score.findings[0] if score.findings else None
        table.add_row(
            score.factor.value,
            f"{score.score:.1f}",
            confidence,
            f"{top.severity.value}: {escape(top.message)}" if top else "-",
        )
    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the methodology as JSON")
@click.pass_context
def methodology(ctx: click.Context, as_json: bool) -> None:
    """Show the factor weights used for the composite score."""
    try:
        config = _load(ctx.obj["config_path"], ctx.obj["log_level"])
        rows = WeightTable.from_mapping(config.scoring.weights).describe()
    except (ConfigError, ValueError, OSError) as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="Scoring methodology")
    table.add_column("Factor", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("What it measures")
    for row in rows:
        table.add_row(row["id"], f"{row['weight']:.0%}", row["description"])
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
