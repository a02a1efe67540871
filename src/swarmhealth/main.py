"""
Main entry point for the SwarmHealth command line.

Checks the swarm health of magnet links and prints them ranked.
"""

import asyncio
import json
import logging
from pathlib import Path
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config.manager import ConfigManager
from .config.settings import EngineSettings
from .engines.classifier import status_emoji
from .engines.health_engine import EnhanceOptions, HealthEngine
from .engines.ranker import RankedPair, declared_size
from .storage.models import TorrentCandidate
from .utils.helpers import format_bytes, format_duration_ms, shorten_identifier
from .utils.logging import setup_logging
from .utils.validation import is_magnet_uri

console = Console()
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name="swarmhealth")
@click.option(
    "--config-dir",
    type=click.Path(exists=False, path_type=Path),
    help="Configuration directory path",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default=None,
    help="Logging level (overrides config)",
)
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None, log_level: str | None) -> None:
    """SwarmHealth torrent swarm health CLI."""
    ctx.ensure_object(dict)

    config_manager = ConfigManager(config_dir=config_dir)
    settings = config_manager.get_settings()

    setup_logging(level=log_level or settings.logging_level)

    ctx.obj["config_manager"] = config_manager
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("magnets", nargs=-1, required=True)
@click.option("--timeout-ms", type=int, help="Per-probe timeout (overrides config)")
@click.option("--concurrency", type=int, help="Probes in flight (overrides config)")
@click.option("--skip-health-check", is_flag=True, help="Do not probe, use hints only")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def check(
    ctx: click.Context,
    magnets: tuple[str, ...],
    timeout_ms: int | None,
    concurrency: int | None,
    skip_health_check: bool,
    as_json: bool,
) -> None:
    """Check and rank the swarm health of MAGNETS."""
    settings: EngineSettings = ctx.obj["settings"]

    for magnet in magnets:
        if not is_magnet_uri(magnet):
            console.print(f"[yellow]Not a valid magnet link: {magnet}[/yellow]")

    try:
        candidates = [TorrentCandidate(identifier=magnet) for magnet in magnets]
        options = EnhanceOptions(
            timeout_ms=timeout_ms,
            concurrency=concurrency,
            skip_health_check=skip_health_check or None,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid arguments: {e}[/red]")
        sys.exit(2)

    try:
        pairs = asyncio.run(_run_check(settings, candidates, options))
    except KeyboardInterrupt:
        console.print("\n[yellow]Health check stopped by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error checking health: {e}[/red]")
        logger.exception("Health check failed")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([result.model_dump(mode="json") for _, result in pairs], indent=2))
    else:
        console.print(_results_table(pairs))


@cli.group()
def config() -> None:
    """Inspect configuration."""


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    config_manager: ConfigManager = ctx.obj["config_manager"]
    settings: EngineSettings = ctx.obj["settings"]

    console.print(f"[dim]Config file: {config_manager.settings_file}[/dim]")
    click.echo(settings.model_dump_json(indent=2))


async def _run_check(
    settings: EngineSettings,
    candidates: list[TorrentCandidate],
    options: EnhanceOptions,
) -> list[RankedPair]:
    async with HealthEngine(settings.health, settings.discovery) as engine:
        return await engine.enhance_pairs(candidates, options)


def _results_table(pairs: list[RankedPair]) -> Table:
    table = Table(title="Swarm health")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Seeds", justify="right")
    table.add_column("Peers", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Source")
    table.add_column("Time", justify="right")

    for index, (candidate, result) in enumerate(pairs, start=1):
        size = declared_size(candidate)
        table.add_row(
            str(index),
            candidate.display_name or shorten_identifier(candidate.identifier),
            f"{status_emoji(result.status_tier)} {result.status_tier.value}",
            str(result.seeds),
            str(result.peers),
            format_bytes(size) if size is not None else "-",
            result.measurement_source.value,
            format_duration_ms(result.probe_duration_ms),
        )
    return table


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
