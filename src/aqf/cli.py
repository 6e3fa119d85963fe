"""CLI commands for discovering fixer routes and running quick fixes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    QuickFixSettings,
    copy_config_template,
    load_config,
    write_config,
)
from .errors import ConfigError, FixerError
from .fixers import FixerKind
from .orchestrator import FixRequest, Orchestrator
from .routes.catalog import build_route_candidates
from .routes.resolver import ROUTE_STATE_KEY

APP_HELP = "AI Quick Fix: run codex/claude CLIs against a diagnostic through whichever route works."

app = typer.Typer(help=APP_HELP)

CONFIG_OPTION_HELP = "Path to the quick-fix configuration file."


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log route discovery details."),
) -> None:
    """Configure logging for every subcommand."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _parse_fixer(value: str) -> FixerKind:
    try:
        return FixerKind.parse(value)
    except ValueError as error:
        raise typer.BadParameter(str(error)) from error


def _load(config: str) -> tuple[Path, dict]:
    config_path = Path(config)
    try:
        return config_path, load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _build_orchestrator(config: str) -> Orchestrator:
    config_path, config_data = _load(config)
    return Orchestrator.from_config(config_data, config_path)


@app.command()
def init(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, copy_config_template())
    typer.echo(f"Wrote default configuration to {config_path}")


@app.command()
def routes(
    fixer: str = typer.Option(..., "--fixer", "-f", help="Fixer kind (codex-cli or claude-cli)."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
    no_wsl: bool = typer.Option(False, "--no-wsl", help="Exclude WSL bridge routes."),
) -> None:
    """List candidate routes for a fixer in preference order."""
    kind = _parse_fixer(fixer)
    _, config_data = _load(config)
    settings = QuickFixSettings.from_config(config_data)
    allow_bridge = settings.allow_bridge_routes and not no_wsl
    for route in build_route_candidates(kind, allow_bridge_routes=allow_bridge):
        typer.echo(f"{route.id}\t{route.display}")


@app.command()
def resolve(
    fixer: str = typer.Option(..., "--fixer", "-f", help="Fixer kind (codex-cli or claude-cli)."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached verdicts and rediscover."),
) -> None:
    """Discover (or recall) a working route for a fixer."""
    kind = _parse_fixer(fixer)
    orchestrator = _build_orchestrator(config)

    async def _resolve():
        with orchestrator:
            return await orchestrator.resolve(kind, force_refresh=refresh)

    route = asyncio.run(_resolve())
    if route is None:
        typer.echo(f"{kind.label}: no working CLI route was found.")
        raise typer.Exit(code=1)
    typer.echo(f"{kind.label}: {route.display} [{route.id}]")


@app.command()
def fix(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File containing the diagnostic."),
    line: int = typer.Option(1, "--line", "-l", help="1-based line number of the diagnostic."),
    message: str = typer.Option("", "--message", "-m", help="Diagnostic message text."),
    fixer: str = typer.Option(..., "--fixer", "-f", help="Fixer kind (codex-cli or claude-cli)."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run a fixer against one line of a file."""
    kind = _parse_fixer(fixer)
    orchestrator = _build_orchestrator(config)
    request = FixRequest(kind=kind, file_path=file, line=line, diagnostic=message or None)

    async def _fix():
        with orchestrator:
            return await orchestrator.fix(request)

    try:
        outcome = asyncio.run(_fix())
    except FixerError as error:
        orchestrator.report_error(str(error))
        typer.echo(f"AI Quick Fix failed: {error}", err=True)
        raise typer.Exit(code=1) from error
    typer.echo(f"{kind.label}: fix applied via {outcome.route.display}")


@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Report enabled fixers and persisted route preferences."""
    config_path, config_data = _load(config)
    settings = QuickFixSettings.from_config(config_data)
    typer.echo(f"Loaded configuration from {config_path}")
    typer.echo(f"WSL routes: {'enabled' if settings.allow_bridge_routes else 'disabled'}")
    with Orchestrator.from_config(config_data, config_path) as orchestrator:
        persisted = orchestrator.resolver.persisted_routes()
        for kind in FixerKind:
            state = "enabled" if settings.is_enabled(kind) else "disabled"
            route_id = persisted.get(kind.value)
            typer.echo(f"- {kind.label} [{state}] route: {route_id or '(unresolved)'}")


@app.command()
def forget(
    fixer: Optional[str] = typer.Option(None, "--fixer", "-f", help="Fixer kind; all when omitted."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Clear cached and persisted route verdicts."""
    kinds: List[FixerKind] = [_parse_fixer(fixer)] if fixer else list(FixerKind)
    with _build_orchestrator(config) as orchestrator:
        for kind in kinds:
            orchestrator.forget(kind)
            typer.echo(f"Cleared {ROUTE_STATE_KEY} entry for {kind.value}.")


if __name__ == "__main__":
    app()
