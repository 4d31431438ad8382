"""Typer-based CLI for querying persisted asset and bundle graphs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from . import __version__, config
from .cli_shell import start_query_repl
from .config_manager import QuerySettings, load_query_config
from .errors import QueryError, SnapshotError
from .session import COMMANDS, QueryCommand, QuerySession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE = "%Y-%m-%d %H:%M:%S"

app = typer.Typer(
    help="📦 Bundle graph query: inspect the asset and bundle graphs left by a build.",
    rich_markup_mode="rich",
)


@dataclass
class AppState:
    cache_dir: Path
    settings: QuerySettings


def setup_logging(verbose: bool = False) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"bundlegraph-cli v{__version__}")
        raise typer.Exit()


def _open_session(state: AppState) -> QuerySession:
    logger.info("Loading graphs from %s", state.cache_dir)
    try:
        return QuerySession.from_cache_dir(state.cache_dir, state.settings)
    except SnapshotError as exc:
        typer.echo(f"❌ {exc}", err=True)
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    cache: Optional[Path] = typer.Option(
        None,
        "--cache",
        "-c",
        help=f"Bundler cache directory holding the graph snapshot (default: ./{config.DEFAULT_CACHE_DIRNAME}).",
    ),
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML config file to read [query] settings from."),
    verbose: bool = typer.Option(False, "--verbose", help="Log loading and resolution details."),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Run one query command, or start the interactive shell when none is given."""
    setup_logging(verbose)
    cache_dir = (cache or Path.cwd() / config.DEFAULT_CACHE_DIRNAME).resolve()
    ctx.obj = AppState(cache_dir=cache_dir, settings=load_query_config(config_file))
    if ctx.invoked_subcommand is None:
        _run_shell(ctx.obj)


def _run_shell(state: AppState) -> None:
    session = _open_session(state)
    start_query_repl(session, history_file=state.settings.history_file, cache_dir=state.cache_dir)


@app.command("shell")
def shell(ctx: typer.Context):
    """🐚 Start the interactive query shell."""
    _run_shell(ctx.obj)


def _make_query_command(command: QueryCommand):
    def run(
        ctx: typer.Context,
        args: Optional[List[str]] = typer.Argument(None, help=command.help),
    ):
        session = _open_session(ctx.obj)
        try:
            lines = session.execute(command.name, " ".join(args or []))
        except QueryError as exc:
            typer.echo(f"❌ {exc}", err=True)
            raise typer.Exit(code=1)
        for line in lines:
            typer.echo(line)

    run.__name__ = command.method
    run.__doc__ = command.help
    return run


for _command in COMMANDS:
    app.command(_command.name, help=_command.help)(_make_query_command(_command))


if __name__ == "__main__":
    app()
