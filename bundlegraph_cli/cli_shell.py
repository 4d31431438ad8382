"""Interactive shell for running queries against loaded graphs."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from .errors import QueryError
from .session import COMMANDS, QuerySession, find_command

logger = logging.getLogger(__name__)

console = Console()


def _term_width() -> int:
    """Get terminal width, default 80."""
    return shutil.get_terminal_size((80, 24)).columns


def _print_welcome(session: QuerySession, cache_dir: Optional[Path]):
    console.print()
    console.print(Panel("📦 Bundle graph query shell", style="bold cyan", width=min(_term_width(), 70)))
    if cache_dir is not None:
        console.print(f"  [dim]Cache[/dim]    [white]{cache_dir}[/white]")
    console.print(
        f"  [dim]Graphs[/dim]   [white]{len(session.asset_graph)} asset graph nodes • "
        f"{len(session.bundle_graph.graph)} bundle graph nodes[/white]"
    )
    console.print("  [dim]Type [yellow]/help[/yellow] for commands, [yellow]/exit[/yellow] to quit[/dim]")
    console.print(Rule(style="dim"))
    console.print()


def _print_help():
    console.print()
    table = Table(show_header=False, box=None, padding=(0, 2), title="📖 Commands", title_style="bold cyan")
    table.add_column(style="yellow", min_width=22)
    table.add_column(style="dim")
    for cmd in COMMANDS:
        table.add_row(cmd.name, cmd.help)
    table.add_row("/help", "Show this help")
    table.add_row("/exit", "Exit the shell")
    console.print(table)
    console.print()


def print_lines(lines: List[str]) -> None:
    for line in lines:
        console.print(line, highlight=False, markup=False, soft_wrap=True)


def print_query_error(exc: QueryError) -> None:
    console.print(f"[red]❌ {escape(str(exc))}[/red]", highlight=False)


def _append_history(history_file: Optional[Path], line: str) -> None:
    if history_file is None:
        return
    try:
        history_file.parent.mkdir(parents=True, exist_ok=True)
        with open(history_file, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as exc:
        logger.debug("Could not write shell history %s: %s", history_file, exc)


def handle_line(session: QuerySession, line: str) -> bool:
    """Run one shell line. Returns ``False`` when the shell should stop.

    Query failures and unexpected faults are reported and swallowed so that
    a single bad command never ends the session.
    """
    if line in ("/exit", "/quit"):
        return False
    if line == "/help":
        _print_help()
        return True

    name = line.split(maxsplit=1)[0]
    if find_command(name) is None:
        console.print(f"  [yellow]❓ Unknown command: {escape(name)}. Type /help[/yellow]", highlight=False)
        return True

    try:
        print_lines(session.run_line(line))
    except QueryError as exc:
        print_query_error(exc)
    except Exception as exc:
        logger.exception("Command failed: %s", line)
        console.print(f"\n  [red]❌ Error: {escape(str(exc))}[/red]\n", highlight=False)
    return True


def start_query_repl(
    session: QuerySession,
    history_file: Optional[Path] = None,
    cache_dir: Optional[Path] = None,
) -> None:
    """Start the interactive REPL until ``/exit``, EOF or Ctrl-C."""
    _print_welcome(session, cache_dir)

    while True:
        try:
            try:
                line = console.input("[blue]📦 ›[/blue] ").strip()
            except EOFError:
                console.print("\n  [dim]👋 Goodbye![/dim]\n")
                break

            if not line:
                continue
            _append_history(history_file, line)
            if not handle_line(session, line):
                console.print("\n  [dim]👋 Goodbye![/dim]\n")
                break
        except KeyboardInterrupt:
            console.print("\n\n  [dim]👋 Goodbye![/dim]\n")
            break
