"""Serve CLI entry point for the semantic-fs MCP server."""

from __future__ import annotations

import os
import signal
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

import sfs
from sfs.config import AllowListStore, get_config

app = typer.Typer(
    name="sfs-serve",
    help="semantic-fs MCP server - sandboxed file tools over stdio.",
    no_args_is_help=True,
    add_completion=False,
)

# Console for stderr output (stdout is reserved for MCP JSON-RPC)
_stderr_console = Console(stderr=True)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to sfs-serve.yaml"),
]


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sfs-serve {sfs.__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    _version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    """semantic-fs MCP server - sandboxed file tools over stdio."""


def _load(config: Path | None) -> None:
    try:
        get_config(config, reload=True)
    except (FileNotFoundError, ValueError) as e:
        _stderr_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1) from e


def _store() -> AllowListStore:
    return AllowListStore(get_config().get_allowlist_path())


def _setup_signal_handlers() -> None:
    """Set up signal handlers for clean exit."""

    def handle_signal(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        _stderr_console.print(f"\n[dim]Received {sig_name}, shutting down...[/dim]")
        # sys.exit() doesn't unwind the asyncio loop reliably
        os._exit(0)

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


@app.command("serve")
def serve(
    directories: Annotated[
        list[str] | None,
        typer.Argument(help="Directories to add to the allow-list before starting"),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Run the MCP server on stdio.

    Directories given on the command line are merged into the allow-list
    store once, at startup.
    """
    _load(config)
    store = _store()
    try:
        roots = store.merge(directories or [])
    except (OSError, ValueError) as e:
        _stderr_console.print(f"[red]Allow-list error:[/red] {e}")
        raise typer.Exit(1) from e

    _stderr_console.print(f"[bold cyan]semantic-fs MCP Server[/bold cyan] [dim]v{sfs.__version__}[/dim]")
    _stderr_console.print("Running on stdio transport. Press [bold yellow]Ctrl+C[/bold yellow] to stop.")
    if roots:
        _stderr_console.print("Allowed directories:")
        for root in roots:
            _stderr_console.print(f"  {root}")
    else:
        _stderr_console.print("[yellow]No allowed directories configured; every request will be denied.[/yellow]")

    _setup_signal_handlers()

    from sfs.server import main

    main()


@app.command("allow")
def allow(
    directories: Annotated[list[str], typer.Argument(help="Directories to add")],
    config: ConfigOption = None,
) -> None:
    """Add directories to the allow-list store."""
    _load(config)
    store = _store()
    try:
        before = store.load()
        after = store.merge(directories)
    except (OSError, ValueError) as e:
        _stderr_console.print(f"[red]Allow-list error:[/red] {e}")
        raise typer.Exit(1) from e

    added = [root for root in after if root not in before.roots]
    if not added:
        typer.echo("No new directories added.")
        return
    for root in added:
        typer.echo(f"Added {root}")


@app.command("roots")
def roots(config: ConfigOption = None) -> None:
    """Print the current allow-list."""
    _load(config)
    try:
        current = _store().load()
    except (OSError, ValueError) as e:
        _stderr_console.print(f"[red]Allow-list error:[/red] {e}")
        raise typer.Exit(1) from e

    if not current:
        typer.echo("No allowed directories configured.")
        return
    for root in current:
        typer.echo(root)


def cli() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    cli()
