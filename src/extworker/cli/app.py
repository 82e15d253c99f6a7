"""Main CLI application using Typer."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer

from .commands import config
from .output import console, print_error

app = typer.Typer(
    name="extworker",
    help="External task worker for process engines",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config.app, name="config")


@app.command("run")
def run(
    target: Annotated[
        str,
        typer.Argument(help="Topic handlers as module:attribute (a TopicRegistry or list)"),
    ],
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to worker.yaml"),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", "-u", help="Engine REST base URL"),
    ] = None,
    worker_id: Annotated[
        Optional[str],
        typer.Option("--worker-id", "-w", help="Worker identity used for locks"),
    ] = None,
    wait_interval: Annotated[
        Optional[float],
        typer.Option("--wait-interval", help="Default seconds between polls"),
    ] = None,
    lock_duration: Annotated[
        Optional[float],
        typer.Option("--lock-duration", help="Seconds a fetched task stays locked"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging"),
    ] = False,
):
    """Poll the engine and run topic handlers until interrupted."""
    from ..worker.cli import configure_logging, load_registrations, start_worker
    from ..worker.config import WorkerConfig

    configure_logging(verbose)

    try:
        registrations = load_registrations(target)
    except (ImportError, ValueError) as e:
        print_error(f"Cannot load topic handlers from {target}: {e}")
        raise typer.Exit(1)

    try:
        worker_config = WorkerConfig.load(
            config_path,
            base_url=base_url,
            worker_id=worker_id,
            wait_interval=wait_interval,
            lock_duration=lock_duration,
        )
    except ValueError as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    supervisor = asyncio.run(start_worker(worker_config, registrations))
    if supervisor.failures:
        print_error(f"Worker(s) crashed: {', '.join(sorted(supervisor.failures))}")
        raise typer.Exit(1)


@app.command("version")
def version():
    """Show version information."""
    from .. import __version__

    console.print(f"extworker version: {__version__}")


if __name__ == "__main__":
    app()
