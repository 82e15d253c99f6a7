"""Configuration commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from ...worker.config import DEFAULT_CONFIG_FILE, WorkerConfig
from ..output import console, create_table, print_error, print_info, print_success

app = typer.Typer(help="Manage worker configuration")


@app.command("show")
def show_config(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to worker.yaml"),
    ] = None,
):
    """Show the effective configuration (file + environment)."""
    try:
        config = WorkerConfig.load(config_path)
    except ValueError as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    console.print("[cyan]Current Configuration[/cyan]\n")
    console.print("[bold]Engine:[/bold]")
    console.print(f"  base_url: {config.base_url}")
    console.print(f"  username: {config.username or '(none)'}")
    console.print(f"  password: {'********' if config.password else '(none)'}")
    console.print(f"  request_timeout: {config.request_timeout}s")
    if config.async_response_timeout is not None:
        console.print(f"  async_response_timeout: {config.async_response_timeout}ms")
    console.print()

    console.print("[bold]Worker:[/bold]")
    console.print(f"  worker_id: {config.worker_id}")
    console.print(f"  wait_interval: {config.wait_interval}s")
    console.print(f"  lock_duration: {config.lock_duration}s")
    if config.use_priority is not None:
        console.print(f"  use_priority: {config.use_priority}")

    if config.topics:
        console.print()
        table = create_table("Topic overrides", [("Topic", "cyan"), ("Wait interval", "yellow")])
        for topic in config.topics:
            table.add_row(topic.topic, f"{config.wait_interval_for(topic.topic)}s")
        console.print(table)

    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists():
        print_info(f"\nConfig file: {file_path}")
    else:
        print_info(f"\nNo config file at {file_path} (using defaults)")


@app.command("init")
def init_config(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Where to write worker.yaml"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file"),
    ] = False,
):
    """Write the effective configuration to a config file."""
    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists() and not force:
        print_error(f"{file_path} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    try:
        config = WorkerConfig.load(config_path)
    except ValueError as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    config.save(file_path)
    print_success(f"Wrote {file_path}")
