"""Worker CLI entry points.

Provides the async entry point for starting the worker process, loading
topic handlers and handling graceful shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import importlib
import logging
import signal
from collections.abc import Iterable

from rich.console import Console

from .config import WorkerConfig
from .models import TopicRegistration
from .supervisor import TopicRegistry, WorkerSupervisor

console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for the worker process."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_registrations(target: str) -> list[TopicRegistration]:
    """Import topic handlers from a ``module:attribute`` reference.

    The attribute may be a TopicRegistry, a single TopicRegistration or
    an iterable of registrations.

    Raises:
        ValueError: If the reference is malformed or points to something else.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")

    module = importlib.import_module(module_name)
    try:
        obj = getattr(module, attr)
    except AttributeError as e:
        raise ValueError(f"Module {module_name!r} has no attribute {attr!r}") from e

    if isinstance(obj, TopicRegistry):
        return obj.registrations
    if isinstance(obj, TopicRegistration):
        return [obj]
    if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
        registrations = list(obj)
        if all(isinstance(item, TopicRegistration) for item in registrations):
            return registrations
    raise ValueError(f"{target!r} is not a TopicRegistry or a list of TopicRegistration")


async def start_worker(
    config: WorkerConfig,
    registrations: Iterable[TopicRegistration],
) -> WorkerSupervisor:
    """Run the topic workers until SIGINT/SIGTERM.

    The first signal asks every worker to stop after its current cycle;
    running handlers are allowed to finish and their tasks are resolved.
    A second signal restores the default handlers and re-raises the
    signal, so Ctrl+C interrupts even a handler that never returns.

    Returns:
        The supervisor, so callers can inspect worker failures.
    """
    supervisor = WorkerSupervisor(config, registrations)
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def restore_signal_handlers() -> None:
        while installed:
            loop.remove_signal_handler(installed.pop())

    def request_shutdown(sig: signal.Signals) -> None:
        if supervisor.stopping:
            console.print("\n[red]Forcing shutdown[/red]")
            restore_signal_handlers()
            signal.raise_signal(sig)
            return
        console.print(
            "\n[dim]Shutting down worker, waiting for running handlers "
            "(signal again to force)...[/dim]"
        )
        supervisor.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, request_shutdown, sig)
            installed.append(sig)

    console.print(f"[cyan]Connecting to {config.base_url} as {config.worker_id}[/cyan]")
    for registration in supervisor.registrations:
        interval = registration.wait_interval
        if interval is None:
            interval = config.wait_interval_for(registration.topic)
        console.print(f"[dim]  {registration.topic}: polling every {interval}s[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        await supervisor.run()
    finally:
        restore_signal_handlers()

    console.print("[dim]Worker stopped.[/dim]")
    return supervisor
