"""extworker: client-side worker for process engine external tasks.

A worker polls the engine for tasks of the topics it handles, locks one
at a time per topic, runs the registered handler and then completes the
task or releases its lock.

Usage:
    # CLI
    $ extworker run my_app.handlers:registry

    # Python API
    from extworker import TopicRegistry, WorkerConfig, run_topic_handlers

    registry = TopicRegistry()

    @registry.topic("charge-card")
    def charge_card(task):
        return {"charged": True}

    asyncio.run(run_topic_handlers(WorkerConfig.load(), registry))
"""

try:
    from importlib.metadata import version as _get_version

    __version__ = _get_version("extworker")
except Exception:
    __version__ = "0.0.0-dev"


# Lazy imports for faster CLI startup
def __getattr__(name: str):
    """Lazy import for main classes."""
    if name in ("EngineClient", "EngineError"):
        from .worker import client

        return getattr(client, name)
    if name in ("Task", "Variable", "TopicRegistration"):
        from .worker import models

        return getattr(models, name)
    if name in ("WorkerConfig", "TopicConfig"):
        from .worker import config

        return getattr(config, name)
    if name == "TopicWorker":
        from .worker.runner import TopicWorker

        return TopicWorker
    if name in ("TopicRegistry", "WorkerSupervisor", "run_topic_handlers"):
        from .worker import supervisor

        return getattr(supervisor, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "EngineClient",
    "EngineError",
    "Task",
    "Variable",
    "TopicRegistration",
    "WorkerConfig",
    "TopicConfig",
    "TopicWorker",
    "TopicRegistry",
    "WorkerSupervisor",
    "run_topic_handlers",
]
