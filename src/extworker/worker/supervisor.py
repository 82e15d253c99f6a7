"""Runs one TopicWorker per registered topic and waits for all of them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator

from .client import EngineClient
from .config import WorkerConfig
from .models import TopicHandler, TopicRegistration
from .runner import TopicWorker

logger = logging.getLogger(__name__)


class TopicRegistry:
    """Collects topic handlers, usually at import time.

    Example:
        registry = TopicRegistry()

        @registry.topic("send-invoice", wait_interval=5)
        def send_invoice(task):
            return {"sent": True}
    """

    def __init__(self) -> None:
        self._registrations: dict[str, TopicRegistration] = {}

    def register(
        self,
        topic: str,
        handler: TopicHandler,
        wait_interval: float | None = None,
    ) -> TopicRegistration:
        """Register a handler for a topic.

        Raises:
            ValueError: If the topic already has a handler.
        """
        if topic in self._registrations:
            raise ValueError(f"Topic {topic!r} is already registered")
        registration = TopicRegistration(topic, handler, wait_interval)
        self._registrations[topic] = registration
        return registration

    def topic(
        self, topic: str, wait_interval: float | None = None
    ) -> Callable[[TopicHandler], TopicHandler]:
        """Decorator form of register()."""

        def decorator(handler: TopicHandler) -> TopicHandler:
            self.register(topic, handler, wait_interval)
            return handler

        return decorator

    @property
    def registrations(self) -> list[TopicRegistration]:
        return list(self._registrations.values())

    def __iter__(self) -> Iterator[TopicRegistration]:
        return iter(self.registrations)

    def __len__(self) -> int:
        return len(self._registrations)


class WorkerSupervisor:
    """Runs independent topic workers concurrently.

    Crashed workers are logged and recorded in ``failures`` but never
    restarted; restarting is left to the process manager.
    """

    def __init__(
        self,
        config: WorkerConfig,
        registrations: Iterable[TopicRegistration],
        engine: EngineClient | None = None,
    ):
        self.config = config
        self.registrations = list(registrations)
        self.failures: dict[str, BaseException] = {}
        self._engine = engine
        self._owns_engine = engine is None
        self._stop_requested = False
        self.workers: list[TopicWorker] = []

        seen: set[str] = set()
        for registration in self.registrations:
            if registration.topic in seen:
                raise ValueError(f"Duplicate registration for topic {registration.topic!r}")
            seen.add(registration.topic)

    async def run(self) -> None:
        """Start every topic worker and block until all of them have ended."""
        if not self.registrations:
            logger.warning("No topic handlers registered, nothing to run")
            return

        engine = self._engine or EngineClient.from_config(self.config)
        self.workers = [
            TopicWorker(self.config, engine, registration) for registration in self.registrations
        ]
        logger.info(
            "Starting %d topic worker(s) as %s: %s",
            len(self.workers),
            self.config.worker_id,
            ", ".join(worker.topic for worker in self.workers),
        )
        if self._stop_requested:
            self.stop()

        try:
            results = await asyncio.gather(
                *(
                    asyncio.create_task(worker.run(), name=f"topic-{worker.topic}")
                    for worker in self.workers
                ),
                return_exceptions=True,
            )
        finally:
            if self._owns_engine:
                await engine.close()

        for worker, result in zip(self.workers, results):
            if isinstance(result, BaseException):
                self.failures[worker.topic] = result
                logger.error(
                    "Worker for topic %s terminated with an error: %r",
                    worker.topic,
                    result,
                    exc_info=result,
                )

    @property
    def stopping(self) -> bool:
        return self._stop_requested

    def stop(self) -> None:
        """Ask every topic worker to stop after its current cycle."""
        self._stop_requested = True
        for worker in self.workers:
            worker.stop()


async def run_topic_handlers(
    config: WorkerConfig,
    registrations: Iterable[TopicRegistration],
    engine: EngineClient | None = None,
) -> None:
    """Run the given topic handlers until every worker has ended."""
    supervisor = WorkerSupervisor(config, registrations, engine=engine)
    await supervisor.run()
