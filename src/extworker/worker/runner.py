"""Topic worker -- fetches, handles and resolves tasks for one topic.

Each TopicWorker runs a single unbounded loop:
  1. Fetch: lock at most one task of its topic.
  2. Dispatch: run the registered handler on the task.
  3. Resolve: complete on success, release on handler failure.
  4. Wait: sleep the topic's poll interval, then start over.

Errors end the current cycle only. The loop keeps running until stop()
is called; an in-flight handler is never interrupted by stop().
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum

from .client import EngineClient, EngineError
from .config import WorkerConfig
from .models import Task, TopicRegistration, VariablesMap
from .variables import to_variables

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Where a topic worker currently is in its cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    DISPATCHING = "dispatching"
    COMPLETING = "completing"
    RELEASING = "releasing"
    WAITING = "waiting"
    STOPPED = "stopped"


@dataclass
class WorkerStats:
    """Running counters for a topic worker."""

    cycles: int = 0
    fetched: int = 0
    completed: int = 0
    released: int = 0
    handler_failures: int = 0
    fetch_errors: int = 0
    complete_errors: int = 0
    release_errors: int = 0


@dataclass(frozen=True)
class HandlerResult:
    """Outcome of one handler invocation."""

    variables: VariablesMap = field(default_factory=dict)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TopicWorker:
    """Polling loop for a single topic."""

    def __init__(
        self,
        config: WorkerConfig,
        engine: EngineClient,
        registration: TopicRegistration,
    ):
        self.config = config
        self.engine = engine
        self.registration = registration
        self.topic = registration.topic
        self.state = WorkerState.IDLE
        self.stats = WorkerStats()
        self._stop_event = asyncio.Event()

        if registration.wait_interval is not None:
            self.wait_interval = registration.wait_interval
        else:
            self.wait_interval = config.wait_interval_for(self.topic)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit before its next fetch.

        A handler that is already running finishes and its task is
        still completed or released.
        """
        self._stop_event.set()

    async def run(self) -> None:
        """Run fetch cycles until stop() is called."""
        logger.info(
            "Worker for topic %s started (worker_id=%s, wait_interval=%ss)",
            self.topic,
            self.config.worker_id,
            self.wait_interval,
        )
        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Unexpected error in poll loop for topic %s", self.topic)

            await self._wait()

        self.state = WorkerState.STOPPED
        logger.info("Worker for topic %s stopped", self.topic)

    async def run_cycle(self) -> None:
        """Fetch at most one task, handle it and resolve it. Never waits."""
        self.stats.cycles += 1
        self.state = WorkerState.FETCHING
        try:
            logger.debug("Fetching task for topic %s", self.topic)
            try:
                tasks = await self.engine.lock_and_fetch(
                    self.topic,
                    self.config.worker_id,
                    self.config.lock_duration,
                    max_tasks=1,
                )
            except EngineError as e:
                self.stats.fetch_errors += 1
                logger.error("Failed to lock task on topic %s: %s", self.topic, e.message)
                return

            if not tasks:
                logger.debug("No task available on topic %s", self.topic)
                return

            self.stats.fetched += len(tasks)
            task, surplus = tasks[0], tasks[1:]
            for extra in surplus:
                logger.warning(
                    "Engine returned more than one task for topic %s, releasing %s",
                    self.topic,
                    extra.id,
                )
                await self._release(extra)

            await self._process(task)
        finally:
            self.state = WorkerState.IDLE

    # --- Task handling ---

    async def _process(self, task: Task) -> None:
        if not task.id:
            logger.error("Skipping malformed task without id on topic %s", self.topic)
            return

        logger.info("Locked task %s on topic %s", task.id, self.topic)
        self.state = WorkerState.DISPATCHING
        try:
            result = await self._dispatch(task)
        except asyncio.CancelledError:
            logger.info("Cancelled while handling task %s, releasing it", task.id)
            await self._release(task)
            raise

        if result.ok:
            await self._complete(task, result.variables)
        else:
            self.stats.handler_failures += 1
            logger.warning(
                "Handler for topic %s failed on task %s: %s",
                self.topic,
                task.id,
                result.error,
                exc_info=result.error,
            )
            await self._release(task)

    async def _dispatch(self, task: Task) -> HandlerResult:
        """Invoke the handler, turning every failure into a HandlerResult.

        Coroutine handlers run on the event loop; plain callables run in
        a worker thread so a blocking handler cannot stall other topics.
        """
        handler = self.registration.handler
        try:
            if inspect.iscoroutinefunction(handler):
                output = await handler(task)
            else:
                output = await asyncio.to_thread(handler, task)
                if inspect.isawaitable(output):
                    output = await output

            if isinstance(output, Exception):
                return HandlerResult(error=output)
            return HandlerResult(variables=to_variables(output))
        except Exception as e:
            return HandlerResult(error=e)

    async def _complete(self, task: Task, variables: VariablesMap) -> None:
        self.state = WorkerState.COMPLETING
        try:
            await self.engine.complete(task, self.config.worker_id, variables)
        except EngineError as e:
            # Lock is presumed lost; the engine owns the task now
            self.stats.complete_errors += 1
            logger.error("Failed to complete task %s: %s", task.id, e.message)
            return

        self.stats.completed += 1
        logger.info("Task %s completed", task.id)

    async def _release(self, task: Task) -> None:
        self.state = WorkerState.RELEASING
        try:
            await self.engine.release(task)
        except EngineError as e:
            # Task stays locked until the engine-side lock expires
            self.stats.release_errors += 1
            logger.error("Failed to release task %s: %s", task.id, e.message)
            return

        self.stats.released += 1
        logger.info("Released task %s", task.id)

    # --- Waiting ---

    async def _wait(self) -> None:
        """Sleep the poll interval, returning early if stop() is called."""
        if self._stop_event.is_set():
            return
        self.state = WorkerState.WAITING
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.wait_interval)
