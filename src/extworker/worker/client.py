"""HTTP client for the process engine's external task API.

Wraps the three calls a worker needs: fetch-and-lock, complete and
unlock. Calls never retry; the topic worker decides what happens next.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .config import WorkerConfig
from .models import Task, Variable
from .variables import serialize_variables

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Raised when an engine API call fails."""

    def __init__(self, message: str, status_code: int = 0, detail: str = ""):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class EngineClient:
    """Async client for the engine's external task REST resources.

    Holds no per-call state, so one instance can be shared by every
    topic worker running on the same event loop.
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        *,
        timeout: float = 30.0,
        async_response_timeout: int | None = None,
        use_priority: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        auth = httpx.BasicAuth(username, password) if username else None
        self.async_response_timeout = async_response_timeout
        self.use_priority = use_priority

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Content-Type": "application/json"},
            auth=auth,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: WorkerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> EngineClient:
        """Build a client from worker configuration."""
        timeout = config.request_timeout
        if config.async_response_timeout:
            # Long polling holds the request open on the engine side
            timeout += config.async_response_timeout / 1000
        return cls(
            config.base_url,
            config.username,
            config.password,
            timeout=timeout,
            async_response_timeout=config.async_response_timeout,
            use_priority=config.use_priority,
            transport=transport,
        )

    # --- External tasks ---

    async def lock_and_fetch(
        self,
        topic: str,
        worker_id: str,
        lock_duration: float,
        max_tasks: int = 1,
    ) -> list[Task]:
        """Fetch and lock up to ``max_tasks`` tasks of a topic.

        POST /external-task/fetchAndLock

        Args:
            topic: Topic to fetch tasks for.
            worker_id: Identity the tasks get locked to.
            lock_duration: Lock duration in seconds.
            max_tasks: Upper bound on tasks returned.

        Returns:
            Locked tasks. An empty list means nothing is available.

        Raises:
            EngineError: On transport failure, error status or malformed payload.
        """
        body: dict[str, Any] = {
            "workerId": worker_id,
            "maxTasks": max_tasks,
            "topics": [
                {
                    "topicName": topic,
                    "lockDuration": int(lock_duration * 1000),
                }
            ],
        }
        if self.use_priority is not None:
            body["usePriority"] = self.use_priority
        if self.async_response_timeout is not None:
            body["asyncResponseTimeout"] = self.async_response_timeout

        response = await self._request("POST", "/external-task/fetchAndLock", json=body)
        if not response:
            return []
        if not isinstance(response, list):
            raise EngineError(
                f"Malformed fetchAndLock response: expected a list, got {type(response).__name__}",
                detail=str(response)[:200],
            )
        try:
            return [Task.from_dict(item) for item in response]
        except (AttributeError, TypeError) as e:
            raise EngineError(f"Malformed fetchAndLock response: {e}", detail=str(e)) from e

    async def complete(
        self,
        task: Task,
        worker_id: str,
        variables: Mapping[str, Variable] | None = None,
        local_variables: Mapping[str, Variable] | None = None,
    ) -> None:
        """Complete a locked task with output variables.

        POST /external-task/{id}/complete

        Raises:
            EngineError: If the task has no id, the lock is no longer held
                by ``worker_id`` or the call fails.
        """
        body: dict[str, Any] = {
            "workerId": worker_id,
            "variables": serialize_variables(variables or {}),
        }
        if local_variables:
            body["localVariables"] = serialize_variables(local_variables)

        await self._request("POST", f"/external-task/{_task_id(task)}/complete", json=body)

    async def release(self, task: Task) -> None:
        """Unlock a task so it can be fetched again.

        POST /external-task/{id}/unlock

        Raises:
            EngineError: If the task has no id or the call fails.
        """
        await self._request("POST", f"/external-task/{_task_id(task)}/unlock")

    # --- Lifecycle ---

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> EngineClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # --- Internal ---

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a request to the engine.

        Raises:
            EngineError: On HTTP errors, connection failures or bad JSON.
        """
        try:
            response = await self._client.request(method, url, json=json)

            if response.status_code >= 400:
                detail = ""
                try:
                    body = response.json()
                    detail = body.get("message") or body.get("detail") or str(body)
                except Exception:
                    detail = response.text[:200]

                raise EngineError(
                    f"{method} {url} returned {response.status_code}: {detail}",
                    status_code=response.status_code,
                    detail=detail,
                )

            # complete and unlock answer 204 No Content
            if not response.content:
                return None

            return response.json()

        except httpx.ConnectError as e:
            raise EngineError(
                f"Cannot connect to engine: {e}",
                detail=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise EngineError(
                f"Request timed out: {method} {url}",
                detail=str(e),
            ) from e
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(
                f"Unexpected error: {e}",
                detail=str(e),
            ) from e


def _task_id(task: Task) -> str:
    if not task.id:
        raise EngineError(f"Task on topic {task.topic_name!r} has no id")
    return task.id
