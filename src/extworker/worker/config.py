"""Worker configuration.

Loads from ~/.extworker/worker.yaml with environment variable overrides.
The resulting config is immutable and shared by every topic worker.
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path.home() / ".extworker" / "worker.yaml"


@dataclass(frozen=True)
class TopicConfig:
    """Per-topic settings that override the worker defaults."""

    topic: str
    wait_interval: float | None = None  # seconds

    def __post_init__(self) -> None:
        if not self.topic:
            raise ValueError("topic must not be empty")
        if self.wait_interval is not None and self.wait_interval < 0:
            raise ValueError(
                f"wait_interval for topic {self.topic!r} must be >= 0, got {self.wait_interval}"
            )

    @classmethod
    def from_dict(cls, data: Any) -> TopicConfig:
        if isinstance(data, str):
            return cls(topic=data)
        wait_interval = data.get("wait_interval")
        return cls(
            topic=data["topic"],
            wait_interval=float(wait_interval) if wait_interval is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"topic": self.topic}
        if self.wait_interval is not None:
            data["wait_interval"] = self.wait_interval
        return data


@dataclass(frozen=True)
class WorkerConfig:
    """Configuration for the external task worker process."""

    base_url: str = "http://localhost:8080/engine-rest"
    username: str = ""
    password: str = ""  # loaded from env or file, never saved
    worker_id: str = field(default_factory=socket.gethostname)
    wait_interval: float = 60.0  # seconds between polls
    lock_duration: float = 60.0  # seconds a fetched task stays locked
    request_timeout: float = 30.0
    async_response_timeout: int | None = None  # ms, engine-side long polling
    use_priority: bool | None = None
    topics: tuple[TopicConfig, ...] = ()

    def __post_init__(self) -> None:
        if not self.worker_id:
            raise ValueError("worker_id must not be empty")
        if self.wait_interval < 0:
            raise ValueError(f"wait_interval must be >= 0, got {self.wait_interval}")
        if self.lock_duration <= 0:
            raise ValueError(f"lock_duration must be > 0, got {self.lock_duration}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")
        object.__setattr__(self, "topics", tuple(self.topics))

    def topic_config(self, topic: str) -> TopicConfig | None:
        """Return the override entry for a topic, if any."""
        for topic_config in self.topics:
            if topic_config.topic == topic:
                return topic_config
        return None

    def wait_interval_for(self, topic: str) -> float:
        """Resolve the poll interval for a topic."""
        topic_config = self.topic_config(topic)
        if topic_config is not None and topic_config.wait_interval is not None:
            return topic_config.wait_interval
        return self.wait_interval

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> WorkerConfig:
        """Load worker config from file and environment variables.

        Priority (highest wins):
          1. Keyword overrides (e.g. from CLI flags)
          2. Environment variables (EXTWORKER_BASE_URL, EXTWORKER_WORKER_ID, etc.)
          3. Config file (~/.extworker/worker.yaml or custom path)
          4. Defaults

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Field values that win over every other source.
                ``None`` values are ignored.

        Returns:
            Populated WorkerConfig instance.
        """
        values: dict[str, Any] = {}
        file_path = config_path or DEFAULT_CONFIG_FILE

        if file_path.exists():
            try:
                with open(file_path) as f:
                    data = yaml.safe_load(f) or {}
                values.update(_from_file(data))
            except (yaml.YAMLError, OSError, ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning("Ignoring unreadable config file %s: %s", file_path, e)

        # Environment variables override file config
        if env_url := os.environ.get("EXTWORKER_BASE_URL"):
            values["base_url"] = env_url
        if env_username := os.environ.get("EXTWORKER_USERNAME"):
            values["username"] = env_username
        if env_password := os.environ.get("EXTWORKER_PASSWORD"):
            values["password"] = env_password
        if env_worker_id := os.environ.get("EXTWORKER_WORKER_ID"):
            values["worker_id"] = env_worker_id
        if env_wait := os.environ.get("EXTWORKER_WAIT_INTERVAL"):
            values["wait_interval"] = float(env_wait)
        if env_lock := os.environ.get("EXTWORKER_LOCK_DURATION"):
            values["lock_duration"] = float(env_lock)
        if env_timeout := os.environ.get("EXTWORKER_REQUEST_TIMEOUT"):
            values["request_timeout"] = float(env_timeout)

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def save(self, config_path: Path | None = None) -> None:
        """Save current config to file.

        Args:
            config_path: Optional path override.
        """
        file_path = config_path or DEFAULT_CONFIG_FILE
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, Any] = {
            "base_url": self.base_url,
            "username": self.username,
            "worker_id": self.worker_id,
            "wait_interval": self.wait_interval,
            "lock_duration": self.lock_duration,
            "request_timeout": self.request_timeout,
            "topics": [topic.to_dict() for topic in self.topics],
        }
        if self.async_response_timeout is not None:
            data["async_response_timeout"] = self.async_response_timeout
        if self.use_priority is not None:
            data["use_priority"] = self.use_priority

        with open(file_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)


def _from_file(data: dict[str, Any]) -> dict[str, Any]:
    """Pick known keys out of a parsed config file."""
    values: dict[str, Any] = {}
    for key in ("base_url", "username", "password", "worker_id"):
        if key in data:
            values[key] = str(data[key])
    for key in ("wait_interval", "lock_duration", "request_timeout"):
        if key in data:
            values[key] = float(data[key])
    if data.get("async_response_timeout") is not None:
        values["async_response_timeout"] = int(data["async_response_timeout"])
    if data.get("use_priority") is not None:
        values["use_priority"] = bool(data["use_priority"])
    if "topics" in data:
        values["topics"] = tuple(TopicConfig.from_dict(item) for item in data["topics"] or [])
    return values
