"""Data models for external tasks and their variables."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union


@dataclass(frozen=True)
class Variable:
    """A typed process variable value."""

    value: Any = None
    type: str | None = None
    value_info: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Variable:
        """Parse a variable from the engine's JSON form."""
        return cls(
            value=data.get("value"),
            type=data.get("type"),
            value_info=data.get("valueInfo") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the engine's JSON form, omitting unset fields."""
        data: dict[str, Any] = {"value": self.value}
        if self.type is not None:
            data["type"] = self.type
        if self.value_info is not None:
            data["valueInfo"] = self.value_info
        return data


VariablesMap = dict[str, Variable]


@dataclass(frozen=True)
class Task:
    """An external task locked by this worker.

    Instances are read-only: the variable mapping is wrapped in a
    mapping proxy so a handler cannot alter what other code sees.
    """

    id: str | None
    topic_name: str
    variables: Mapping[str, Variable] = field(default_factory=dict)
    worker_id: str | None = None
    lock_expiration_time: str | None = None
    process_instance_id: str | None = None
    process_definition_key: str | None = None
    activity_id: str | None = None
    business_key: str | None = None
    retries: int | None = None
    priority: int | None = None
    tenant_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """Parse a locked external task from a fetch-and-lock response item."""
        raw_variables = data.get("variables") or {}
        return cls(
            id=data.get("id"),
            topic_name=data.get("topicName", ""),
            variables={
                name: Variable.from_dict(value or {}) for name, value in raw_variables.items()
            },
            worker_id=data.get("workerId"),
            lock_expiration_time=data.get("lockExpirationTime"),
            process_instance_id=data.get("processInstanceId"),
            process_definition_key=data.get("processDefinitionKey"),
            activity_id=data.get("activityId"),
            business_key=data.get("businessKey"),
            retries=data.get("retries"),
            priority=data.get("priority"),
            tenant_id=data.get("tenantId"),
        )

    def value(self, name: str, default: Any = None) -> Any:
        """Return the raw value of an input variable, or ``default``."""
        variable = self.variables.get(name)
        if variable is None:
            return default
        return variable.value


HandlerOutput = Union[Mapping[str, Any], Exception, None]
TopicHandler = Callable[[Task], Union[HandlerOutput, Awaitable[HandlerOutput]]]


@dataclass(frozen=True)
class TopicRegistration:
    """Binds a topic to the handler that processes its tasks."""

    topic: str
    handler: TopicHandler
    wait_interval: float | None = None  # seconds, overrides config

    def __post_init__(self) -> None:
        if not self.topic:
            raise ValueError("topic must not be empty")
        if self.wait_interval is not None and self.wait_interval < 0:
            raise ValueError(f"wait_interval must be >= 0, got {self.wait_interval}")
