"""Helpers for building process variables."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from .models import Variable, VariablesMap


def infer_type(value: Any) -> str | None:
    """Guess the engine type name for a plain Python value."""
    # bool before int: bool is an int subclass
    if value is None:
        return "Null"
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Long" if abs(value) > 2**31 - 1 else "Integer"
    if isinstance(value, float):
        return "Double"
    if isinstance(value, str):
        return "String"
    if isinstance(value, (dict, list)):
        return "Json"
    return None


def variable_value(value: Any, type: str | None = None) -> Variable:
    """Wrap a value as an untyped (or explicitly typed) variable."""
    return Variable(value=value, type=type)


def variables_from_pairs(pairs: Iterable[tuple[str, Variable]]) -> VariablesMap:
    """Build a variables map from (name, variable) pairs.

    Later pairs win when a name repeats.
    """
    return dict(pairs)


def to_variables(values: Mapping[str, Any] | None) -> VariablesMap:
    """Normalize handler output into a variables map.

    ``Variable`` instances pass through untouched, anything else is
    wrapped with an inferred type. ``None`` yields an empty map.

    Raises:
        TypeError: If the output is not a mapping of string names, or a
            value cannot be sent to the engine as JSON.
    """
    if values is None:
        return {}
    if not isinstance(values, Mapping):
        raise TypeError(f"expected a mapping of variables, got {type(values).__name__}")

    result: VariablesMap = {}
    for name, value in values.items():
        if not isinstance(name, str):
            raise TypeError(f"variable names must be strings, got {name!r}")
        if isinstance(value, Variable):
            result[name] = value
        else:
            result[name] = Variable(value=value, type=infer_type(value))

    # Same encoder settings as httpx request bodies
    try:
        json.dumps(serialize_variables(result), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise TypeError(f"variables cannot be encoded as JSON: {e}") from e
    return result


def serialize_variables(variables: Mapping[str, Variable]) -> dict[str, dict[str, Any]]:
    """Convert a variables map to its JSON form."""
    return {name: variable.to_dict() for name, variable in variables.items()}
