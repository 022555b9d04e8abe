"""Shared JSON-compatible type aliases and helpers."""

from __future__ import annotations

from typing import Mapping, TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JsonList: TypeAlias = list[JSONValue]
JsonDict: TypeAlias = dict[str, JSONValue]


def _clone(value: JSONValue) -> JSONValue:
    if isinstance(value, list):
        return [_clone(item) for item in value]
    if isinstance(value, dict):
        return {key: _clone(item) for key, item in value.items()}
    return value


def clone_json_dict(value: Mapping[str, JSONValue]) -> JsonDict:
    """Deep copy a metadata mapping so cached job data cannot be mutated by callers."""

    return {key: _clone(item) for key, item in value.items()}


def get_str(mapping: Mapping[str, JSONValue], key: str) -> str | None:
    value = mapping.get(key)
    return value if isinstance(value, str) else None


def get_int(mapping: Mapping[str, JSONValue], key: str) -> int | None:
    """Return an integral value; floats with no fractional part are accepted."""
    value = mapping.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def get_list(mapping: Mapping[str, JSONValue], key: str) -> JsonList | None:
    value = mapping.get(key)
    return value if isinstance(value, list) else None
