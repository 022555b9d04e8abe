"""Shared foundational helpers for Mediagrab domain models."""

from .json_types import (
    JSONPrimitive,
    JSONValue,
    JsonDict,
    JsonList,
    clone_json_dict,
    get_int,
    get_list,
    get_str,
)

__all__ = [
    "JSONPrimitive",
    "JSONValue",
    "JsonDict",
    "JsonList",
    "clone_json_dict",
    "get_int",
    "get_list",
    "get_str",
]
