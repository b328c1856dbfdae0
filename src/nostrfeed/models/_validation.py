"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints and
deep immutability.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


_HEX_RE = re.compile(r"^[0-9a-f]+$")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_hex(value: Any, length: int, name: str) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* chars."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if len(value) != length or not _HEX_RE.match(value):
        raise ValueError(f"{name} must be {length} lowercase hex characters")


def validate_tags(value: Any, name: str) -> None:
    """Raise if *value* is not a tuple of tuples of strings."""
    validate_instance(value, tuple, name)
    for tag in value:
        validate_instance(tag, tuple, f"{name} entry")
        for item in tag:
            validate_instance(item, str, f"{name} value")


def deep_freeze(obj: Any) -> Any:
    """Recursively wrap dicts with ``MappingProxyType`` to prevent mutation."""
    if isinstance(obj, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return tuple(deep_freeze(item) for item in obj)
    return obj


def thaw(obj: Any) -> Any:
    """Inverse of [deep_freeze][nostrfeed.models._validation.deep_freeze] for JSON output."""
    if isinstance(obj, Mapping):
        return {k: thaw(v) for k, v in obj.items()}
    if isinstance(obj, tuple):
        return [thaw(item) for item in obj]
    return obj
