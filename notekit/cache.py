"""
cache.py - Bounded memoization of position snapshots

The evaluator is pure, so a snapshot can be reused whenever the position,
prices, scenario and configuration are unchanged. SnapshotCache is owned by
the caller and passed explicitly to evaluate_position(); there is no
module-level cache.

Keys are content hashes: snapshot_key() serializes its inputs canonically
(sorted mapping keys, enums by value, dataclasses field by field) and
hashes the result with SHA-256.

SnapshotCache is not thread-safe. Callers sharing one across threads must
lock around it.
"""

from __future__ import annotations
from collections import OrderedDict
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar
import hashlib

from .core import DEFAULT_CACHE_SIZE

V = TypeVar("V")


def canonicalize(value: Any) -> str:
    """
    Deterministic string form of a value for hashing.

    Mapping order does not matter; enums serialize by value; dataclasses by
    their fields in declaration order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, (int, float)):
        return f"N:{value!r}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, date):
        return f"D:{value.isoformat()}"
    if is_dataclass(value) and not isinstance(value, type):
        parts = ",".join(f"{f.name}={canonicalize(getattr(value, f.name))}" for f in fields(value))
        return f"{type(value).__name__}({parts})"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{canonicalize(k)}:{canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    return f"R:{value!r}"


def snapshot_key(*parts: Any) -> str:
    """SHA-256 over the canonical form of every part, in order."""
    content = "|".join(canonicalize(part) for part in parts)
    return hashlib.sha256(content.encode()).hexdigest()


class SnapshotCache(Generic[V]):
    """
    Least-recently-used cache with a fixed capacity.

    Example:
        >>> cache = SnapshotCache(max_size=2)
        >>> cache.put("a", 1); cache.put("b", 2); cache.put("c", 3)
        >>> cache.get("a") is None, len(cache)
        (True, 2)
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: "OrderedDict[str, V]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[V]:
        if key not in self._entries:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return self._entries[key]

    def put(self, key: str, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
