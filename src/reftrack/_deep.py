"""Structural snapshots and comparison for deep watchers."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Set
from typing import Any

from reftrack.ref import Ref

_SEQUENCES = (list, tuple)


@dataclasses.dataclass
class _Fields:
    """Snapshot of a dataclass or plain object: its type and field values."""

    kind: type
    fields: dict[str, Any]


class _Cycle:
    def __repr__(self) -> str:
        return "<cycle>"


_CYCLE = _Cycle()


def snapshot(value: object) -> Any:
    """Copy the structure of value, replacing every nested Ref by its value.

    Refs are read with get(), so inside a running effect they become
    dependencies, and a later change to one of them shows up as a difference
    between two snapshots. Leaves are kept as-is. Set members are walked for
    Refs but the set itself is kept.
    """
    return _snapshot(value, {})


def _snapshot(value: object, memo: dict[int, Any]) -> Any:
    if id(value) in memo:
        return memo[id(value)]
    if isinstance(value, Ref):
        memo[id(value)] = _CYCLE
        result = _snapshot(value.get(), memo)
        memo[id(value)] = result
        return result
    if isinstance(value, Mapping):
        copied: dict[Any, Any] = {}
        memo[id(value)] = copied
        for key, item in value.items():
            copied[key] = _snapshot(item, memo)
        return copied
    if isinstance(value, list):
        items: list[Any] = []
        memo[id(value)] = items
        items.extend(_snapshot(item, memo) for item in value)
        return items
    if isinstance(value, tuple):
        memo[id(value)] = _CYCLE
        result = tuple(_snapshot(item, memo) for item in value)
        memo[id(value)] = result
        return result
    if isinstance(value, Set):
        memo[id(value)] = value
        for item in value:
            _snapshot(item, memo)
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        node = _Fields(type(value), {})
        memo[id(value)] = node
        for f in dataclasses.fields(value):
            node.fields[f.name] = _snapshot(getattr(value, f.name), memo)
        return node
    if hasattr(value, "__dict__") and not isinstance(value, type) and not callable(value):
        node = _Fields(type(value), {})
        memo[id(value)] = node
        for name, item in vars(value).items():
            node.fields[name] = _snapshot(item, memo)
        return node
    return value


def deep_equal(a: Any, b: Any) -> bool:
    """True when a and b are structurally identical.

    Mappings compare key by key, lists and tuples element by element, sets by
    membership, dataclasses and plain objects by their fields. Anything else
    falls back to ==.
    """
    return _deep_equal(a, b, set())


def _deep_equal(a: Any, b: Any, seen: set[tuple[int, int]]) -> bool:
    if a is b:
        return True
    pair = (id(a), id(b))
    if pair in seen:
        return True
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if a.keys() != b.keys():
            return False
        seen.add(pair)
        return all(_deep_equal(a[key], b[key], seen) for key in a)
    if isinstance(a, _SEQUENCES) and isinstance(b, _SEQUENCES):
        if type(a) is not type(b) or len(a) != len(b):
            return False
        seen.add(pair)
        return all(_deep_equal(x, y, seen) for x, y in zip(a, b))
    if isinstance(a, Set) and isinstance(b, Set):
        return a == b
    if type(a) is not type(b):
        return a == b
    if dataclasses.is_dataclass(a) and not isinstance(a, type):
        seen.add(pair)
        return all(
            _deep_equal(getattr(a, f.name), getattr(b, f.name), seen)
            for f in dataclasses.fields(a)
        )
    if hasattr(a, "__dict__") and not isinstance(a, type) and not callable(a):
        seen.add(pair)
        return _deep_equal(vars(a), vars(b), seen)
    return a == b
