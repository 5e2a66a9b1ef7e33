"""Refs — single observable values that track their readers.

Reading a Ref inside a running Effect subscribes that effect to it. Writing
a different value notifies plain listeners, in the order they were added,
then re-runs every subscribed effect. Everything happens on the writer's
call stack; set() returns only after the whole cascade has finished.

Dependent effects run even when a listener raises; the listener's exception
still propagates to the writer afterwards.

Listeners may write to other Refs (or the same one). Nothing stops a cycle
except the equality gate: a write that does not change the value is silent.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from reftrack._tracking import DependencyGraph, get_graph

logger = logging.getLogger("reftrack.ref")

T = TypeVar("T")

Listener = Callable[[], None]

VALUE_KEY = "value"


class Ref(Generic[T]):
    """A reactive container for a single value."""

    __slots__ = ("_value", "_listeners", "_graph", "_disposed", "__weakref__")

    def __init__(self, value: T, *, graph: DependencyGraph | None = None) -> None:
        self._value = value
        self._listeners: list[Listener] = []
        self._graph = graph if graph is not None else get_graph()
        self._disposed = False

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get(self) -> T:
        """Read the value. Inside a running Effect, registers the dependency."""
        if not self._disposed:
            self._graph.track(self, VALUE_KEY)
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Equal values are ignored."""
        if self._disposed:
            logger.debug("Ignoring set() on disposed %r", self)
            return
        old = self._value
        if old is value or old == value:
            return
        self._value = value
        self._notify()

    value = property(get, set)

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def _notify(self) -> None:
        try:
            for listener in list(self._listeners):
                listener()
        finally:
            self._graph.trigger(self, VALUE_KEY)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a no-argument callback. Returns a function that removes it."""
        if self._disposed:
            return lambda: None
        self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass  # never added, or already removed

    @property
    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def dispose(self) -> None:
        """Drop all listeners and dependency edges. The Ref keeps its last value."""
        if self._disposed:
            return
        self._disposed = True
        self._listeners.clear()
        self._graph.forget(self)

    def __repr__(self) -> str:
        return f"Ref({self._value!r})"


def ref(value: T, *, graph: DependencyGraph | None = None) -> Ref[T]:
    """Create a Ref holding value.

    Usage:
        count = ref(0)
        count.get()   # 0
        count.set(1)  # listeners and dependent effects run here
    """
    return Ref(value, graph=graph)
