"""Store — a keyed registry of Refs with per-key dirty flags.

Each registered Ref gets a forwarding listener. When the Ref changes, the
listener marks its key dirty and notifies the Store's own listeners, so an
adapter can watch one object instead of many. Dirty flags stay set until
clear_changed()/clear_all_changed().

Lookups are forgiving: unknown keys, values failing an expected_type check,
and any call on a disposed Store return None (or an empty set) instead of
raising.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from reftrack.ref import Listener, Ref

logger = logging.getLogger("reftrack.store")

T = TypeVar("T")


class Store:
    """Named Refs plus change tracking and an aggregate change notification."""

    def __init__(self) -> None:
        self._refs: dict[str, Ref[Any]] = {}
        self._forwarders: dict[str, Listener] = {}
        self._changed: set[str] = set()
        self._listeners: list[Listener] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    # --- Registration ---

    def register(self, key: str, ref: Ref[Any]) -> None:
        """Add ref under key. The first registration of a key wins."""
        if self._disposed:
            return
        if key in self._refs:
            logger.debug("Key %r already registered; keeping the existing Ref", key)
            return

        def _forward() -> None:
            if self._disposed:
                return
            self._changed.add(key)
            self._notify()

        self._refs[key] = ref
        self._forwarders[key] = _forward
        ref.add_listener(_forward)

    def unregister(self, key: str) -> None:
        """Remove key, its forwarding listener and its dirty flag."""
        if self._disposed:
            return
        ref = self._refs.pop(key, None)
        forward = self._forwarders.pop(key, None)
        if ref is not None and forward is not None:
            ref.remove_listener(forward)
        self._changed.discard(key)

    # --- Access ---

    def get_ref(self, key: str, expected_type: type[T] | None = None) -> Ref[T] | None:
        """The Ref under key, or None if missing, mistyped or disposed."""
        if self._disposed:
            return None
        ref = self._refs.get(key)
        if ref is None:
            return None
        if expected_type is not None and not isinstance(ref.peek(), expected_type):
            return None
        return ref

    def get_value(
        self, key: str, expected_type: type[T] | None = None, default: T | None = None
    ) -> T | None:
        """Read the value under key. Tracked like Ref.get() inside an Effect."""
        ref = self.get_ref(key, expected_type)
        return ref.get() if ref is not None else default

    def set_value(self, key: str, value: Any, expected_type: type | None = None) -> None:
        """Write through to the Ref under key. Unknown or mistyped keys are ignored."""
        if self._disposed:
            return
        if expected_type is not None and not isinstance(value, expected_type):
            return
        ref = self.get_ref(key, expected_type)
        if ref is not None:
            ref.set(value)

    # --- Change tracking ---

    def has_changed(self, key: str) -> bool:
        if self._disposed:
            return False
        return key in self._changed

    def clear_changed(self, key: str) -> None:
        if self._disposed:
            return
        self._changed.discard(key)

    def clear_all_changed(self) -> None:
        if self._disposed:
            return
        self._changed.clear()

    @property
    def changed_keys(self) -> set[str]:
        if self._disposed:
            return set()
        return set(self._changed)

    @property
    def keys(self) -> set[str]:
        if self._disposed:
            return set()
        return set(self._refs)

    def __contains__(self, key: object) -> bool:
        return not self._disposed and key in self._refs

    def __len__(self) -> int:
        return 0 if self._disposed else len(self._refs)

    # --- Aggregate listeners ---

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call listener() after any registered Ref changes. Returns a remover."""
        if self._disposed:
            return lambda: None
        self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass  # never added, or already removed

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # --- Lifecycle ---

    def dispose(self) -> None:
        """Detach from every Ref and clear all state. The Store stays inert."""
        if self._disposed:
            return
        self._disposed = True
        for key, ref in self._refs.items():
            forward = self._forwarders.get(key)
            if forward is not None:
                ref.remove_listener(forward)
        logger.debug("Disposed store with %d keys", len(self._refs))
        self._forwarders.clear()
        self._refs.clear()
        self._changed.clear()
        self._listeners.clear()

    def __repr__(self) -> str:
        if self._disposed:
            return "Store(disposed)"
        return f"Store(keys={sorted(self._refs)!r}, changed={sorted(self._changed)!r})"


def create_store() -> Store:
    """Create an empty Store."""
    return Store()
