"""Dependency tracking engine — the heart of reftrack.

A DependencyGraph maps (target, key) pairs to the ordered set of effects
that read them. Reads call track(), writes call trigger(). Which effect is
"reading" is decided by the graph's active slot, which Effect.run() fills
for the duration of its body.

Triggering is synchronous: every subscriber re-runs on the writer's call
stack before trigger() returns. The subscriber set is snapshotted first, so
an effect that stops itself, stops a sibling, or tracks new reads during the
cascade never disturbs the iteration in progress.

There is no cycle breaker. An effect whose run writes a value that triggers
itself again loops until the written value stops changing; keeping such
cascades convergent is the caller's job.

The graph is not thread-safe. A caller sharing one graph between threads
must hold a lock around track/trigger/cleanup and keep the snapshot taken
inside that lock.
"""

from __future__ import annotations

import contextvars
import itertools
import weakref
from collections.abc import Hashable
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from reftrack.effect import Effect

# Subscriber sets are dicts with None values: ordered, duplicate-free.
Subscribers = dict["Effect", None]
DepsMap = dict[Hashable, Subscribers]

_graph_ids = itertools.count(1)


class DependencyGraph:
    """Registry of dependency edges between targets and effects.

    Targets are keyed by identity, never by ==. They are held weakly where
    Python allows it, so a Ref that is simply dropped takes its edges with
    it. Targets that cannot be weakly referenced are kept until forget() is
    called.
    """

    def __init__(self) -> None:
        self._id = next(_graph_ids)
        # id(target) -> (callable returning the target, deps map)
        self._targets: dict[int, tuple[Callable[[], object], DepsMap]] = {}
        self._active: contextvars.ContextVar[Effect | None] = contextvars.ContextVar(
            f"reftrack_active_effect_{self._id}", default=None
        )

    # --- Active-effect slot ---

    def get_active(self) -> Effect | None:
        """The effect currently executing against this graph, if any."""
        return self._active.get()

    def set_active(self, effect: Effect | None) -> contextvars.Token:
        """Fill the active slot. Pass the returned token to reset_active()."""
        return self._active.set(effect)

    def reset_active(self, token: contextvars.Token) -> None:
        """Restore whatever occupied the slot before the matching set_active()."""
        self._active.reset(token)

    # --- Edges ---

    def _deps_map(self, target: object, create: bool) -> DepsMap | None:
        key = id(target)
        entry = self._targets.get(key)
        if entry is not None:
            holder, deps_map = entry
            if holder() is target:
                return deps_map
            # id reused by a new object
            del self._targets[key]
        if not create:
            return None
        try:
            holder = weakref.ref(target, lambda r, key=key: self._drop(key, r))
        except TypeError:
            holder = lambda target=target: target  # noqa: E731
        deps_map = {}
        self._targets[key] = (holder, deps_map)
        return deps_map

    def _drop(self, key: int, holder: weakref.ref) -> None:
        entry = self._targets.get(key)
        if entry is not None and entry[0] is holder:
            del self._targets[key]

    def _all_deps_maps(self) -> list[DepsMap]:
        return [deps_map for _, deps_map in self._targets.values()]

    def track(self, target: object, key: Hashable) -> None:
        """Subscribe the active effect to (target, key). No-op when nothing is active."""
        effect = self._active.get()
        if effect is None:
            return
        deps_map = self._deps_map(target, create=True)
        deps_map.setdefault(key, {})[effect] = None

    def trigger(self, target: object, key: Hashable) -> None:
        """Re-run every effect subscribed to (target, key), in registration order."""
        deps_map = self._deps_map(target, create=False)
        if not deps_map:
            return
        subscribers = deps_map.get(key)
        if not subscribers:
            return
        # Snapshot: runs below may stop effects or add new edges.
        for effect in list(subscribers):
            effect.run()

    def cleanup(self, effect: Effect) -> None:
        """Remove effect from every subscriber set in the graph."""
        for deps_map in self._all_deps_maps():
            for subscribers in deps_map.values():
                subscribers.pop(effect, None)

    def forget(self, target: object) -> None:
        """Drop every edge recorded against target."""
        entry = self._targets.get(id(target))
        if entry is not None and entry[0]() is target:
            del self._targets[id(target)]

    # --- Introspection ---

    def subscribers(self, target: object, key: Hashable) -> tuple[Effect, ...]:
        """Snapshot of the effects subscribed to (target, key)."""
        deps_map = self._deps_map(target, create=False)
        if not deps_map:
            return ()
        return tuple(deps_map.get(key, ()))

    def edge_count(self) -> int:
        """Total number of (target, key, effect) edges."""
        return sum(
            len(subscribers)
            for deps_map in self._all_deps_maps()
            for subscribers in deps_map.values()
        )

    def __repr__(self) -> str:
        return f"DependencyGraph(targets={len(self._targets)}, edges={self.edge_count()})"


# ─── Default graph ───────────────────────────────────────────────────────────
_default_graph = DependencyGraph()


def get_graph() -> DependencyGraph:
    """The graph new Refs and Effects bind to when none is passed."""
    return _default_graph


def set_graph(graph: DependencyGraph) -> DependencyGraph:
    """Replace the default graph. Returns the previous one.

    Objects already created keep the graph they were bound to.

        previous = reftrack.set_graph(DependencyGraph())
        ...
        reftrack.set_graph(previous)
    """
    global _default_graph
    previous = _default_graph
    _default_graph = graph
    return previous
