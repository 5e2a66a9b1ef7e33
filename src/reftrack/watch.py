"""watch() and watch_multiple() — callbacks that fire only on real change.

A watcher is an Effect whose body reads its source Ref(s), compares the new
snapshot against the one taken on the previous run, and calls the user's
callback only when they differ. Being triggered is not enough: a trigger
that leaves the compared value unchanged is swallowed.

The first run happens inside watch() itself. It records the starting
snapshot and establishes tracking; the callback fires on it only with
immediate=True, receiving UNSET as the old value.

The callback runs outside dependency tracking: Refs it reads do not
subscribe the watcher.

With deep=True the compared snapshot is a structural copy of the value in
which every nested Ref is replaced by its own value. Those nested Refs are
tracked too, so changing one fires the callback even though the outer
container is the same object (the callback then receives that object as
both new and old).
"""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Sequence, TypeVar

from reftrack._deep import deep_equal, snapshot
from reftrack._tracking import DependencyGraph, get_graph
from reftrack.effect import Effect, StopHandle
from reftrack.ref import Ref

T = TypeVar("T")
R = TypeVar("R")


class _Unset:
    """Marker for "no previous value"."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclasses.dataclass(frozen=True)
class WatchOptions:
    """immediate: fire once on setup. deep: compare and traverse structurally."""

    immediate: bool = False
    deep: bool = False


def _resolve(options: WatchOptions | None, immediate: bool, deep: bool) -> WatchOptions:
    if options is not None:
        return options
    return WatchOptions(immediate=immediate, deep=deep)


def _differs(old: object, new: object, deep: bool) -> bool:
    if old is new:
        return False
    if old is UNSET or new is UNSET:
        return True
    if deep:
        return not deep_equal(old, new)
    return old != new


def _call_untracked(graph: DependencyGraph, fn: Callable[..., None], *args: object) -> None:
    token = graph.set_active(None)
    try:
        fn(*args)
    finally:
        graph.reset_active(token)


def watch(
    source: Ref[T],
    callback: Callable[[T, T], None],
    *,
    immediate: bool = False,
    deep: bool = False,
    options: WatchOptions | None = None,
) -> StopHandle:
    """Call callback(new, old) whenever source's value changes.

    Returns the stop handle of the underlying Effect.

    Usage:
        counter = ref(0)
        seen = []

        stop = watch(counter, lambda new, old: seen.append((new, old)))
        counter.set(1)
        # seen == [(1, 0)]

        counter.set(1)
        # seen == [(1, 0)], same value so no call

        stop()
    """
    opts = _resolve(options, immediate, deep)
    graph = source.graph
    old_value: Any = UNSET
    old_compared: Any = UNSET
    first_run = True

    def runner() -> None:
        nonlocal old_value, old_compared, first_run
        new_value = source.get()
        new_compared = snapshot(new_value) if opts.deep else new_value
        try:
            if first_run:
                if opts.immediate:
                    _call_untracked(graph, callback, new_value, UNSET)
            elif _differs(old_compared, new_compared, opts.deep):
                _call_untracked(graph, callback, new_value, old_value)
        finally:
            old_value = new_value
            old_compared = new_compared
            first_run = False

    runner.__name__ = f"watch_{getattr(callback, '__name__', 'callback')}"
    effect = Effect(runner, graph=graph)
    effect.run()
    return effect.stop


def watch_multiple(
    sources: Sequence[Ref[Any]],
    converter: Callable[[list[Any]], R] | None,
    callback: Callable[[R, R], None],
    *,
    immediate: bool = False,
    deep: bool = False,
    options: WatchOptions | None = None,
) -> StopHandle:
    """Watch several Refs at once; fire when any of them changes.

    converter turns the list of current values into whatever the callback
    should receive (a tuple when converter is None). It is called once for
    the new values and once for the old ones on every firing.

    Usage:
        a, b = ref(1), ref(2)
        seen = []

        watch_multiple(
            [a, b],
            lambda values: {"a": values[0], "b": values[1]},
            lambda new, old: seen.append((new, old)),
            immediate=True,
        )
        # seen == [({"a": 1, "b": 2}, {"a": UNSET, "b": UNSET})]

        a.set(5)
        # seen[-1] == ({"a": 5, "b": 2}, {"a": 1, "b": 2})
    """
    opts = _resolve(options, immediate, deep)
    sources = list(sources)
    convert = converter if converter is not None else tuple
    graph = sources[0].graph if sources else get_graph()
    old_values: list[Any] = [UNSET] * len(sources)
    new_values: list[Any] = [UNSET] * len(sources)
    old_compared: list[Any] = [UNSET] * len(sources)
    new_compared: list[Any] = [UNSET] * len(sources)
    first_run = True

    def runner() -> None:
        nonlocal first_run
        changed = False
        for i, source in enumerate(sources):
            value = source.get()
            new_values[i] = value
            new_compared[i] = snapshot(value) if opts.deep else value
            if _differs(old_compared[i], new_compared[i], opts.deep):
                changed = True
        try:
            if (changed and not first_run) or (first_run and opts.immediate):
                _call_untracked(graph, callback, convert(list(new_values)), convert(list(old_values)))
        finally:
            old_values[:] = new_values
            old_compared[:] = new_compared
            first_run = False

    runner.__name__ = f"watch_multiple_{getattr(callback, '__name__', 'callback')}"
    effect = Effect(runner, graph=graph)
    effect.run()
    return effect.stop
