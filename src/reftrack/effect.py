"""Effects — re-runnable functions whose Ref reads are tracked automatically.

While an Effect runs it occupies its graph's active slot, so every Ref.get()
made by its body records an edge back to it. A later write to one of those
Refs re-runs the effect synchronously.

Edges accumulate: run() does not drop the edges recorded by earlier runs,
so an effect that read `a` once stays subscribed to `a` even after it stops
reading it. Only stop() (or DependencyGraph.forget on the target) removes
edges.
"""

from __future__ import annotations

import logging
from typing import Callable

from reftrack._tracking import DependencyGraph, get_graph

logger = logging.getLogger("reftrack.effect")

StopHandle = Callable[[], None]

IDLE = "idle"
RUNNING = "running"
STOPPED = "stopped"


class Effect:
    """A stoppable unit of work that re-runs when the Refs it read change."""

    __slots__ = ("_fn", "_graph", "_state", "__weakref__")

    def __init__(self, fn: Callable[[], object], *, graph: DependencyGraph | None = None) -> None:
        self._fn = fn
        self._graph = graph if graph is not None else get_graph()
        self._state = IDLE

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def state(self) -> str:
        """One of "idle", "running" or "stopped"."""
        return self._state

    @property
    def active(self) -> bool:
        return self._state != STOPPED

    @property
    def stopped(self) -> bool:
        return self._state == STOPPED

    def run(self) -> None:
        """Execute the body with this effect as the active tracker.

        A stopped effect does nothing. Exceptions from the body propagate
        after the active slot has been restored; the effect stays runnable.
        """
        if self._state == STOPPED:
            return

        previous_state = self._state
        self._state = RUNNING
        token = self._graph.set_active(self)
        try:
            self._fn()
        except Exception:
            logger.debug("Effect %r raised", self, exc_info=True)
            raise
        finally:
            self._graph.reset_active(token)
            # stop() from inside the body wins.
            if self._state == RUNNING:
                self._state = previous_state

    def stop(self) -> None:
        """Stop for good and unsubscribe from every target. Idempotent."""
        if self._state == STOPPED:
            return
        self._state = STOPPED
        self._graph.cleanup(self)

    def __repr__(self) -> str:
        name = getattr(self._fn, "__name__", type(self._fn).__name__)
        return f"Effect({name}, {self._state})"


def create_effect(fn: Callable[[], object], *, graph: DependencyGraph | None = None) -> Effect:
    """Build an Effect without running it. Call .run() to start tracking."""
    return Effect(fn, graph=graph)


def watch_effect(
    fn: Callable[[], object],
    *,
    immediate: bool = True,
    graph: DependencyGraph | None = None,
) -> StopHandle:
    """Run fn now, then again whenever a Ref it read changes.

    Returns the stop handle. With immediate=False nothing runs and no
    dependencies exist until someone else triggers the effect, so the
    returned handle is only useful for teardown.

    Usage:
        count = ref(0)
        log = []

        stop = watch_effect(lambda: log.append(count.get()))
        # log == [0]

        count.set(1)
        # log == [0, 1]

        stop()
        count.set(2)
        # log == [0, 1]
    """
    effect = Effect(fn, graph=graph)
    if immediate:
        effect.run()
    return effect.stop
