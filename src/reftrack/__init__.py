"""reftrack: fine-grained reactive refs, effects, watchers and stores for Python."""

from importlib.metadata import version as _version

__version__ = _version("reftrack")

from reftrack._tracking import DependencyGraph, get_graph, set_graph
from reftrack.ref import Ref, ref
from reftrack.effect import Effect, StopHandle, create_effect, watch_effect
from reftrack.watch import UNSET, WatchOptions, watch, watch_multiple
from reftrack.store import Store, create_store

__all__ = [
    "DependencyGraph",
    "get_graph",
    "set_graph",
    "Ref",
    "ref",
    "Effect",
    "StopHandle",
    "create_effect",
    "watch_effect",
    "UNSET",
    "WatchOptions",
    "watch",
    "watch_multiple",
    "Store",
    "create_store",
]
