"""Shared fixtures for reftrack tests."""

import pytest

from reftrack import DependencyGraph, set_graph


@pytest.fixture(autouse=True)
def graph():
    """Give every test its own default DependencyGraph."""
    fresh = DependencyGraph()
    previous = set_graph(fresh)
    yield fresh
    set_graph(previous)
