"""
Pytest configuration file for lazyflow tests.

This file ensures that the repository root is in the Python path so that test
files can import the lazyflow package without installing it, and provides
shared fixtures.
"""

import sys
from pathlib import Path

# Add the repository root to the Python path
root_dir = Path(__file__).parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

import pytest

from lazyflow.utils import clear_performance_metrics


class CountingSource:
    """A one-shot generator that counts how many values it produced."""

    def __init__(self, values):
        self.produced = 0
        self._values = list(values)
        self.generator = self._generate()

    def _generate(self):
        for value in self._values:
            self.produced += 1
            yield value


@pytest.fixture
def counting_source():
    """Factory fixture: counting_source([1, 2, 3]) returns a fresh CountingSource."""
    return CountingSource


@pytest.fixture
def tree():
    """A small nested structure: dicts have children under 'children'."""
    return [
        {"name": "root", "children": [
            {"name": "a", "children": [
                {"name": "a1", "children": []},
                {"name": "a2"},
            ]},
            {"name": "b"},
        ]},
        {"name": "solo"},
    ]


@pytest.fixture(autouse=True)
def reset_performance_metrics():
    """Every test starts with an empty metrics registry."""
    clear_performance_metrics()
    yield
    clear_performance_metrics()
