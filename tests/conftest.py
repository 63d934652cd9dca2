"""
Pytest configuration and shared fixtures for the client tests.
"""

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.protocol import parse_batch
from data.loader import DATA_LOADER
from world.state import World
from ui.renderer import Renderer


class RecordingSink:
    """Span sink that keeps every run, row by row."""

    def __init__(self):
        self.rows = [[]]
        self.resets = 0
        self.presented = 0
        self.started = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def reset(self):
        self.rows = [[]]
        self.resets += 1

    def append(self, text, tint=None):
        self.rows[-1].append((text, tint))

    def end_row(self):
        self.rows.append([])

    def present(self):
        self.presented += 1

    @property
    def finished_rows(self):
        """Rows that were terminated with end_row."""
        return self.rows[:-1]

    @property
    def lines(self):
        return ["".join(text for text, _ in row) for row in self.finished_rows]


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Stands in for loop.call_later; timers fire only when asked to."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self):
        timer = self.active[0]
        timer.fired = True
        timer.callback()
        return timer


def apply(world, *events):
    """Apply raw event dicts to a world."""
    world.apply_batch(parse_batch(list(events)))
    return world


@pytest.fixture
def world():
    """Create a fresh World for testing."""
    return World()


@pytest.fixture
def room_world(world):
    """A world with one 7x7 room, the player at its centre and a monster next to it."""
    return apply(
        world,
        {"action": "setId", "id": 1},
        {
            "action": "setLevel",
            "rects": [{"x1": -3, "y1": -3, "x2": 3, "y2": 3}],
            "ladder": {"x": 2, "y": 2},
        },
        {
            "action": "setStats",
            "health": 10,
            "healthTotal": 10,
            "attack": 5,
            "defense": 0,
            "speed": 0,
            "lineOfSight": 5,
        },
        {"action": "create", "id": 1, "type": "player", "rune": "@", "pos": {"x": 0, "y": 0}},
        {"action": "create", "id": 7, "type": "monster", "rune": "m", "pos": {"x": 1, "y": 0}},
    )


@pytest.fixture
def renderer():
    """A renderer with a small, odd-sized grid."""
    return Renderer(rows=11, cols=21)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def item_catalog():
    """Get the shared item catalog."""
    return DATA_LOADER.get_item_catalog()
