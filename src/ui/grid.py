"""
Grid size discovery.

The number of rows and columns that fit the display is found by writing
probes of growing size and asking the surface whether they overflow.
"""

from typing import Callable, Protocol, Tuple

from rich.console import Console
from rich.text import Text


class ProbeSurface(Protocol):
    def probe_rows(self, rows: int) -> int: ...

    def probe_cols(self, cols: int) -> int: ...


def bin_search(key: Callable[[int], int], limit: int = 1 << 16) -> int:
    """
    Find the largest value for which key does not report overflow.

    Args:
        key: Returns a positive number when the probe of the given size overflows.
        limit: Upper bound for the doubling phase, for surfaces that never overflow.

    Returns:
        The largest non-overflowing value (at least 1).
    """
    high = 2
    while key(high) <= 0:
        if high >= limit:
            return limit
        high <<= 1

    low = high >> 1
    while high - low > 1:
        mid = (low + high + 1) // 2
        if key(mid) > 0:
            high = mid
        else:
            low = mid
    return low


def negotiate(surface: ProbeSurface) -> Tuple[int, int]:
    """Return the (rows, cols) grid that fits the surface."""
    rows = bin_search(surface.probe_rows)
    cols = bin_search(surface.probe_cols)
    return rows, cols


class ConsoleSurface:
    """Probes a rich console by rendering test content with its own options."""

    def __init__(self, console: Console, cell_width: int = 1):
        self.console = console
        self.cell_width = max(1, cell_width)

    def probe_rows(self, rows: int) -> int:
        probe = Text("\n".join(["x"] * rows))
        lines = self.console.render_lines(probe, pad=False)
        return len(lines) - self.console.size.height

    def probe_cols(self, cols: int) -> int:
        probe = Text("x" * (cols * self.cell_width), overflow="fold")
        lines = self.console.render_lines(probe, pad=False)
        return len(lines) - 1
