"""
Character-grid rendering of the local world state.
"""

import math
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np

from core.protocol import EntityKind, Stats
from core.spatial import Point
from ui.grid import ProbeSurface, negotiate
from ui.sink import SpanSink, Tint

if TYPE_CHECKING:
    from data.loader import Item
    from world.state import World

Glyph = Tuple[str, Optional[Tint]]

KIND_TINTS: Dict[EntityKind, Tint] = {
    EntityKind.PLAYER: Tint.BLUE,
    EntityKind.MONSTER: Tint.RED,
    EntityKind.PILE: Tint.YELLOW,
}

LADDER_CHAR = ">"
FLOOR_CHAR = "."
WALL_CHAR = "#"
BLANK_CHAR = " "
HEALTH_CHAR = "="

# (label, Stats attribute) in table order, three per row
MENU_STATS = (
    ("Health", "health"),
    ("Attack", "attack"),
    ("Sight", "line_of_sight"),
    ("Max Health", "health_total"),
    ("Defense", "defense"),
    ("Speed", "speed"),
)


def cell_glyph(world: "World", point: Point) -> Glyph:
    """Decide what to draw on one world cell."""
    if point not in world.seen:
        return BLANK_CHAR, None

    visible = world.in_view(point)
    terrain_tint = None if visible else Tint.REMEMBERED

    if point == world.ladder:
        return LADDER_CHAR, terrain_tint

    # Remembered cells show terrain only; occupants are drawn while in view.
    for entity in world.entities_at(point):
        if entity.eid == world.player_id or visible:
            return entity.rune, KIND_TINTS[entity.kind]

    if world.index.is_free(point):
        return FLOOR_CHAR, terrain_tint
    if world.index.is_wall(point):
        return WALL_CHAR, terrain_tint
    return BLANK_CHAR, None


def coalesce_row(glyphs: Sequence[str], tints: Sequence[Optional[Tint]]) -> List[Glyph]:
    """Merge consecutive cells of one row that share a tint into single runs."""
    if len(tints) == 0:
        return []

    tints = np.asarray(tints, dtype=object)
    starts = np.concatenate(([0], np.flatnonzero(tints[1:] != tints[:-1]) + 1))
    ends = np.append(starts[1:], len(tints))
    return [("".join(glyphs[s:e]), tints[s]) for s, e in zip(starts.tolist(), ends.tolist())]


def health_cells(stats: Stats, width: int) -> int:
    """Number of filled cells of a health bar of the given width."""
    if stats.health_total <= 0:
        return 0
    filled = math.floor(stats.health / stats.health_total * width + 0.5)
    return max(0, min(width, filled))


class Renderer:
    """Renders the world, or the inventory menu, into a span sink."""

    def __init__(self, rows: int = 25, cols: int = 80):
        self.rows = rows
        self.cols = cols

        # Inventory menu state
        self.menu_open = False
        self.menu_cursor = 0
        self.menu_offset = 0
        self.menu_selected: Optional[str] = None

    def update_size(self, surface: ProbeSurface) -> Tuple[int, int]:
        """Re-discover the grid size; call whenever the display is resized."""
        self.rows, self.cols = negotiate(surface)
        return self.rows, self.cols

    def toggle_menu(self):
        if self.menu_open:
            self.menu_open = False
        else:
            self.menu_open = True
            self.menu_cursor = 0
            self.menu_offset = 0

    def move_cursor(self, delta: int):
        self.menu_cursor += delta

    def viewport_origin(self, world: "World") -> Point:
        """World coordinate shown in the top-left grid cell."""
        player = world.player
        px, py = player.pos if player is not None else (0, 0)
        return px - (self.cols >> 1), py - (self.rows >> 1)

    def render(self, world: "World", sink: SpanSink, items: Optional[Dict[str, "Item"]] = None):
        """Render the current state. The first row is always the health bar."""
        sink.reset()
        self._render_health(world.stats, sink)
        if self.menu_open:
            self._render_menu(world, sink, items or {})
        else:
            self._render_map(world, sink)
        sink.present()

    def render_notice(self, sink: SpanSink, message: str):
        """Replace the screen with a single message."""
        sink.reset()
        sink.append(message)
        sink.end_row()
        sink.present()

    def _render_health(self, stats: Stats, sink: SpanSink):
        filled = health_cells(stats, self.cols)
        sink.append(HEALTH_CHAR * filled, Tint.RED)
        sink.append(HEALTH_CHAR * (self.cols - filled), Tint.REMEMBERED)
        sink.end_row()

    def _render_map(self, world: "World", sink: SpanSink):
        x0, y0 = self.viewport_origin(world)
        height = max(0, self.rows - 1)

        glyphs = np.full((height, self.cols), BLANK_CHAR, dtype=object)
        tints = np.full((height, self.cols), None, dtype=object)
        for row in range(height):
            y = y0 + row + 1
            for col in range(self.cols):
                glyphs[row, col], tints[row, col] = cell_glyph(world, (x0 + col, y))

        for row in range(height):
            for text, tint in coalesce_row(glyphs[row].tolist(), tints[row]):
                sink.append(text, tint)
            sink.end_row()

    def sync_menu(self, world: "World") -> List[Tuple[str, int]]:
        """Clamp cursor and scroll offset to the inventory and update the selection."""
        entries = sorted(world.inventory.items())
        list_rows = self.rows - 4

        self.menu_cursor = max(0, min(self.menu_cursor, len(entries) - 1))
        if self.menu_offset < self.menu_cursor - list_rows + 1:
            self.menu_offset = self.menu_cursor - list_rows + 1
        if self.menu_offset > self.menu_cursor:
            self.menu_offset = self.menu_cursor

        self.menu_selected = entries[self.menu_cursor][0] if entries else None
        return entries

    def _render_menu(self, world: "World", sink: SpanSink, items: Dict[str, "Item"]):
        entries = self.sync_menu(world)
        self._render_table(world.stats, items.get(self.menu_selected), sink)
        sink.end_row()

        for i in range(self.rows - 4):
            index = i + self.menu_offset
            if index < len(entries):
                name, count = entries[index]
                line = f" {count:>2} {name}".ljust(self.cols)[: self.cols]
                sink.append(line, Tint.CURSOR if index == self.menu_cursor else None)
            sink.end_row()

    def _render_table(self, stats: Stats, item: Optional["Item"], sink: SpanSink):
        """Current stats side by side with what the selected item would change."""
        group = self.cols // 3

        rows = []
        for label, key in MENU_STATS:
            delta = getattr(item, key) if item is not None else 0
            rows.append((label, str(getattr(stats, key)), str(delta) if delta else "", delta))

        l1 = max(len(row[0]) for row in rows)
        l2 = max(len(row[1]) for row in rows)
        l3 = max(len(row[2]) for row in rows)
        delta_width = l3 + 3 if l3 else 0

        if (l1 + 2) + l2 + delta_width + 2 > group:
            l1 = max(0, group - (2 + l2 + delta_width + 2))

        for i, (label, value, delta_text, delta) in enumerate(rows):
            sink.append((label[:l1] + ":").ljust(l1 + 2))
            sink.append(value.rjust(l2))
            width = (l1 + 2) + l2
            if delta:
                sink.append(" → ", Tint.ARROW)
                sink.append(delta_text.rjust(l3), Tint.RED if delta < 0 else Tint.GREEN)
                width += 3 + l3
            sink.append(" " * (group - width))
            if (i + 1) % 3 == 0:
                sink.end_row()
