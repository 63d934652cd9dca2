"""
Local mirror of the server-side world.
The server is authoritative; this state only changes by applying its events.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from core.protocol import (
    Create,
    EntityKind,
    Event,
    Remove,
    SetId,
    SetInventory,
    SetLevel,
    SetPosition,
    SetStats,
    Stats,
)
from core.spatial import Point, SpatialIndex
from world.fov import is_visible, reveal

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Entity:
    """An object on the map as last reported by the server."""

    eid: int
    kind: EntityKind
    pos: Point
    rune: str = "@"


class World:
    """Rooms, entities, stats, inventory and explored cells of the current level."""

    def __init__(self):
        self.player_id: Optional[int] = None
        self.index = SpatialIndex()
        self.ladder: Optional[Point] = None
        self.entities: Dict[int, Entity] = {}
        # Cells the controlled player has seen since the last level change
        self.seen: Set[Point] = set()
        self.stats = Stats()
        self.inventory: Dict[str, int] = {}

    @property
    def player(self) -> Optional[Entity]:
        """The entity controlled by this client, if it exists yet."""
        if self.player_id is None:
            return None
        return self.entities.get(self.player_id)

    def entities_at(self, point: Point) -> List[Entity]:
        """Get all entities at a specific position, in arrival order."""
        return [entity for entity in self.entities.values() if entity.pos == point]

    def in_view(self, point: Point) -> bool:
        """Check if any player currently has line of sight to a cell."""
        radius = self.stats.line_of_sight
        return any(
            entity.kind is EntityKind.PLAYER
            and is_visible(self.index, entity.pos, point, radius)
            for entity in self.entities.values()
        )

    def _reveal(self, origin: Point):
        added = reveal(self.index, self.seen, origin, self.stats.line_of_sight)
        if added:
            logger.debug("Revealed %d cells around %s", added, origin)

    def apply_batch(self, events: Iterable[Event]):
        """Apply a batch of events strictly in arrival order."""
        for event in events:
            self.apply(event)

    def apply(self, event: Event):
        """Apply a single server event to the local state."""
        if isinstance(event, SetId):
            self.player_id = event.id
        elif isinstance(event, SetLevel):
            self.index = SpatialIndex(event.rects)
            self.ladder = event.ladder
            self.seen = set()
            # Only the controlled player survives; its next position update re-seeds the memory.
            self.entities = {
                eid: entity
                for eid, entity in self.entities.items()
                if eid == self.player_id
            }
        elif isinstance(event, Create):
            self.entities[event.id] = Entity(event.id, event.type, event.pos, event.rune)
            if event.type is EntityKind.PLAYER:
                self._reveal(event.pos)
        elif isinstance(event, SetPosition):
            entity = self.entities.get(event.id)
            if entity is None:
                logger.warning("Position update for unknown entity %s", event.id)
                return
            entity.pos = event.pos
            if event.id == self.player_id:
                self._reveal(event.pos)
        elif isinstance(event, SetStats):
            self.stats = event.to_stats()
            # A changed sight radius takes effect without waiting for a move.
            player = self.player
            if player is not None:
                self._reveal(player.pos)
        elif isinstance(event, Remove):
            if self.entities.pop(event.id, None) is None:
                logger.warning("Removal of unknown entity %s", event.id)
        elif isinstance(event, SetInventory):
            if event.amount:
                self.inventory[event.item] = event.amount
            else:
                self.inventory.pop(event.item, None)
        else:
            logger.warning("Unhandled event: %r", event)
