"""
Wire protocol between the client and the game server.

Inbound: the server sends JSON arrays of events, each tagged by "action".
Outbound: the client sends one JSON object per player intent.
"""

import json
import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainValidator,
    TypeAdapter,
    ValidationError,
)

from core.spatial import Rect

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "right", "down", "left")


class EntityKind(str, Enum):
    """Every kind of object the server can place on the map."""

    PLAYER = "player"
    MONSTER = "monster"
    PILE = "pile"


def _to_point(value: Any) -> Any:
    if isinstance(value, dict):
        return (value.get("x"), value.get("y"))
    return value


# Server positions arrive as {"x": .., "y": ..}; locally they are plain tuples.
WirePoint = Annotated[Tuple[int, int], BeforeValidator(_to_point)]


def _to_rect(value: Any) -> Rect:
    if isinstance(value, Rect):
        return value
    try:
        return Rect(int(value["x1"]), int(value["y1"]), int(value["x2"]), int(value["y2"]))
    except (KeyError, TypeError) as e:
        raise ValueError(f"invalid room rectangle: {value!r}") from e


WireRect = Annotated[Rect, PlainValidator(_to_rect)]


class Stats(BaseModel):
    """Stats of the controlled player, as last reported by the server."""

    model_config = ConfigDict(populate_by_name=True)

    health: int = 1
    health_total: int = Field(1, alias="healthTotal")
    attack: int = 0
    defense: int = 0
    speed: int = 0
    line_of_sight: int = Field(0, alias="lineOfSight")


class SetId(BaseModel):
    action: Literal["setId"]
    id: int


class SetLevel(BaseModel):
    action: Literal["setLevel"]
    rects: List[WireRect] = []
    ladder: Optional[WirePoint] = None


class Create(BaseModel):
    action: Literal["create"]
    id: int
    type: EntityKind
    pos: WirePoint
    rune: str = "@"


class SetPosition(BaseModel):
    action: Literal["setPosition"]
    id: int
    pos: WirePoint


class SetStats(Stats):
    action: Literal["setStats"]

    def to_stats(self) -> Stats:
        return Stats(**self.model_dump(exclude={"action"}))


class Remove(BaseModel):
    action: Literal["remove"]
    id: int


class SetInventory(BaseModel):
    action: Literal["setInventory"]
    item: str
    amount: Optional[int] = 0


Event = Annotated[
    Union[SetId, SetLevel, Create, SetPosition, SetStats, Remove, SetInventory],
    Field(discriminator="action"),
]

EVENT_ADAPTER = TypeAdapter(Event)


def parse_event(data: Any) -> Optional[Event]:
    """Validate a single decoded event, returning None if it is malformed."""
    try:
        return EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        logger.warning("Ignoring event %r: %s", data, e.errors(include_url=False))
        return None


def parse_batch(raw: Union[str, bytes, List[Any]]) -> List[Event]:
    """Decode one server message into its events, in arrival order.

    Malformed or unknown events are logged and dropped; the rest of the
    batch is still applied.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring undecodable message: %s", e)
            return []

    if not isinstance(raw, list):
        logger.warning("Ignoring message that is not an event list: %r", raw)
        return []

    events = []
    for item in raw:
        event = parse_event(item)
        if event is not None:
            events.append(event)
    return events


def move_intent(direction: str) -> Dict[str, str]:
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown direction: {direction}")
    return {"action": "move", "dir": direction}


def pickup_intent() -> Dict[str, str]:
    return {"action": "pickup"}


def use_intent(item: str) -> Dict[str, str]:
    return {"action": "use", "item": item}


def drop_intent(item: str) -> Dict[str, str]:
    return {"action": "drop", "item": item}


def encode_intent(intent: Dict[str, str]) -> str:
    return json.dumps(intent)
