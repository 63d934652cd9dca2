"""
Virtual directional pad driven by pointer gestures.

Pressing emits a direction at once; holding repeats it, first after a delay
and then at a fixed interval, until the pointer is released or cancelled.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

# What the action pad's directions stand for
ACTION_PAD_KEYS: Dict[str, Optional[str]] = {
    "up": None,
    "right": "confirm",
    "down": None,
    "left": "menu",
}


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


# Same shape as asyncio.AbstractEventLoop.call_later
Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


class PadState(Enum):
    IDLE = "idle"
    PRESSED = "pressed"  # waiting for the first repeat
    REPEATING = "repeating"


@dataclass
class PadBounds:
    """Screen rectangle covered by the pad."""

    left: float
    top: float
    width: float
    height: float


class DirectionalPad:
    """Turns one tracked pointer into a stream of up/right/down/left signals."""

    def __init__(
        self,
        bounds: PadBounds,
        handler: Callable[[str], None],
        call_later: Scheduler,
        initial_delay: float = 0.2,
        interval: float = 0.04,
    ):
        self.bounds = bounds
        self.handler = handler
        self.call_later = call_later
        self.initial_delay = initial_delay
        self.interval = interval

        self.state = PadState.IDLE
        self.pointer_id: Optional[int] = None
        self.pointer: Tuple[float, float] = (0.0, 0.0)
        self._timer: Optional[TimerHandle] = None

    def direction(self) -> str:
        """Direction of the tracked pointer relative to the pad centre."""
        b = self.bounds
        x = (self.pointer[0] - b.left) / max(b.width, 1) - 0.5
        y = (self.pointer[1] - b.top) / max(b.height, 1) - 0.5
        if abs(x) > abs(y):
            return "right" if x > 0 else "left"
        return "down" if y > 0 else "up"

    def press(self, pointer_id: int, x: float, y: float) -> bool:
        """Start tracking a pointer. Ignored while another one is held."""
        if self.state is not PadState.IDLE:
            return False

        self.pointer_id = pointer_id
        self.pointer = (x, y)
        self.state = PadState.PRESSED
        self._timer = self.call_later(self.initial_delay, self._repeat)
        self._emit()
        return True

    def move(self, pointer_id: int, x: float, y: float):
        if self.state is not PadState.IDLE and pointer_id == self.pointer_id:
            self.pointer = (x, y)

    def release(self, pointer_id: int):
        if self.state is not PadState.IDLE and pointer_id == self.pointer_id:
            self._stop()

    def cancel(self, pointer_id: Optional[int] = None):
        """Abort the gesture; without an id, abort whatever is held."""
        if self.state is PadState.IDLE:
            return
        if pointer_id is None or pointer_id == self.pointer_id:
            self._stop()

    def _stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.state = PadState.IDLE
        self.pointer_id = None

    def _repeat(self):
        if self.state is PadState.IDLE:
            return
        self.state = PadState.REPEATING
        self._timer = self.call_later(self.interval, self._repeat)
        self._emit()

    def _emit(self):
        direction = self.direction()
        logger.debug("Pad signal %s", direction)
        self.handler(direction)
