"""
Input handling system for the client.
Reads raw keys and SGR mouse reports from the terminal.
"""

from collections import deque
from typing import Any, Deque, Dict, List, Optional
from dataclasses import dataclass
import os
import re
import sys
import select
import termios


from config import CONFIG

# SGR mouse report, arrow/CSI sequence, SS3 sequence, or a single character
TOKEN_RE = re.compile(
    r"\x1b\[<\d+;\d+;\d+[Mm]|\x1b\[[0-9;]*[A-Za-z~]|\x1bO[A-Za-z]|.", re.DOTALL
)
MOUSE_RE = re.compile(r"\x1b\[<(\d+);(\d+);(\d+)([Mm])")

MOUSE_MOTION = 32
MOUSE_WHEEL = 64

ENABLE_MOUSE = "\x1b[?1002h\x1b[?1006h"
DISABLE_MOUSE = "\x1b[?1002l\x1b[?1006l"


@dataclass
class InputEvent:
    """Represents an input event."""

    key: str
    action_type: str = ""
    direction: str = ""
    # Pointer events only
    phase: str = ""  # press, move, release
    button: int = 0
    x: int = 0
    y: int = 0


def tokenize(data: str) -> List[str]:
    """Split raw terminal input into individual keys and escape sequences."""
    return TOKEN_RE.findall(data)


def parse_mouse(key: str) -> Optional[InputEvent]:
    """Parse an SGR mouse report into a pointer event (0-based cell coordinates)."""
    match = MOUSE_RE.fullmatch(key)
    if not match:
        return None

    code, col, row, final = match.groups()
    code = int(code)
    if code & MOUSE_WHEEL:
        return None

    if final == "m":
        phase = "release"
    elif code & MOUSE_MOTION:
        phase = "move"
    else:
        phase = "press"

    return InputEvent(
        key=key,
        action_type="pointer",
        phase=phase,
        button=code & 3,
        x=int(col) - 1,
        y=int(row) - 1,
    )


class InputHandler:
    """Handles keyboard and mouse input for the client."""

    def __init__(self, controls: Optional[Dict[str, Any]] = None, enable_mouse: bool = True):
        if sys.stdin.isatty():
            self.stdin_fd = sys.stdin.fileno()
            self.old_settings = termios.tcgetattr(self.stdin_fd)
            self.is_tty = True
        else:
            self.stdin_fd = None
            self.old_settings = None
            self.is_tty = False

        self.enable_mouse = enable_mouse
        self.pending: Deque[InputEvent] = deque()

        # Load controls
        controls = CONFIG.controls if controls is None else controls
        self.movement_map: Dict[str, str] = controls.get("movement", {})
        self.action_map: Dict[str, str] = controls.get("actions", {})

    def setup_terminal(self):
        """Setup terminal for raw input."""
        if not self.is_tty:
            return
        new_settings = termios.tcgetattr(self.stdin_fd)
        new_settings[3] = new_settings[3] & ~(termios.ECHO | termios.ICANON)
        termios.tcsetattr(self.stdin_fd, termios.TCSADRAIN, new_settings)
        if self.enable_mouse:
            sys.stdout.write(ENABLE_MOUSE)
            sys.stdout.flush()

    def restore_terminal(self):
        """Restore terminal to original settings."""
        if not self.is_tty:
            return
        if self.enable_mouse:
            sys.stdout.write(DISABLE_MOUSE)
            sys.stdout.flush()
        termios.tcsetattr(self.stdin_fd, termios.TCSADRAIN, self.old_settings)

    def _map_key_to_event(self, key: str) -> Optional[InputEvent]:
        """Map a raw key to an InputEvent."""
        if not key:
            return None

        if key.startswith("\x1b[<"):
            return parse_mouse(key)

        # Check movement
        if key in self.movement_map:
            return InputEvent(
                key=key,
                action_type="move",
                direction=self.movement_map[key],
            )

        # Check actions
        if key in self.action_map:
            action = self.action_map[key]
            return InputEvent(key=key, action_type=action)

        return InputEvent(key=key, action_type="unknown")

    def feed(self, data: str):
        """Queue events for raw terminal input."""
        for key in tokenize(data):
            event = self._map_key_to_event(key)
            if event is not None:
                self.pending.append(event)

    def get_input_non_blocking(self) -> Optional[InputEvent]:
        """Get input without blocking execution."""
        if not self.pending and self.is_tty:
            ready, _, _ = select.select([self.stdin_fd], [], [], 0)
            if ready:
                data = os.read(self.stdin_fd, 1024)
                self.feed(data.decode("utf-8", errors="replace"))

        if self.pending:
            return self.pending.popleft()
        return None

    def __del__(self):
        """Cleanup when the handler is destroyed."""
        self.restore_terminal()
