"""
Output targets for the renderer.

The renderer only ever emits runs of equally tinted text and row breaks;
a sink decides how those become terminal output.
"""

from enum import Enum
from typing import Dict, Optional, Protocol

from rich.console import Console
from rich.live import Live
from rich.text import Text


class Tint(str, Enum):
    """Color classes used by the renderer. Styles come from the palette."""

    REMEMBERED = "remembered"
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    BLUE = "blue"
    ARROW = "arrow"
    CURSOR = "cursor"


class SpanSink(Protocol):
    def reset(self) -> None: ...

    def append(self, text: str, tint: Optional[Tint] = None) -> None: ...

    def end_row(self) -> None: ...

    def present(self) -> None: ...


class RichSpanSink:
    """Builds a rich Text per frame and shows it on a full-screen Live display."""

    def __init__(self, console: Console, palette: Dict[str, str], cell_width: int = 1):
        self.console = console
        self.palette = palette
        # Terminal columns per grid cell; 2 gives roughly square cells
        self.cell_width = max(1, cell_width)
        self.text = Text()
        self.live: Optional[Live] = None

    def start(self):
        """Switch to the alternate screen."""
        if self.live is None:
            self.live = Live(
                console=self.console,
                screen=True,
                auto_refresh=False,
                vertical_overflow="crop",
            )
            self.live.start()

    def stop(self):
        """Leave the alternate screen."""
        if self.live is not None:
            self.live.stop()
            self.live = None

    def reset(self):
        self.text = Text(no_wrap=True, overflow="crop")

    def append(self, text: str, tint: Optional[Tint] = None):
        if not text:
            return
        if self.cell_width > 1:
            text = "".join(char.ljust(self.cell_width) for char in text)
        style = self.palette.get(tint.value) if tint is not None else None
        self.text.append(text, style=style)

    def end_row(self):
        self.text.append("\n")

    def present(self):
        if self.text.plain.endswith("\n"):
            self.text.right_crop(1)
        if self.live is not None:
            self.live.update(self.text, refresh=True)
        else:
            self.console.print(self.text)
