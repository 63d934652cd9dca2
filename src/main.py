"""
Main entry point for the Laneya terminal client.
Connects to the game server via WebSocket.
"""

import sys
import os
import argparse
import asyncio
import logging
from typing import Callable, Optional

import websockets
import websockets.exceptions
from rich.console import Console

# Add the directory containing this file (src) to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config import CONFIG, ClientConfig
from core.protocol import (
    DIRECTIONS,
    drop_intent,
    encode_intent,
    move_intent,
    parse_batch,
    pickup_intent,
    use_intent,
)
from data.loader import DATA_LOADER
from input.dpad import ACTION_PAD_KEYS, DirectionalPad, PadBounds, Scheduler, TimerHandle
from input.handler import InputEvent, InputHandler
from ui.grid import ConsoleSurface
from ui.renderer import Renderer
from ui.sink import RichSpanSink
from world.state import World

logger = logging.getLogger(__name__)

MOVE_BUTTON = 0
ACTION_BUTTON = 2


def setup_logging(config: ClientConfig):
    """Send logs to a file; the terminal belongs to the renderer."""
    logging.basicConfig(
        filename=config.log_file,
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class ClientEngine:
    """Main engine for the client: transport, input and rendering around one World."""

    def __init__(
        self,
        config: ClientConfig = CONFIG,
        console: Optional[Console] = None,
        call_later: Scheduler = _call_later,
    ):
        self.config = config
        self.server_uri = config.server_uri
        self.websocket = None
        self.connected = False
        self.connection_lost = False
        self.running = True

        self.console = console or Console()
        self.input_handler = InputHandler(config.controls)
        self.renderer = Renderer()
        self.sink = RichSpanSink(self.console, config.palette, config.cell_width)
        self.surface = ConsoleSurface(self.console, config.cell_width)
        self._last_size = None

        # Local state that will be updated from server
        self.world = World()
        self.items = DATA_LOADER.get_item_catalog()
        self.outbox: asyncio.Queue = asyncio.Queue()

        # Pointer pads; bounds follow the map area on every resize
        bounds = self._map_bounds()
        self.move_pad = DirectionalPad(
            bounds,
            self.dispatch,
            call_later,
            config.repeat_delay,
            config.repeat_interval,
        )
        self.action_pad = DirectionalPad(
            bounds,
            self._dispatch_action_pad,
            call_later,
            config.repeat_delay,
            config.repeat_interval,
        )

    async def connect_to_server(self) -> bool:
        """Connect to the game server."""
        try:
            self.websocket = await websockets.connect(self.server_uri)
            self.connected = True
            logger.info("Connected to server at %s", self.server_uri)
            return True
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error("Failed to connect to %s: %s", self.server_uri, e)
            print(f"Failed to connect to server: {e}")
            return False

    async def listen_for_messages(self):
        """Apply every batch from the server until the connection ends."""
        try:
            async for message in self.websocket:
                self.handle_batch(message)
        except websockets.exceptions.ConnectionClosed as e:
            logger.error("Connection to server closed: %s", e)
        self.on_connection_lost()

    def handle_batch(self, message):
        """Apply one server message completely, then draw once."""
        if self.connection_lost:
            return
        self.world.apply_batch(parse_batch(message))
        self.redraw()

    def on_connection_lost(self):
        """The session is over; nothing is sent or drawn after this."""
        if self.connection_lost:
            return
        self.connected = False
        self.connection_lost = True
        self.move_pad.cancel()
        self.action_pad.cancel()
        logger.error("Connection lost")
        self.renderer.render_notice(self.sink, "Connection lost")

    def send(self, intent):
        """Queue an intent for the server."""
        if not self.connected:
            return
        logger.debug("Sending %s", intent)
        self.outbox.put_nowait(intent)

    async def send_loop(self):
        """Forward queued intents in order."""
        while self.connected:
            intent = await self.outbox.get()
            try:
                await self.websocket.send(encode_intent(intent))
            except websockets.exceptions.ConnectionClosed as e:
                logger.error("Send failed: %s", e)
                self.on_connection_lost()

    def redraw(self):
        self.renderer.render(self.world, self.sink, self.items)

    def dispatch(self, action: str):
        """Act on a direction or action from the keyboard or a pad."""
        if self.connection_lost:
            return

        renderer = self.renderer
        if renderer.menu_open:
            if action == "up":
                renderer.move_cursor(-1)
            elif action == "down":
                renderer.move_cursor(1)
            elif action == "right":
                if renderer.menu_selected:
                    self.send(drop_intent(renderer.menu_selected))
            elif action == "menu":
                renderer.toggle_menu()
            elif action == "confirm":
                if renderer.menu_selected:
                    self.send(use_intent(renderer.menu_selected))
            else:
                return
            self.redraw()
        else:
            if action in DIRECTIONS:
                self.send(move_intent(action))
            elif action == "menu":
                renderer.toggle_menu()
                self.redraw()
            elif action == "confirm":
                self.send(pickup_intent())

    def _dispatch_action_pad(self, direction: str):
        action = ACTION_PAD_KEYS.get(direction)
        if action:
            self.dispatch(action)

    def handle_input(self, event: InputEvent):
        if event.action_type == "move":
            self.dispatch(event.direction)
        elif event.action_type in ("menu", "confirm"):
            self.dispatch(event.action_type)
        elif event.action_type == "quit":
            self.running = False
        elif event.action_type == "pointer":
            self.handle_pointer(event)

    def handle_pointer(self, event: InputEvent):
        if event.button == MOVE_BUTTON:
            pad = self.move_pad
        elif event.button == ACTION_BUTTON:
            pad = self.action_pad
        else:
            return

        if event.phase == "press":
            pad.press(event.button, event.x, event.y)
        elif event.phase == "move":
            pad.move(event.button, event.x, event.y)
        elif event.phase == "release":
            pad.release(event.button)

    def _map_bounds(self) -> PadBounds:
        # Map rows start below the health bar; columns are terminal columns
        return PadBounds(
            left=0,
            top=1,
            width=self.renderer.cols * self.config.cell_width,
            height=self.renderer.rows - 1,
        )

    def check_resize(self):
        """Renegotiate the grid when the terminal size changes."""
        size = self.console.size
        if size == self._last_size:
            return
        self._last_size = size
        rows, cols = self.renderer.update_size(self.surface)
        logger.info("Grid is now %dx%d", cols, rows)
        bounds = self._map_bounds()
        self.move_pad.bounds = bounds
        self.action_pad.bounds = bounds
        if not self.connection_lost:
            self.redraw()

    async def game_loop(self):
        """Poll input and watch for resizes."""
        while self.connected and self.running:
            self.check_resize()

            event = self.input_handler.get_input_non_blocking()
            while event is not None and self.running:
                self.handle_input(event)
                event = self.input_handler.get_input_non_blocking()

            await asyncio.sleep(self.config.frame_delay)

    async def run(self) -> int:
        """Start the client. Returns the process exit code."""
        if not await self.connect_to_server():
            print("Could not connect to server. Exiting.")
            return 1

        self.sink.start()
        self.input_handler.setup_terminal()
        tasks = [
            asyncio.create_task(self.listen_for_messages()),
            asyncio.create_task(self.game_loop()),
            asyncio.create_task(self.send_loop()),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            # A loop that died with an error ends the client with that error
            for task in done:
                task.result()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.move_pad.cancel()
            self.action_pad.cancel()
            self.sink.stop()
            await self.shutdown()

        if self.connection_lost:
            print("Connection lost")
            return 1
        return 0

    async def shutdown(self):
        """Clean up resources."""
        self.connected = False
        if self.websocket:
            await self.websocket.close()
        self.input_handler.restore_terminal()


def main():
    """Entry point for the client."""
    parser = argparse.ArgumentParser(description="Laneya terminal client")
    parser.add_argument("--config", default="config.toml", help="Path to config file")
    parser.add_argument("--host", help="Server host:port (overrides config)")
    parser.add_argument("--game", help="Game id to join (overrides config)")
    parser.add_argument("--cell-width", type=int, help="Terminal columns per map cell")
    args = parser.parse_args()

    config = ClientConfig.load_from_toml(args.config) if args.config != "config.toml" else CONFIG
    if args.host:
        config.server_host = args.host
    if args.game:
        config.game_id = args.game
    if args.cell_width:
        config.cell_width = args.cell_width

    setup_logging(config)
    print(f"Starting {config.game_title} client...")

    engine = ClientEngine(config)
    try:
        code = asyncio.run(engine.run())
    except KeyboardInterrupt:
        print("\nShutting down client...")
        code = 0
    except Exception as e:
        logger.exception("Client crashed")
        print(f"An error occurred: {e}")
        print(f"See {config.log_file} for details.")
        code = 1
    finally:
        engine.input_handler.restore_terminal()
    sys.exit(code)


if __name__ == "__main__":
    main()
