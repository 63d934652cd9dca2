"""
Tests for the client engine: batches in, intents out, input routing.
"""

import asyncio
import io
import json

import pytest
from rich.console import Console

from config import ClientConfig
from conftest import RecordingSink
from input.dpad import PadState
from input.handler import InputEvent
from main import ClientEngine


class FakeSocket:
    """Async-iterable websocket stand-in."""

    def __init__(self, messages=(), on_send=None):
        self.messages = list(messages)
        self.sent = []
        self.on_send = on_send
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message

    async def send(self, data):
        self.sent.append(data)
        if self.on_send:
            self.on_send(self)

    async def close(self):
        self.closed = True


LEVEL = [
    {"action": "setId", "id": 1},
    {"action": "setLevel", "rects": [{"x1": -3, "y1": -3, "x2": 3, "y2": 3}], "ladder": {"x": 2, "y": 2}},
    {"action": "setStats", "health": 10, "healthTotal": 10, "lineOfSight": 5},
    {"action": "create", "id": 1, "type": "player", "rune": "@", "pos": {"x": 0, "y": 0}},
    {"action": "setInventory", "item": "Bread", "amount": 2},
    {"action": "setInventory", "item": "Sword", "amount": 1},
]


@pytest.fixture
def engine(scheduler):
    console = Console(file=io.StringIO(), width=80, height=25)
    engine = ClientEngine(ClientConfig(), console=console, call_later=scheduler)
    engine.sink = RecordingSink()
    engine.connected = True
    return engine


def drain(engine):
    intents = []
    while not engine.outbox.empty():
        intents.append(engine.outbox.get_nowait())
    return intents


class TestBatches:
    def test_batch_is_applied_then_drawn_once(self, engine):
        engine.handle_batch(json.dumps(LEVEL))

        assert engine.world.player.pos == (0, 0)
        assert engine.world.inventory == {"Bread": 2, "Sword": 1}
        assert engine.sink.presented == 1

    def test_malformed_message(self, engine):
        engine.handle_batch("garbage")

        assert engine.world.player is None
        assert engine.sink.presented == 1

    def test_listen_until_closed(self, engine):
        """Test every message is applied and the end of the stream counts as a lost connection."""
        engine.websocket = FakeSocket(
            [json.dumps(LEVEL), json.dumps([{"action": "setPosition", "id": 1, "pos": {"x": 1, "y": 1}}])]
        )

        asyncio.run(engine.listen_for_messages())

        assert engine.world.player.pos == (1, 1)
        assert engine.connection_lost
        assert not engine.connected
        assert engine.sink.lines == ["Connection lost"]


class TestMapControls:
    """Test controls while the map is shown."""

    @pytest.mark.parametrize("direction", ["up", "right", "down", "left"])
    def test_move(self, engine, direction):
        engine.dispatch(direction)

        assert drain(engine) == [{"action": "move", "dir": direction}]

    def test_confirm_picks_up(self, engine):
        engine.dispatch("confirm")

        assert drain(engine) == [{"action": "pickup"}]

    def test_menu_opens(self, engine):
        engine.dispatch("menu")

        assert engine.renderer.menu_open
        assert engine.sink.presented == 1
        assert drain(engine) == []

    def test_nothing_sent_when_disconnected(self, engine):
        engine.connected = False
        engine.dispatch("up")

        assert drain(engine) == []


class TestMenuControls:
    """Test controls while the inventory menu is open."""

    @pytest.fixture
    def menu_engine(self, engine):
        engine.handle_batch(json.dumps(LEVEL))
        engine.dispatch("menu")
        return engine

    def test_use_selected(self, menu_engine):
        menu_engine.dispatch("confirm")

        assert drain(menu_engine) == [{"action": "use", "item": "Bread"}]

    def test_cursor_then_drop(self, menu_engine):
        menu_engine.dispatch("down")
        menu_engine.dispatch("right")

        assert drain(menu_engine) == [{"action": "drop", "item": "Sword"}]

    def test_cursor_does_not_leave_list(self, menu_engine):
        for _ in range(5):
            menu_engine.dispatch("down")
        menu_engine.dispatch("up")

        assert menu_engine.renderer.menu_selected == "Bread"

    def test_left_does_nothing(self, menu_engine):
        presented = menu_engine.sink.presented
        menu_engine.dispatch("left")

        assert drain(menu_engine) == []
        assert menu_engine.sink.presented == presented

    def test_menu_closes(self, menu_engine):
        menu_engine.dispatch("menu")

        assert not menu_engine.renderer.menu_open

    def test_empty_inventory_sends_nothing(self, engine):
        engine.dispatch("menu")
        engine.dispatch("confirm")
        engine.dispatch("right")

        assert drain(engine) == []


class TestInputRouting:
    """Test keyboard and pointer events reach the right place."""

    def test_keys(self, engine):
        engine.handle_input(InputEvent(key="d", action_type="move", direction="right"))
        engine.handle_input(InputEvent(key="e", action_type="confirm"))
        engine.handle_input(InputEvent(key="Q", action_type="quit"))

        assert drain(engine) == [{"action": "move", "dir": "right"}, {"action": "pickup"}]
        assert not engine.running

    def test_move_pad(self, engine, scheduler):
        """Test the primary button drives the movement pad with auto-repeat."""
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=0, x=79, y=12))
        scheduler.fire_next()
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="release", button=0, x=79, y=12))

        assert drain(engine) == [{"action": "move", "dir": "right"}] * 2
        assert engine.move_pad.state is PadState.IDLE

    def test_action_pad(self, engine):
        """Test the secondary button drives the action pad."""
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=2, x=0, y=12))
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="release", button=2, x=0, y=12))
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=2, x=79, y=12))

        assert engine.renderer.menu_open
        assert drain(engine) == []

    def test_action_pad_confirm(self, engine):
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=2, x=79, y=12))

        assert drain(engine) == [{"action": "pickup"}]

    def test_other_buttons_ignored(self, engine):
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=1, x=79, y=12))

        assert engine.move_pad.state is PadState.IDLE
        assert engine.action_pad.state is PadState.IDLE


class TestConnectionLoss:
    """Test behaviour once the server is gone."""

    def test_everything_stops(self, engine, scheduler):
        engine.handle_input(InputEvent(key="", action_type="pointer", phase="press", button=0, x=79, y=12))
        drain(engine)

        engine.on_connection_lost()
        engine.handle_batch(json.dumps(LEVEL))
        engine.dispatch("up")

        assert engine.move_pad.state is PadState.IDLE
        assert scheduler.active == []
        assert engine.world.player is None
        assert drain(engine) == []
        assert engine.sink.lines == ["Connection lost"]

    def test_send_loop(self, engine):
        """Test queued intents go out in order as JSON."""

        def stop_after_two(socket):
            if len(socket.sent) == 2:
                engine.connected = False

        engine.websocket = FakeSocket(on_send=stop_after_two)
        engine.dispatch("left")
        engine.dispatch("confirm")

        asyncio.run(engine.send_loop())

        assert [json.loads(data) for data in engine.websocket.sent] == [
            {"action": "move", "dir": "left"},
            {"action": "pickup"},
        ]


class TestResize:
    def test_resize_renegotiates(self, scheduler):
        console = Console(file=io.StringIO(), width=40, height=12)
        engine = ClientEngine(ClientConfig(cell_width=2), console=console, call_later=scheduler)
        engine.sink = RecordingSink()

        engine.check_resize()

        assert (engine.renderer.rows, engine.renderer.cols) == (12, 20)
        assert engine.move_pad.bounds.width == 40
        assert engine.action_pad.bounds.height == 11
        assert engine.sink.presented == 1

        engine.check_resize()
        assert engine.sink.presented == 1


class TestRun:
    """Test the client lifecycle around the three loops."""

    def connect_with(self, engine, socket):
        async def connect():
            engine.websocket = socket
            engine.connected = True
            return True

        engine.connect_to_server = connect

    def test_loop_error_ends_run(self, engine):
        """Test an error inside the receive loop surfaces from run() after cleanup."""
        socket = FakeSocket([json.dumps(LEVEL)])
        self.connect_with(engine, socket)

        def broken(events):
            raise RuntimeError("reducer bug")

        engine.world.apply_batch = broken

        with pytest.raises(RuntimeError, match="reducer bug"):
            asyncio.run(engine.run())

        assert socket.closed
        assert not engine.sink.started

    def test_connection_lost_exit_code(self, engine, capsys):
        """Test a server that hangs up ends the client with status 1."""
        socket = FakeSocket([json.dumps(LEVEL)])
        self.connect_with(engine, socket)

        assert asyncio.run(engine.run()) == 1
        assert engine.world.player.pos == (0, 0)
        assert socket.closed
        assert "Connection lost" in capsys.readouterr().out
