"""
Configuration settings for the terminal client.
"""

from pydantic import BaseModel, ConfigDict
from typing import Dict, Any
import toml
import os


DEFAULT_PALETTE: Dict[str, str] = {
    "remembered": "grey35",
    "red": "red",
    "green": "green",
    "yellow": "yellow",
    "blue": "bright_blue",
    "arrow": "grey62",
    "cursor": "reverse",
}

DEFAULT_CONTROLS: Dict[str, Any] = {
    "movement": {
        "w": "up",
        "a": "left",
        "s": "down",
        "d": "right",
        "\x1b[A": "up",
        "\x1b[B": "down",
        "\x1b[C": "right",
        "\x1b[D": "left",
    },
    "actions": {
        "q": "menu",
        "e": "confirm",
        "\r": "confirm",
        "\n": "confirm",
        "Q": "quit",
    },
}


class ClientConfig(BaseModel):
    """Configuration settings for the client."""

    # Client Metadata
    game_title: str = "Laneya"
    version: str = "0.1.0"

    # Connection settings
    server_host: str = "localhost:8000"
    game_id: str = "default"
    secure: bool = False

    # Display settings
    cell_width: int = 1  # Terminal columns per map cell
    frame_delay: float = 0.016  # Seconds between input polls

    # Pointer pad auto-repeat (seconds)
    repeat_delay: float = 0.2
    repeat_interval: float = 0.04

    # Logging
    log_file: str = "client_debug.log"
    log_level: str = "INFO"

    # Styles per tint, in rich style syntax
    palette: Dict[str, str] = dict(DEFAULT_PALETTE)

    # Controls
    controls: Dict[str, Any] = dict(DEFAULT_CONTROLS)

    model_config = ConfigDict(extra="allow")

    @property
    def server_uri(self) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.server_host}/ws/{self.game_id}"

    @classmethod
    def load_from_toml(cls, path: str = "config.toml") -> "ClientConfig":
        """Load configuration from a TOML file."""
        if not os.path.exists(path):
            print(f"Warning: Config file {path} not found. Using defaults.")
            return cls()

        try:
            with open(path, "r") as f:
                data = toml.load(f)

            # Flatten client settings for Pydantic
            config = cls(**data.get("client", {}))

            # Tables override the defaults key by key
            config.palette = {**DEFAULT_PALETTE, **data.get("palette", {})}
            controls = data.get("controls", {})
            config.controls = {
                "movement": {
                    **DEFAULT_CONTROLS["movement"],
                    **controls.get("movement", {}),
                },
                "actions": {**DEFAULT_CONTROLS["actions"], **controls.get("actions", {})},
            }

            return config
        except Exception as e:
            print(f"Error loading config: {e}")
            return cls()


# Global config instance
CONFIG = ClientConfig.load_from_toml()
