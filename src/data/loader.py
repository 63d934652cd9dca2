"""
Data loading system for the client.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field

STATIC_DIR = Path(__file__).resolve().parent / "static"


class ItemType(str, Enum):
    CONSUMABLE = "consumable"
    WEAPON = "weapon"
    ARMOR = "armor"


class Item(BaseModel):
    """Stat changes an item applies when used or equipped."""

    model_config = ConfigDict(populate_by_name=True)

    type: ItemType
    health: int = 0
    health_total: int = Field(0, alias="healthTotal")
    attack: int = 0
    defense: int = 0
    line_of_sight: int = Field(0, alias="lineOfSight")
    speed: int = 0


class DataLoader:
    """Handles loading game data from JSON files."""

    def __init__(self, data_dir: Union[str, Path] = STATIC_DIR):
        self.data_dir = Path(data_dir)
        self._cache: Dict[str, Any] = {}

    def load_json(self, filename: str) -> Dict[str, Any]:
        """Load data from a JSON file."""
        if f"json_{filename}" in self._cache:
            return self._cache[f"json_{filename}"]

        filepath = self.data_dir / f"{filename}.json"
        if not filepath.exists():
            raise FileNotFoundError(f"Data file not found: {filepath}")

        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        self._cache[f"json_{filename}"] = data
        return data

    def get_item_catalog(self) -> Dict[str, Item]:
        """Get every known item, keyed by the name the server uses."""
        if "items" not in self._cache:
            try:
                items_data = self.load_json("items")
            except FileNotFoundError:
                items_data = {}
            self._cache["items"] = {
                name: Item.model_validate(data) for name, data in items_data.items()
            }
        return self._cache["items"]


# Global data loader instance
DATA_LOADER = DataLoader()
