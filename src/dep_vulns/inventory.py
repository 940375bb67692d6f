"""Loading dependency inventories from JSON."""

import json
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from .errors import InventoryError
from .models import DependencyRef


def parse_inventory(data: Any) -> dict[str, list[DependencyRef]]:
    """Parse an inventory mapping of manager name to package files.

    Each manager maps to a list of package files (``{"deps": [...]}``) or,
    for hand-written inventories, directly to a list of dependencies.
    """
    if not isinstance(data, dict):
        raise InventoryError("Inventory must be a JSON object keyed by manager name")

    inventory: dict[str, list[DependencyRef]] = {}
    for manager, package_files in data.items():
        if not isinstance(package_files, list):
            raise InventoryError(f"Manager '{manager}' must map to a list")
        deps: list[DependencyRef] = []
        for item in package_files:
            if not isinstance(item, dict):
                raise InventoryError(f"Unexpected entry under '{manager}': {item!r}")
            raw_deps = item["deps"] if "deps" in item else [item]
            if raw_deps is None:
                raw_deps = []
            if not isinstance(raw_deps, list):
                raise InventoryError(f"'deps' under '{manager}' must be a list")
            for raw in raw_deps:
                try:
                    deps.append(DependencyRef.model_validate(raw))
                except ValidationError as e:
                    raise InventoryError(f"Invalid dependency under '{manager}': {e}") from e
        inventory[manager] = deps
    return inventory


def load_inventory(path: Union[str, Path]) -> dict[str, list[DependencyRef]]:
    """Read and parse an inventory JSON file."""
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise InventoryError(f"Cannot read inventory {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InventoryError(f"Inventory {path} is not valid JSON: {e}") from e
    return parse_inventory(data)
