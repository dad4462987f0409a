"""Inventory service factory.

Provides get_inventory() / set_inventory() to swap implementations. The
in-memory inventory is the default for development and tests.
"""

from ordering.inventory.fake_adapter import InMemoryInventory
from ordering.inventory.port import InventoryService

_current_inventory: InventoryService | None = None


def get_inventory() -> InventoryService:
    """Return the current inventory service. Defaults to InMemoryInventory."""
    global _current_inventory
    if _current_inventory is None:
        _current_inventory = InMemoryInventory()
    return _current_inventory


def set_inventory(inventory: InventoryService) -> None:
    """Override the active inventory service (useful for tests)."""
    global _current_inventory
    _current_inventory = inventory


def reset_inventory() -> None:
    global _current_inventory
    _current_inventory = None
