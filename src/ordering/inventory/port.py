"""Inventory port (abstract interface).

The ordering context checks, deducts, reserves and releases stock through
this interface. Adapters raise ``InventoryError`` when an operation cannot be
applied.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class InventoryError(Exception):
    """An inventory operation was rejected by the stock keeper."""


class LocationType(Enum):
    WAREHOUSE = "warehouse"
    STORE = "store"
    VENDOR = "vendor"


@dataclass(frozen=True)
class StockLevel:
    variant_id: str
    location_id: str
    on_hand: int
    reserved: int = 0

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


@dataclass(frozen=True)
class Location:
    location_id: str
    name: str
    location_type: str = LocationType.WAREHOUSE.value


class InventoryService(ABC):
    @abstractmethod
    def get_stock(self, variant_id: str, location_id: str) -> StockLevel | None:
        """Current stock for a variant at a location, or None if it is not stocked there."""
        ...

    @abstractmethod
    def adjust_stock(
        self,
        variant_id: str,
        location_id: str,
        delta: int,
        reason: str,
        reference_id: str | None = None,
    ) -> StockLevel:
        """Apply a signed on-hand adjustment. Negative deltas deduct stock."""
        ...

    @abstractmethod
    def reserve_stock(self, variant_id: str, location_id: str, quantity: int) -> StockLevel:
        """Hold ``quantity`` units so they are no longer available."""
        ...

    @abstractmethod
    def list_locations(self, location_type: str | None = None) -> list[Location]:
        """Known stock locations, optionally restricted to one type."""
        ...
