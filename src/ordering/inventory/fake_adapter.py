"""Configurable in-memory inventory for development and testing.

Besides keeping stock, the fake records every call and can be told to fail
for particular variants, which is how the best-effort compensation paths are
exercised.
"""

from ordering.inventory.port import (
    InventoryError,
    InventoryService,
    Location,
    StockLevel,
)


class InMemoryInventory(InventoryService):
    def __init__(self) -> None:
        self.locations: list[Location] = []
        self.stock: dict[tuple[str, str], StockLevel] = {}
        self.calls: list[dict] = []
        self.failures: dict[str, str] = {}

    # -------------------------------------------------------------------
    # Setup helpers
    # -------------------------------------------------------------------
    def add_location(self, location: Location) -> Location:
        self.locations.append(location)
        return location

    def set_stock(self, variant_id: str, location_id: str, on_hand: int, reserved: int = 0) -> StockLevel:
        level = StockLevel(variant_id=variant_id, location_id=location_id, on_hand=on_hand, reserved=reserved)
        self.stock[(variant_id, location_id)] = level
        return level

    def fail_for(self, variant_id: str, reason: str = "Inventory unavailable") -> None:
        """Make every mutating call for ``variant_id`` raise InventoryError."""
        self.failures[variant_id] = reason

    def calls_for(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def get_stock(self, variant_id: str, location_id: str) -> StockLevel | None:
        self.calls.append({"method": "get_stock", "variant_id": variant_id, "location_id": location_id})
        return self.stock.get((variant_id, location_id))

    def adjust_stock(
        self,
        variant_id: str,
        location_id: str,
        delta: int,
        reason: str,
        reference_id: str | None = None,
    ) -> StockLevel:
        self.calls.append(
            {
                "method": "adjust_stock",
                "variant_id": variant_id,
                "location_id": location_id,
                "delta": delta,
                "reason": reason,
                "reference_id": reference_id,
            }
        )
        self._maybe_fail(variant_id)
        level = self._require(variant_id, location_id)
        if level.on_hand + delta < 0:
            raise InventoryError(f"Adjustment of {delta} would make stock negative for {variant_id}")
        return self.set_stock(variant_id, location_id, level.on_hand + delta, level.reserved)

    def reserve_stock(self, variant_id: str, location_id: str, quantity: int) -> StockLevel:
        self.calls.append(
            {
                "method": "reserve_stock",
                "variant_id": variant_id,
                "location_id": location_id,
                "quantity": quantity,
            }
        )
        self._maybe_fail(variant_id)
        level = self._require(variant_id, location_id)
        if level.available < quantity:
            raise InventoryError(f"Only {level.available} units of {variant_id} available to reserve")
        return self.set_stock(variant_id, location_id, level.on_hand, level.reserved + quantity)

    def list_locations(self, location_type: str | None = None) -> list[Location]:
        self.calls.append({"method": "list_locations", "location_type": location_type})
        if location_type is None:
            return list(self.locations)
        return [loc for loc in self.locations if loc.location_type == location_type]

    def _maybe_fail(self, variant_id: str) -> None:
        if variant_id in self.failures:
            raise InventoryError(self.failures[variant_id])

    def _require(self, variant_id: str, location_id: str) -> StockLevel:
        level = self.stock.get((variant_id, location_id))
        if level is None:
            raise InventoryError(f"No stock record for {variant_id} at {location_id}")
        return level
