"""Fulfillment location resolution.

Order of precedence: the location named by the caller, the configured
default (``DEFAULT_STOCK_LOCATION``), then the first warehouse the inventory
service knows about.
"""

import structlog
from protean.exceptions import ValidationError

from ordering.inventory.port import InventoryService, LocationType

logger = structlog.get_logger(__name__)


class FulfillmentLocationResolver:
    def __init__(self, inventory: InventoryService, default_location_id: str | None = None) -> None:
        self._inventory = inventory
        self._default_location_id = default_location_id
        self._warehouse_fallback: str | None = None

    def resolve(self, location_id: str | None = None) -> str:
        if location_id:
            return location_id
        if self._default_location_id:
            return self._default_location_id
        if self._warehouse_fallback is None:
            warehouses = self._inventory.list_locations(LocationType.WAREHOUSE.value)
            if not warehouses:
                raise ValidationError(
                    {"location_id": ["No fulfillment location configured and no warehouse location exists"]}
                )
            self._warehouse_fallback = warehouses[0].location_id
            logger.info(
                "Falling back to first warehouse for fulfillment",
                location_id=self._warehouse_fallback,
            )
        return self._warehouse_fallback
