"""Ordering error taxonomy.

Every error extends a Protean exception so the FastAPI integration maps it to
an HTTP status without extra wiring: validation failures to 400, missing
records to 404.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class InvalidTransitionError(ValidationError):
    """The requested status is not reachable from the order's current status."""

    def __init__(self, current: str, target: str, reason: str | None = None):
        self.current = current
        self.target = target
        message = reason or f"Cannot transition from {current} to {target}"
        super().__init__({"status": [message]})


class InsufficientStockError(ValidationError):
    def __init__(self, variant_id: str, location_id: str, available: int, requested: int):
        self.variant_id = variant_id
        self.location_id = location_id
        self.available = available
        self.requested = requested
        super().__init__(
            {
                "items": [
                    f"Insufficient stock for variant {variant_id} at {location_id}: "
                    f"available {available}, requested {requested}"
                ]
            }
        )


class ConsistencyError(ValidationError):
    """Raised when derived values (totals) do not reconcile."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__({field: [message]})


class NotFoundError(ObjectNotFoundError):
    entity = "Record"
    field = "id"

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__({self.field: [f"{self.entity} {identifier} not found"]})


class OrderNotFound(NotFoundError):
    entity = "Order"
    field = "order_id"


class OrderNumberNotFound(NotFoundError):
    entity = "Order number"
    field = "order_number"


class OrderItemNotFound(NotFoundError):
    entity = "Order item"
    field = "item_id"


class ShipmentNotFound(NotFoundError):
    entity = "Shipment"
    field = "shipment_id"


class VariantNotFound(NotFoundError):
    entity = "Product variant"
    field = "variant_id"


class ProductNotFound(NotFoundError):
    entity = "Product"
    field = "product_id"
