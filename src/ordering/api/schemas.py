"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Responses mirror the aggregate's getters.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    first_name: str
    last_name: str
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str | None = None
    email: str | None = None


class LineItemSchema(BaseModel):
    variant_id: str
    quantity: int = Field(ge=1)
    is_gift: bool = False
    gift_message: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    user_id: str | None = None
    guest_token: str | None = None
    items: list[LineItemSchema]
    currency: str = "USD"
    source: str | None = None
    location_id: str | None = None
    tax: float = Field(ge=0, default=0.0)
    shipping: float = Field(ge=0, default=0.0)
    discount: float = Field(ge=0, default=0.0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"variant_id": "var-001", "quantity": 2}],
                    "currency": "USD",
                    "source": "web",
                    "shipping": 5.0,
                }
            ]
        }
    }


class AddItemRequest(LineItemSchema):
    pass


class UpdateItemQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class SetItemGiftRequest(BaseModel):
    is_gift: bool = True
    gift_message: str | None = None


class SetAddressRequest(BaseModel):
    billing_address: AddressSchema
    shipping_address: AddressSchema


class UpdateTotalsRequest(BaseModel):
    tax: float = 0.0
    shipping: float = 0.0
    discount: float = 0.0


class CreateShipmentRequest(BaseModel):
    carrier: str | None = None
    service: str | None = None
    tracking_number: str | None = None
    gift_receipt: bool = False
    pickup_location_id: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class ShipShipmentRequest(BaseModel):
    carrier: str
    service: str
    tracking_number: str


class UpdateTrackingRequest(BaseModel):
    tracking_number: str


class StatusActionRequest(BaseModel):
    changed_by: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    cancelled_by: str | None = None


class RefundOrderRequest(BaseModel):
    reason: str | None = None
    refunded_by: str | None = None


class ChangeStatusRequest(BaseModel):
    status: str
    changed_by: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class InventoryFailureResponse(BaseModel):
    variant_id: str
    location_id: str | None = None
    quantity: int
    error: str


def _inventory_failures(outcome) -> list[InventoryFailureResponse]:
    if outcome is None or outcome.inventory is None:
        return []
    return [
        InventoryFailureResponse(
            variant_id=f.variant_id,
            location_id=f.location_id,
            quantity=f.quantity,
            error=f.error,
        )
        for f in outcome.inventory.failures
    ]


class OrderIdResponse(BaseModel):
    order_id: str
    inventory_failures: list[InventoryFailureResponse] = []

    @classmethod
    def from_outcome(cls, outcome) -> "OrderIdResponse":
        return cls(order_id=outcome.order_id, inventory_failures=_inventory_failures(outcome))


class ItemIdResponse(BaseModel):
    item_id: str


class ShipmentIdResponse(BaseModel):
    shipment_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class StatusActionResponse(StatusResponse):
    """Status change result. Non-empty failures mean the change stuck but inventory did not."""

    inventory_failures: list[InventoryFailureResponse] = []

    @classmethod
    def from_outcome(cls, outcome) -> "StatusActionResponse":
        return cls(inventory_failures=_inventory_failures(outcome))


class TotalsResponse(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float


class OrderItemResponse(BaseModel):
    item_id: str
    line_number: int
    variant_id: str
    product_id: str
    sku: str
    name: str
    full_name: str
    unit_price: float
    quantity: int
    subtotal: float
    is_gift: bool
    gift_message: str | None = None


class OrderAddressResponse(BaseModel):
    billing_address: AddressSchema
    shipping_address: AddressSchema


class ShipmentResponse(BaseModel):
    shipment_id: str
    carrier: str | None = None
    service: str | None = None
    tracking_number: str | None = None
    gift_receipt: bool
    pickup_location_id: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str | None = None
    guest_token: str | None = None
    status: str
    source: str
    currency: str
    items: list[OrderItemResponse]
    address: OrderAddressResponse | None = None
    shipments: list[ShipmentResponse]
    totals: TotalsResponse
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_aggregate(cls, order) -> "OrderResponse":
        address = order.address
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=order.user_id,
            guest_token=order.guest_token,
            status=order.status,
            source=order.source,
            currency=order.currency,
            items=[
                OrderItemResponse(
                    item_id=str(item.id),
                    line_number=item.line_number,
                    variant_id=item.variant_id,
                    product_id=item.snapshot.product_id,
                    sku=item.snapshot.sku,
                    name=item.snapshot.name,
                    full_name=item.snapshot.full_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                    is_gift=bool(item.is_gift),
                    gift_message=item.gift_message,
                )
                for item in order.lines
            ],
            address=(
                OrderAddressResponse(
                    billing_address=AddressSchema(**address.billing_address.to_dict()),
                    shipping_address=AddressSchema(**address.shipping_address.to_dict()),
                )
                if address
                else None
            ),
            shipments=[
                ShipmentResponse(
                    shipment_id=str(s.id),
                    carrier=s.carrier,
                    service=s.service,
                    tracking_number=s.tracking_number,
                    gift_receipt=bool(s.gift_receipt),
                    pickup_location_id=s.pickup_location_id,
                    shipped_at=s.shipped_at,
                    delivered_at=s.delivered_at,
                    created_at=s.created_at,
                )
                for s in order.ordered_shipments
            ],
            totals=TotalsResponse(**order.totals.to_dict()),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total_count: int
    page: int
    limit: int
    total_pages: int


class StatusHistoryResponse(BaseModel):
    from_status: str | None = None
    to_status: str
    changed_at: datetime
    changed_by: str | None = None


class OrderEventResponse(BaseModel):
    event_id: int
    event_type: str
    payload: dict
    created_at: datetime
