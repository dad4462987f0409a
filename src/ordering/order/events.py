"""Order domain events, raised by the Order aggregate on every mutation.

These are in-process Protean events. The persisted audit trail lives in
``ordering.order.audit`` and is written by the management service.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """A new order was placed by a registered customer or a guest."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier()
    guest_token = String()
    item_count = Integer(required=True)
    currency = String(required=True)
    source = String(required=True)
    total = Float(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderItemAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)
    new_subtotal = Float(required=True)


@ordering.event(part_of="Order")
class OrderItemRemoved:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    new_subtotal = Float(required=True)


@ordering.event(part_of="Order")
class OrderItemQuantityChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    new_subtotal = Float(required=True)


@ordering.event(part_of="Order")
class OrderItemGiftChanged:
    """An item was marked as a gift, or had its gift flag cleared."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    is_gift = Boolean(default=False)
    gift_message = String()


@ordering.event(part_of="Order")
class OrderAddressSet:
    __version__ = 1

    order_id = Identifier(required=True)
    billing_city = String(required=True)
    shipping_city = String(required=True)
    shipping_country = String(required=True)


@ordering.event(part_of="Order")
class OrderTotalsUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    discount = Float(required=True)
    total = Float(required=True)


@ordering.event(part_of="Order")
class ShipmentCreated:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    pickup_location_id = Identifier()
    gift_receipt = Boolean(default=False)


@ordering.event(part_of="Order")
class ShipmentShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    carrier = String(required=True)
    service = String(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShipmentDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its lifecycle (paid, fulfilled, cancelled, ...)."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_at = DateTime(required=True)
