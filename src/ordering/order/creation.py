"""Order creation: command and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CreateOrder:
    """Place an order for a registered customer (user_id) or a guest (guest_token)."""

    user_id = Identifier()
    guest_token = String(max_length=255)
    items = Text(required=True)  # JSON: list of {variant_id, quantity, is_gift, gift_message}
    currency = String(max_length=3, default="USD")
    source = String(max_length=20)
    location_id = Identifier()
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    discount = Float(default=0.0)
    placed_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        return OrderManagementService.from_environment().create_order(
            items=items_data,
            currency=command.currency or "USD",
            user_id=command.user_id,
            guest_token=command.guest_token,
            source=command.source,
            location_id=command.location_id,
            tax=command.tax or 0.0,
            shipping=command.shipping or 0.0,
            discount=command.discount or 0.0,
            changed_by=command.placed_by,
        )
