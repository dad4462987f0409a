"""Order modification: commands and handler.

Item changes, gift flags, the address and the totals. All of these are only
allowed while the order is still ``created``, apart from the totals.
"""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order


@ordering.command(part_of="Order")
class AddOrderItem:
    """Add a line resolved from the catalogue. Prices are never taken from the caller."""

    order_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    is_gift = Boolean(default=False)
    gift_message = String(max_length=500)


@ordering.command(part_of="Order")
class RemoveOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="Order")
class UpdateOrderItemQuantity:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Order")
class SetOrderItemGift:
    """Mark an item as a gift, or clear the flag when ``is_gift`` is false."""

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    is_gift = Boolean(default=True)
    gift_message = String(max_length=500)


@ordering.command(part_of="Order")
class SetOrderAddress:
    order_id = Identifier(required=True)
    billing_address = Text(required=True)  # JSON: address dict
    shipping_address = Text(required=True)  # JSON: address dict


@ordering.command(part_of="Order")
class UpdateOrderTotals:
    order_id = Identifier(required=True)
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    discount = Float(default=0.0)


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


@ordering.command_handler(part_of=Order)
class ModifyOrderHandler:
    @handle(AddOrderItem)
    def add_item(self, command):
        item = OrderManagementService.from_environment().add_item(
            order_id=command.order_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            is_gift=command.is_gift,
            gift_message=command.gift_message,
        )
        return str(item.id)

    @handle(RemoveOrderItem)
    def remove_item(self, command):
        OrderManagementService.from_environment().remove_item(command.order_id, command.item_id)

    @handle(UpdateOrderItemQuantity)
    def update_item_quantity(self, command):
        OrderManagementService.from_environment().update_item_quantity(
            command.order_id, command.item_id, command.quantity
        )

    @handle(SetOrderItemGift)
    def set_item_gift(self, command):
        service = OrderManagementService.from_environment()
        if command.is_gift:
            service.set_item_gift(command.order_id, command.item_id, command.gift_message)
        else:
            service.remove_item_gift(command.order_id, command.item_id)

    @handle(SetOrderAddress)
    def set_address(self, command):
        OrderManagementService.from_environment().set_address(
            command.order_id,
            _load(command.billing_address),
            _load(command.shipping_address),
        )

    @handle(UpdateOrderTotals)
    def update_totals(self, command):
        OrderManagementService.from_environment().update_totals(
            command.order_id,
            tax=command.tax or 0.0,
            shipping=command.shipping or 0.0,
            discount=command.discount or 0.0,
        )
