"""Generic status change: command and handler.

Moves an order along the state machine without the inventory side effects of
the named lifecycle commands. Re-sending the current status is a no-op.
"""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order, OrderStatus


@ordering.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    changed_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class ChangeOrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command):
        return OrderManagementService.from_environment().update_order_status(
            command.order_id, command.status, changed_by=command.changed_by
        )
