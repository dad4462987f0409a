"""Order payment: command and handler.

Marking an order paid reserves its stock at the default fulfillment location.
"""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order


@ordering.command(part_of="Order")
class MarkOrderPaid:
    order_id = Identifier(required=True)
    changed_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class MarkOrderPaidHandler:
    @handle(MarkOrderPaid)
    def mark_paid(self, command):
        return OrderManagementService.from_environment().mark_order_as_paid(
            command.order_id, changed_by=command.changed_by
        )
