"""Order cancellation and refund: commands and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_by = String(max_length=255)


@ordering.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    refunded_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        return OrderManagementService.from_environment().cancel_order(
            command.order_id,
            changed_by=command.cancelled_by,
            reason=command.reason,
        )

    @handle(RefundOrder)
    def refund_order(self, command):
        return OrderManagementService.from_environment().refund_order(
            command.order_id,
            changed_by=command.refunded_by,
            reason=command.reason,
        )
