"""Order fulfillment: commands and handler.

Shipments are created against paid orders, then shipped and delivered. Marking
the order fulfilled deducts stock at the first shipment's pickup location.
"""

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String

from ordering.domain import ordering
from ordering.order.management import OrderManagementService
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CreateShipment:
    order_id = Identifier(required=True)
    carrier = String(max_length=100)
    service = String(max_length=100)
    tracking_number = String(max_length=255)
    gift_receipt = Boolean(default=False)
    pickup_location_id = Identifier()
    shipped_at = DateTime()
    delivered_at = DateTime()


@ordering.command(part_of="Order")
class MarkShipmentShipped:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    service = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)


@ordering.command(part_of="Order")
class MarkShipmentDelivered:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)


@ordering.command(part_of="Order")
class UpdateShipmentTracking:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=255)


@ordering.command(part_of="Order")
class MarkOrderFulfilled:
    order_id = Identifier(required=True)
    changed_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        shipment = OrderManagementService.from_environment().create_shipment(
            command.order_id,
            carrier=command.carrier,
            service=command.service,
            tracking_number=command.tracking_number,
            gift_receipt=bool(command.gift_receipt),
            pickup_location_id=command.pickup_location_id,
            shipped_at=command.shipped_at,
            delivered_at=command.delivered_at,
        )
        return str(shipment.id)

    @handle(MarkShipmentShipped)
    def mark_shipment_shipped(self, command):
        OrderManagementService.from_environment().mark_shipment_shipped(
            command.order_id,
            command.shipment_id,
            carrier=command.carrier,
            service=command.service,
            tracking_number=command.tracking_number,
        )

    @handle(MarkShipmentDelivered)
    def mark_shipment_delivered(self, command):
        OrderManagementService.from_environment().mark_shipment_delivered(command.order_id, command.shipment_id)

    @handle(UpdateShipmentTracking)
    def update_shipment_tracking(self, command):
        OrderManagementService.from_environment().update_shipment_tracking(
            command.order_id, command.shipment_id, command.tracking_number
        )

    @handle(MarkOrderFulfilled)
    def mark_fulfilled(self, command):
        return OrderManagementService.from_environment().mark_order_as_fulfilled(
            command.order_id, changed_by=command.changed_by
        )
