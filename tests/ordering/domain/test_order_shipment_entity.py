"""Tests for the OrderShipment entity."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.order.order import OrderShipment
from protean.exceptions import ValidationError


class TestCreate:
    def test_minimal_shipment(self):
        shipment = OrderShipment.create()
        assert shipment.is_shipped is False
        assert shipment.is_delivered is False
        assert shipment.gift_receipt is False
        assert shipment.created_at is not None

    def test_delivered_without_shipped_rejected(self):
        with pytest.raises(ValidationError) as exc:
            OrderShipment.create(delivered_at=datetime.now(UTC))
        assert exc.value.messages["delivered_at"] == ["Cannot have delivered_at without shipped_at"]

    def test_delivered_before_shipped_rejected(self):
        shipped = datetime.now(UTC)
        with pytest.raises(ValidationError):
            OrderShipment.create(shipped_at=shipped, delivered_at=shipped - timedelta(days=1))

    def test_already_delivered_shipment(self):
        shipped = datetime.now(UTC) - timedelta(days=2)
        shipment = OrderShipment.create(
            carrier="DHL",
            tracking_number="TRK-1",
            shipped_at=shipped,
            delivered_at=shipped + timedelta(days=1),
        )
        assert shipment.is_shipped
        assert shipment.is_delivered


class TestLifecycle:
    def test_mark_as_shipped_records_carrier_details(self):
        shipment = OrderShipment.create(pickup_location_id="wh-1")
        shipment.mark_as_shipped("UPS", "Ground", "1Z999")
        assert shipment.carrier == "UPS"
        assert shipment.service == "Ground"
        assert shipment.tracking_number == "1Z999"
        assert shipment.is_shipped

    def test_cannot_ship_twice(self):
        shipment = OrderShipment.create()
        shipment.mark_as_shipped("UPS", "Ground", "1Z999")
        with pytest.raises(ValidationError):
            shipment.mark_as_shipped("UPS", "Ground", "1Z000")

    def test_shipping_requires_tracking_number(self):
        shipment = OrderShipment.create()
        with pytest.raises(ValidationError) as exc:
            shipment.mark_as_shipped("UPS", "Ground", "")
        assert "tracking_number" in exc.value.messages

    def test_cannot_deliver_before_shipping(self):
        shipment = OrderShipment.create()
        with pytest.raises(ValidationError) as exc:
            shipment.mark_as_delivered()
        assert exc.value.messages["delivered_at"] == ["Cannot have delivered_at without shipped_at"]

    def test_deliver_after_shipping(self):
        shipment = OrderShipment.create()
        shipment.mark_as_shipped("UPS", "Ground", "1Z999")
        shipment.mark_as_delivered()
        assert shipment.is_delivered
        assert shipment.delivered_at >= shipment.shipped_at

    def test_cannot_deliver_twice(self):
        shipment = OrderShipment.create()
        shipment.mark_as_shipped("UPS", "Ground", "1Z999")
        shipment.mark_as_delivered()
        with pytest.raises(ValidationError):
            shipment.mark_as_delivered()

    def test_update_tracking_number(self):
        shipment = OrderShipment.create(tracking_number="OLD")
        shipment.update_tracking_number("NEW")
        assert shipment.tracking_number == "NEW"

    def test_blank_tracking_number_rejected(self):
        shipment = OrderShipment.create()
        with pytest.raises(ValidationError):
            shipment.update_tracking_number(" ")
