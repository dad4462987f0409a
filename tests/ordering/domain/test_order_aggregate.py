"""Tests for Order creation, customer identity and read helpers."""

import re

import pytest
from ordering.order.events import OrderCreated
from ordering.order.order import (
    GuestCustomer,
    Order,
    OrderSource,
    OrderStatus,
    ProductSnapshot,
    RegisteredCustomer,
    customer_from,
    generate_order_number,
    normalize_currency,
)
from protean.exceptions import ValidationError


def _snapshot(variant_id="var-1", price=20.0):
    return ProductSnapshot(
        product_id="prod-1",
        variant_id=variant_id,
        sku=f"SKU-{variant_id}",
        name="Notebook",
        price=price,
    )


def _make_order(customer=None, **kwargs):
    items = kwargs.pop(
        "items_data",
        [
            {"snapshot": _snapshot("var-1", 20.0), "quantity": 2},
            {"snapshot": _snapshot("var-2", 5.5), "quantity": 1},
        ],
    )
    return Order.create(customer or RegisteredCustomer(user_id="user-1"), items, **kwargs)


class TestCreate:
    def test_defaults(self):
        order = _make_order()
        assert order.status == OrderStatus.CREATED.value
        assert order.source == OrderSource.WEB.value
        assert order.currency == "USD"
        assert order.created_at is not None
        assert order.updated_at == order.created_at

    def test_order_number_format(self):
        order = _make_order()
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{8}", order.order_number)

    def test_lines_numbered_in_order(self):
        order = _make_order()
        assert [i.line_number for i in order.lines] == [1, 2]
        assert [i.variant_id for i in order.lines] == ["var-1", "var-2"]

    def test_totals_from_items(self):
        order = _make_order(tax=3.0, shipping=4.5, discount=2.0)
        assert order.totals.subtotal == 45.5
        assert order.totals.total == 51.0

    def test_two_lines_without_charges(self):
        order = _make_order(
            items_data=[
                {"snapshot": _snapshot("var-1", 10.0), "quantity": 1},
                {"snapshot": _snapshot("var-2", 5.0), "quantity": 2},
            ]
        )
        assert order.totals.subtotal == 20.0
        assert order.totals.total == 20.0

    def test_no_items_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_order(items_data=[])
        assert "items" in exc.value.messages

    def test_gift_message_dropped_when_not_a_gift(self):
        order = _make_order(
            items_data=[{"snapshot": _snapshot(), "quantity": 1, "is_gift": False, "gift_message": "ignored"}]
        )
        assert order.items[0].gift_message is None

    def test_gift_line(self):
        order = _make_order(
            items_data=[{"snapshot": _snapshot(), "quantity": 1, "is_gift": True, "gift_message": "Enjoy"}]
        )
        assert order.items[0].is_gift is True
        assert order.items[0].gift_message == "Enjoy"

    def test_currency_normalized(self):
        assert _make_order(currency="eur").currency == "EUR"

    def test_invalid_currency_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(currency="EURO")

    def test_invalid_source_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(source="fax")

    def test_raises_order_created(self):
        order = _make_order(source="mobile")
        event = next(e for e in order._events if isinstance(e, OrderCreated))
        assert event.order_id == str(order.id)
        assert event.item_count == 2
        assert event.source == "mobile"
        assert event.total == 45.5


class TestCustomerIdentity:
    def test_registered_customer(self):
        order = _make_order(RegisteredCustomer(user_id="user-9"))
        assert order.user_id == "user-9"
        assert order.guest_token is None
        assert order.customer == RegisteredCustomer(user_id="user-9")
        assert not order.is_guest_order

    def test_guest_customer(self):
        order = _make_order(GuestCustomer(guest_token="guest-abc"))
        assert order.user_id is None
        assert order.guest_token == "guest-abc"
        assert order.customer == GuestCustomer(guest_token="guest-abc")
        assert order.is_guest_order

    def test_both_identities_rejected_by_aggregate(self):
        with pytest.raises(ValidationError):
            Order(order_number="ORD-1", user_id="user-1", guest_token="guest-1")

    def test_no_identity_rejected_by_aggregate(self):
        with pytest.raises(ValidationError):
            Order(order_number="ORD-2")

    def test_customer_from_user(self):
        assert customer_from(user_id="user-1") == RegisteredCustomer(user_id="user-1")

    def test_customer_from_guest(self):
        assert customer_from(guest_token="tok") == GuestCustomer(guest_token="tok")

    def test_customer_from_both_rejected(self):
        with pytest.raises(ValidationError):
            customer_from(user_id="user-1", guest_token="tok")

    def test_customer_from_neither_rejected(self):
        with pytest.raises(ValidationError):
            customer_from(user_id="  ", guest_token=None)


class TestHelpers:
    def test_generate_order_number_prefix(self):
        assert generate_order_number("WEB").startswith("WEB-")

    def test_normalize_currency_default(self):
        assert normalize_currency(None) == "USD"

    def test_item_count_sums_quantities(self):
        assert _make_order().item_count == 3

    def test_unknown_item_lookup(self):
        from ordering.order.exceptions import OrderItemNotFound

        with pytest.raises(OrderItemNotFound):
            _make_order().get_item("missing")
