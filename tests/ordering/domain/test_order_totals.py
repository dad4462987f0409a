"""Tests for the OrderTotals value object."""

import pytest
from ordering.order.exceptions import ConsistencyError
from ordering.order.order import OrderTotals
from protean.exceptions import ValidationError


class TestCreate:
    def test_valid_totals(self):
        totals = OrderTotals.create(subtotal=100.0, tax=8.0, shipping=5.0, discount=10.0, total=103.0)
        assert totals.total == 103.0

    def test_one_cent_rounding_difference_accepted(self):
        totals = OrderTotals.create(subtotal=10.0, tax=0.0, shipping=0.0, discount=0.0, total=10.01)
        assert totals.total == 10.01

    def test_mismatched_total_rejected(self):
        with pytest.raises(ConsistencyError) as exc:
            OrderTotals.create(subtotal=10.0, tax=0.0, shipping=0.0, discount=0.0, total=10.05)
        assert "total" in exc.value.messages

    @pytest.mark.parametrize("field", ["subtotal", "tax", "shipping", "discount", "total"])
    def test_negative_component_rejected(self, field):
        values = {"subtotal": 10.0, "tax": 0.0, "shipping": 0.0, "discount": 0.0, "total": 10.0}
        values[field] = -1.0
        with pytest.raises(ConsistencyError) as exc:
            OrderTotals.create(**values)
        assert field in exc.value.messages

    def test_consistency_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            OrderTotals.create(subtotal=1.0, tax=0.0, shipping=0.0, discount=0.0, total=5.0)


class TestCompute:
    def test_derives_total(self):
        totals = OrderTotals.compute(50.0, tax=4.0, shipping=6.0, discount=5.0)
        assert totals.total == 55.0

    def test_rounds_to_cents(self):
        totals = OrderTotals.compute(10.004, tax=0.333)
        assert totals.subtotal == 10.0
        assert totals.tax == 0.33
        assert totals.total == 10.33

    def test_discount_larger_than_everything_rejected(self):
        with pytest.raises(ConsistencyError):
            OrderTotals.compute(10.0, discount=20.0)

    def test_zero(self):
        assert OrderTotals.zero().total == 0.0


class TestDirectConstruction:
    def test_invariant_rejects_unbalanced_totals(self):
        with pytest.raises(ValidationError):
            OrderTotals(subtotal=10.0, tax=0.0, shipping=0.0, discount=0.0, total=50.0)
