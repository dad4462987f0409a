"""Append-only status history for orders.

One row per status change, plus the initial ``created`` row written when the
order is placed. Rows are never updated.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.order.order import OrderStatus


@ordering.aggregate
class OrderStatusHistory:
    order_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    from_status = String(choices=OrderStatus)
    to_status = String(required=True, choices=OrderStatus)
    changed_at = DateTime(required=True)
    changed_by = String(max_length=255)

    @classmethod
    def record(
        cls,
        order_id: str,
        sequence: int,
        to_status: str,
        from_status: str | None = None,
        changed_by: str | None = None,
    ) -> "OrderStatusHistory":
        return cls(
            order_id=order_id,
            sequence=sequence,
            from_status=from_status,
            to_status=to_status,
            changed_at=datetime.now(UTC),
            changed_by=changed_by,
        )

    @property
    def is_initial(self) -> bool:
        return self.from_status is None


@ordering.repository(part_of=OrderStatusHistory)
class OrderStatusHistoryRepository:
    def for_order(self, order_id: str) -> list[OrderStatusHistory]:
        """All rows for an order, oldest first."""
        return self._dao.query.filter(order_id=order_id).order_by("sequence").limit(None).all().items

    def latest_for_order(self, order_id: str) -> OrderStatusHistory | None:
        rows = self.for_order(order_id)
        return rows[-1] if rows else None

    def next_sequence(self, order_id: str) -> int:
        latest = self.latest_for_order(order_id)
        return latest.sequence + 1 if latest else 1
