"""Persisted audit log of order events (``order.created``, ``order.paid``, ...).

Distinct from the in-process domain events in ``ordering.order.events``: these
rows are written by the management service after each successful operation,
carry a numeric id and a JSON payload, and are never updated.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


class OrderEventType(Enum):
    CREATED = "order.created"
    UPDATED = "order.updated"
    STATUS_CHANGED = "order.status_changed"
    PAID = "order.paid"
    FULFILLED = "order.fulfilled"
    CANCELLED = "order.cancelled"
    REFUNDED = "order.refunded"
    ITEM_ADDED = "order.item_added"
    ITEM_REMOVED = "order.item_removed"
    ITEM_UPDATED = "order.item_updated"
    ADDRESS_SET = "order.address_set"
    TOTALS_UPDATED = "order.totals_updated"
    SHIPMENT_CREATED = "order.shipment_created"
    SHIPMENT_SHIPPED = "order.shipment_shipped"
    SHIPMENT_DELIVERED = "order.shipment_delivered"


@ordering.aggregate
class OrderEvent:
    event_id = Integer(identifier=True, min_value=1)
    order_id = Identifier(required=True)
    event_type = String(required=True, max_length=100)
    payload = Text()  # JSON object
    created_at = DateTime(required=True)

    @classmethod
    def log(cls, event_id: int, order_id: str, event_type: OrderEventType, payload: dict | None = None):
        return cls(
            event_id=event_id,
            order_id=order_id,
            event_type=event_type.value,
            payload=json.dumps(payload or {}, default=str),
            created_at=datetime.now(UTC),
        )

    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}


@ordering.repository(part_of=OrderEvent)
class OrderEventRepository:
    def _query(self, **criteria):
        return self._dao.query.filter(**criteria) if criteria else self._dao.query

    def _all(self, **criteria) -> list[OrderEvent]:
        # Unbounded: the audit log of a busy order outgrows the default page.
        return self._query(**criteria).order_by("event_id").limit(None).all().items

    def next_event_id(self) -> int:
        latest = self._dao.query.order_by("-event_id").limit(1).all().first
        return latest.event_id + 1 if latest else 1

    def for_order(self, order_id: str) -> list[OrderEvent]:
        return self._all(order_id=order_id)

    def of_type(self, event_type: OrderEventType | str, order_id: str | None = None) -> list[OrderEvent]:
        criteria = {"event_type": event_type.value if isinstance(event_type, OrderEventType) else event_type}
        if order_id:
            criteria["order_id"] = order_id
        return self._all(**criteria)

    def latest_for_order(self, order_id: str) -> OrderEvent | None:
        events = self.for_order(order_id)
        return events[-1] if events else None

    def count_for_order(self, order_id: str) -> int:
        return self._query(order_id=order_id).count()

    def count_of_type(self, event_type: OrderEventType | str) -> int:
        value = event_type.value if isinstance(event_type, OrderEventType) else event_type
        return self._query(event_type=value).count()
