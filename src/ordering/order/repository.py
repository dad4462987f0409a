"""Order repository with the finders used by the query side of the service."""

from datetime import UTC, datetime

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus

SORTABLE_FIELDS = ("created_at", "updated_at", "order_number", "status")


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@ordering.repository(part_of=Order)
class OrderRepository:
    def _query(self, **criteria):
        return self._dao.query.filter(**criteria) if criteria else self._dao.query

    def _filter(self, **criteria) -> list[Order]:
        # Unbounded: callers page and count over every match.
        return self._query(**criteria).limit(None).all().items

    def find_by_order_number(self, order_number: str) -> Order | None:
        results = self._filter(order_number=order_number)
        return results[0] if results else None

    def find_by_user(self, user_id: str) -> list[Order]:
        return self._newest_first(self._filter(user_id=user_id))

    def find_by_guest_token(self, guest_token: str) -> list[Order]:
        return self._newest_first(self._filter(guest_token=guest_token))

    def find_by_status(self, status: OrderStatus | str) -> list[Order]:
        return self._newest_first(self._filter(status=OrderStatus.parse(status).value))

    def search(
        self,
        user_id: str | None = None,
        status: OrderStatus | str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Order]:
        """Orders matching every given filter. Dates bound ``created_at`` inclusively."""
        criteria = {}
        if user_id:
            criteria["user_id"] = user_id
        if status:
            criteria["status"] = OrderStatus.parse(status).value
        orders = self._filter(**criteria)

        start, end = _aware(start_date), _aware(end_date)
        if start:
            orders = [o for o in orders if _aware(o.created_at) >= start]
        if end:
            orders = [o for o in orders if _aware(o.created_at) <= end]
        return orders

    def count_matching(self, user_id: str | None = None, status: OrderStatus | str | None = None) -> int:
        criteria = {}
        if user_id:
            criteria["user_id"] = user_id
        if status:
            criteria["status"] = OrderStatus.parse(status).value
        return self._query(**criteria).count()

    def exists(self, order_id: str) -> bool:
        return self._query(id=order_id).count() > 0

    def remove(self, order: Order) -> None:
        self._dao.delete(order)

    @staticmethod
    def _newest_first(orders: list[Order]) -> list[Order]:
        return sorted(orders, key=lambda o: _aware(o.created_at), reverse=True)
