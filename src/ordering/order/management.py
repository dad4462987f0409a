"""OrderManagementService: application orchestration for orders.

The aggregate owns the rules. This service resolves authoritative product
data, checks and moves stock, persists through the repositories, and writes
the audit log and status history around each lifecycle step.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue import get_catalogue
from ordering.catalogue.port import CatalogueLookup
from ordering.config import OrderingSettings
from ordering.inventory import get_inventory
from ordering.inventory.port import InventoryService
from ordering.order.audit import OrderEvent, OrderEventType
from ordering.order.compensation import OrderOutcome, apply_best_effort
from ordering.order.exceptions import (
    InsufficientStockError,
    OrderNotFound,
    OrderNumberNotFound,
    ProductNotFound,
    VariantNotFound,
)
from ordering.order.history import OrderStatusHistory
from ordering.order.locations import FulfillmentLocationResolver
from ordering.order.order import (
    GIFT_MESSAGE_MAX_LENGTH,
    AddressSnapshot,
    Order,
    OrderStatus,
    ProductSnapshot,
    customer_from,
    generate_order_number,
    normalize_currency,
)
from ordering.order.repository import SORTABLE_FIELDS

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class LineItemRequest:
    """A requested order line. Only references: prices come from the catalogue."""

    variant_id: str
    quantity: int
    is_gift: bool = False
    gift_message: str | None = None

    @classmethod
    def coerce(cls, value: "LineItemRequest | dict") -> "LineItemRequest":
        if isinstance(value, cls):
            return value
        return cls(
            variant_id=value.get("variant_id"),
            quantity=value.get("quantity"),
            is_gift=bool(value.get("is_gift", False)),
            gift_message=value.get("gift_message"),
        )


@dataclass(frozen=True)
class OrderPage:
    items: list
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.limit - 1) // self.limit if self.limit else 0


def _required(value, field: str, label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError({field: [f"{label} is required"]})
    return str(value).strip()


def _address(value: AddressSnapshot | dict) -> AddressSnapshot:
    return value if isinstance(value, AddressSnapshot) else AddressSnapshot(**value)


class OrderManagementService:
    def __init__(
        self,
        catalogue: CatalogueLookup,
        inventory: InventoryService,
        settings: OrderingSettings | None = None,
        locations: FulfillmentLocationResolver | None = None,
    ) -> None:
        self.settings = settings or OrderingSettings.from_env()
        self.catalogue = catalogue
        self.inventory = inventory
        self.locations = locations or FulfillmentLocationResolver(inventory, self.settings.default_stock_location)

    @classmethod
    def from_environment(cls) -> "OrderManagementService":
        """Service wired to the active ports and environment settings."""
        return cls(get_catalogue(), get_inventory(), OrderingSettings.from_env())

    # -------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------
    @property
    def orders(self):
        return current_domain.repository_for(Order)

    @property
    def history(self):
        return current_domain.repository_for(OrderStatusHistory)

    @property
    def events(self):
        return current_domain.repository_for(OrderEvent)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_order(
        self,
        items: list,
        currency: str = "USD",
        user_id: str | None = None,
        guest_token: str | None = None,
        source: str | None = None,
        location_id: str | None = None,
        tax: float = 0.0,
        shipping: float = 0.0,
        discount: float = 0.0,
        changed_by: str | None = None,
    ) -> OrderOutcome:
        """Place an order.

        Everything that can reject the order (identity, items, catalogue
        lookups, stock) happens before the order is persisted. Stock
        deductions afterwards are best-effort and reported in the outcome.
        """
        customer = customer_from(user_id, guest_token)
        lines = self._validate_lines(items)
        currency = normalize_currency(currency)

        snapshots = {line.variant_id: self._resolve_snapshot(line.variant_id) for line in lines}
        location = self.locations.resolve(location_id)
        self._check_stock(lines, location)

        order = Order.create(
            customer=customer,
            items_data=[
                {
                    "snapshot": snapshots[line.variant_id],
                    "quantity": line.quantity,
                    "is_gift": line.is_gift,
                    "gift_message": line.gift_message,
                }
                for line in lines
            ],
            currency=currency,
            source=source,
            tax=tax,
            shipping=shipping,
            discount=discount,
            order_number=generate_order_number(self.settings.order_number_prefix),
        )
        self.orders.add(order)

        report = apply_best_effort(
            "deduct",
            str(order.id),
            order.lines,
            location,
            lambda item, loc: self.inventory.adjust_stock(item.variant_id, loc, -item.quantity, "order", str(order.id)),
        )

        self._record_history(order, OrderStatus.CREATED.value, from_status=None, changed_by=changed_by)
        self._log_event(
            order,
            OrderEventType.CREATED,
            {
                "user_id": order.user_id,
                "guest_token": order.guest_token,
                "item_count": len(order.items),
                "currency": order.currency,
                "source": order.source,
                "location_id": location,
                "inventory_failures": len(report.failures),
            },
        )
        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(order.items),
            total=order.totals.total,
            inventory_failures=len(report.failures),
        )
        return OrderOutcome(order=order, inventory=report)

    def _validate_lines(self, items: list) -> list[LineItemRequest]:
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})
        lines = [LineItemRequest.coerce(i) for i in items]
        for line in lines:
            _required(line.variant_id, "variant_id", "Variant ID")
            if type(line.quantity) is not int or line.quantity <= 0:
                raise ValidationError({"quantity": [f"Quantity for {line.variant_id} must be greater than 0"]})
            if line.gift_message and len(line.gift_message) > GIFT_MESSAGE_MAX_LENGTH:
                raise ValidationError(
                    {"gift_message": [f"Gift message cannot exceed {GIFT_MESSAGE_MAX_LENGTH} characters"]}
                )
        return lines

    def _resolve_snapshot(self, variant_id: str) -> ProductSnapshot:
        variant = self.catalogue.get_variant_by_id(variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        product = self.catalogue.get_product_by_id(variant.product_id)
        if product is None:
            raise ProductNotFound(variant.product_id)
        return ProductSnapshot.from_catalogue(variant, product)

    def _check_stock(self, lines: list[LineItemRequest], location_id: str) -> None:
        requested: dict[str, int] = {}
        for line in lines:
            requested[line.variant_id] = requested.get(line.variant_id, 0) + line.quantity
        for variant_id, quantity in requested.items():
            stock = self.inventory.get_stock(variant_id, location_id)
            available = stock.available if stock else 0
            if available < quantity:
                raise InsufficientStockError(variant_id, location_id, available, quantity)

    # -------------------------------------------------------------------
    # Status lifecycle
    # -------------------------------------------------------------------
    def mark_order_as_paid(self, order_id: str, changed_by: str | None = None) -> OrderOutcome:
        """Mark paid and reserve stock for every item at the default location."""
        order = self.get_order(order_id)
        previous = order.status
        order.mark_as_paid()

        location = self._default_location_or_none(order)
        report = apply_best_effort(
            "reserve",
            str(order.id),
            order.lines,
            location,
            lambda item, loc: self.inventory.reserve_stock(item.variant_id, loc, item.quantity),
        )

        self.orders.add(order)
        self._status_changed(order, previous, changed_by, OrderEventType.PAID, report)
        return OrderOutcome(order=order, inventory=report)

    def mark_order_as_fulfilled(self, order_id: str, changed_by: str | None = None) -> OrderOutcome:
        """Mark fulfilled and deduct stock at the first shipment's pickup location."""
        order = self.get_order(order_id)
        previous = order.status
        order.mark_as_fulfilled()

        first_shipment = order.ordered_shipments[0]
        location = first_shipment.pickup_location_id or self._default_location_or_none(order)
        report = apply_best_effort(
            "deduct",
            str(order.id),
            order.lines,
            location,
            lambda item, loc: self.inventory.adjust_stock(
                item.variant_id, loc, -item.quantity, "order_fulfillment", str(order.id)
            ),
        )

        self.orders.add(order)
        self._status_changed(order, previous, changed_by, OrderEventType.FULFILLED, report)
        return OrderOutcome(order=order, inventory=report)

    def cancel_order(self, order_id: str, changed_by: str | None = None, reason: str | None = None) -> OrderOutcome:
        """Cancel. A paid order has its stock released first, item by item."""
        order = self.get_order(order_id)
        previous = order.status
        order.cancel()

        report = None
        if previous == OrderStatus.PAID.value:
            location = self._default_location_or_none(order)
            report = apply_best_effort(
                "release",
                str(order.id),
                order.lines,
                location,
                lambda item, loc: self.inventory.adjust_stock(
                    item.variant_id, loc, item.quantity, "order_cancelled", str(order.id)
                ),
            )

        self.orders.add(order)
        self._status_changed(order, previous, changed_by, OrderEventType.CANCELLED, report, reason=reason)
        return OrderOutcome(order=order, inventory=report)

    def refund_order(self, order_id: str, changed_by: str | None = None, reason: str | None = None) -> OrderOutcome:
        order = self.get_order(order_id)
        previous = order.status
        order.refund()
        self.orders.add(order)
        self._status_changed(order, previous, changed_by, OrderEventType.REFUNDED, reason=reason)
        return OrderOutcome(order=order)

    def update_order_status(self, order_id: str, status: str, changed_by: str | None = None) -> OrderOutcome:
        """Move the order along the state machine without the named-action side effects."""
        order = self.get_order(order_id)
        self._apply_status_change(order, OrderStatus.parse(status), changed_by)
        return OrderOutcome(order=order)

    def log_order_status_change(
        self,
        order_id: str,
        to_status: str,
        changed_by: str | None = None,
    ) -> OrderStatusHistory | None:
        """Bring the order to ``to_status`` and record it in the history.

        Returns the new history row, or None when the order is already at the
        target and the history already says so.
        """
        order = self.get_order(order_id)
        return self._apply_status_change(order, OrderStatus.parse(to_status), changed_by)

    def _apply_status_change(
        self,
        order: Order,
        target: OrderStatus,
        changed_by: str | None,
        from_status: str | None = None,
    ) -> OrderStatusHistory | None:
        if order.status != target.value:
            from_status = order.status
            order.update_status(target)
            self.orders.add(order)
            entry = self._record_history(order, target.value, from_status, changed_by)
            self._log_event(
                order,
                OrderEventType.STATUS_CHANGED,
                {"from_status": from_status, "to_status": target.value, "changed_by": changed_by},
            )
            return entry

        latest = self.history.latest_for_order(str(order.id))
        if latest is not None and latest.to_status == target.value:
            logger.debug("Status change already recorded", order_id=str(order.id), status=target.value)
            return None
        if from_status is None and latest is not None:
            from_status = latest.to_status
        return self._record_history(order, target.value, from_status, changed_by)

    def _status_changed(
        self,
        order: Order,
        previous: str,
        changed_by: str | None,
        event_type: OrderEventType,
        report=None,
        reason: str | None = None,
    ) -> None:
        self._apply_status_change(order, OrderStatus(order.status), changed_by, from_status=previous)
        payload = {"from_status": previous, "to_status": order.status, "changed_by": changed_by}
        if reason:
            payload["reason"] = reason
        if report is not None:
            payload["inventory_action"] = report.action
            payload["location_id"] = report.location_id
            payload["inventory_failures"] = [f.variant_id for f in report.failures]
        self._log_event(order, event_type, payload)
        logger.info(
            "Order status changed",
            order_id=str(order.id),
            from_status=previous,
            to_status=order.status,
            changed_by=changed_by,
        )

    def _default_location_or_none(self, order: Order) -> str | None:
        try:
            return self.locations.resolve()
        except ValidationError:
            logger.warning("No fulfillment location for inventory operation", order_id=str(order.id))
            return None

    # -------------------------------------------------------------------
    # Items, address, totals
    # -------------------------------------------------------------------
    def add_item(
        self,
        order_id: str,
        variant_id: str,
        quantity: int,
        is_gift: bool = False,
        gift_message: str | None = None,
    ):
        """Add a line resolved from the catalogue. Returns the new OrderItem."""
        order = self.get_order(order_id)
        snapshot = self._resolve_snapshot(_required(variant_id, "variant_id", "Variant ID"))
        item = order.add_item(snapshot, quantity, is_gift, gift_message)
        self.orders.add(order)
        self._log_event(
            order,
            OrderEventType.ITEM_ADDED,
            {"item_id": str(item.id), "variant_id": variant_id, "quantity": quantity},
        )
        return item

    def remove_item(self, order_id: str, item_id: str) -> Order:
        order = self.get_order(order_id)
        item = order.get_item(item_id)
        order.remove_item(item_id)
        self.orders.add(order)
        self._log_event(order, OrderEventType.ITEM_REMOVED, {"item_id": item_id, "variant_id": item.variant_id})
        return order

    def update_item_quantity(self, order_id: str, item_id: str, quantity: int) -> Order:
        order = self.get_order(order_id)
        order.update_item_quantity(item_id, quantity)
        self.orders.add(order)
        self._log_event(order, OrderEventType.ITEM_UPDATED, {"item_id": item_id, "quantity": quantity})
        return order

    def set_item_gift(self, order_id: str, item_id: str, gift_message: str | None = None) -> Order:
        order = self.get_order(order_id)
        order.set_item_gift(item_id, gift_message)
        self.orders.add(order)
        self._log_event(order, OrderEventType.ITEM_UPDATED, {"item_id": item_id, "is_gift": True})
        return order

    def remove_item_gift(self, order_id: str, item_id: str) -> Order:
        order = self.get_order(order_id)
        order.remove_item_gift(item_id)
        self.orders.add(order)
        self._log_event(order, OrderEventType.ITEM_UPDATED, {"item_id": item_id, "is_gift": False})
        return order

    def set_address(self, order_id: str, billing_address, shipping_address) -> Order:
        order = self.get_order(order_id)
        order.set_address(_address(billing_address), _address(shipping_address))
        self.orders.add(order)
        self._log_event(order, OrderEventType.ADDRESS_SET, {"shipping_city": order.address.shipping_address.city})
        return order

    def update_totals(self, order_id: str, tax: float, shipping: float, discount: float) -> Order:
        order = self.get_order(order_id)
        order.update_totals(tax, shipping, discount)
        self.orders.add(order)
        self._log_event(order, OrderEventType.TOTALS_UPDATED, order.totals.to_dict())
        return order

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def create_shipment(
        self,
        order_id: str,
        carrier: str | None = None,
        service: str | None = None,
        tracking_number: str | None = None,
        gift_receipt: bool = False,
        pickup_location_id: str | None = None,
        shipped_at: datetime | None = None,
        delivered_at: datetime | None = None,
    ):
        """Create a shipment on a paid or fulfilled order. Returns the OrderShipment."""
        order = self.get_order(order_id)
        shipment = order.create_shipment(
            carrier=carrier,
            service=service,
            tracking_number=tracking_number,
            gift_receipt=gift_receipt,
            pickup_location_id=pickup_location_id,
            shipped_at=shipped_at,
            delivered_at=delivered_at,
        )
        self.orders.add(order)
        self._log_event(
            order,
            OrderEventType.SHIPMENT_CREATED,
            {"shipment_id": str(shipment.id), "pickup_location_id": pickup_location_id},
        )
        return shipment

    def mark_shipment_shipped(
        self,
        order_id: str,
        shipment_id: str,
        carrier: str,
        service: str,
        tracking_number: str,
    ) -> Order:
        order = self.get_order(order_id)
        order.mark_shipment_shipped(shipment_id, carrier, service, tracking_number)
        self.orders.add(order)
        self._log_event(
            order,
            OrderEventType.SHIPMENT_SHIPPED,
            {"shipment_id": shipment_id, "carrier": carrier, "tracking_number": tracking_number},
        )
        return order

    def mark_shipment_delivered(self, order_id: str, shipment_id: str) -> Order:
        order = self.get_order(order_id)
        order.mark_shipment_delivered(shipment_id)
        self.orders.add(order)
        self._log_event(order, OrderEventType.SHIPMENT_DELIVERED, {"shipment_id": shipment_id})
        return order

    def update_shipment_tracking(self, order_id: str, shipment_id: str, tracking_number: str) -> Order:
        order = self.get_order(order_id)
        order.update_shipment_tracking(shipment_id, tracking_number)
        self.orders.add(order)
        self._log_event(
            order,
            OrderEventType.UPDATED,
            {"shipment_id": shipment_id, "tracking_number": tracking_number},
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id: str) -> Order:
        order_id = _required(order_id, "order_id", "Order ID")
        try:
            return self.orders.get(order_id)
        except ObjectNotFoundError:
            raise OrderNotFound(order_id) from None

    def get_order_by_number(self, order_number: str) -> Order:
        order_number = _required(order_number, "order_number", "Order number")
        order = self.orders.find_by_order_number(order_number)
        if order is None:
            raise OrderNumberNotFound(order_number)
        return order

    def list_orders(
        self,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        user_id: str | None = None,
        status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> OrderPage:
        if page < 1:
            raise ValidationError({"page": ["Page must be at least 1"]})
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_PAGE_SIZE}"]})
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError({"sort_by": [f"Cannot sort by {sort_by}"]})
        if sort_order not in ("asc", "desc"):
            raise ValidationError({"sort_order": ["Sort order must be 'asc' or 'desc'"]})

        matches = self.orders.search(user_id=user_id, status=status, start_date=start_date, end_date=end_date)
        matches.sort(key=lambda o: (getattr(o, sort_by) is None, getattr(o, sort_by)), reverse=sort_order == "desc")
        offset = (page - 1) * limit
        return OrderPage(items=matches[offset : offset + limit], total_count=len(matches), page=page, limit=limit)

    def orders_for_user(self, user_id: str) -> list[Order]:
        return self.orders.find_by_user(_required(user_id, "user_id", "User ID"))

    def orders_for_guest(self, guest_token: str) -> list[Order]:
        return self.orders.find_by_guest_token(_required(guest_token, "guest_token", "Guest token"))

    def orders_by_status(self, status: str) -> list[Order]:
        return self.orders.find_by_status(status)

    def count_orders(self, user_id: str | None = None, status: str | None = None) -> int:
        return self.orders.count_matching(user_id=user_id, status=status)

    def count_orders_by_status(self, status: str) -> int:
        return self.orders.count_matching(status=status)

    def count_orders_for_user(self, user_id: str) -> int:
        return self.orders.count_matching(user_id=_required(user_id, "user_id", "User ID"))

    def order_exists(self, order_id: str) -> bool:
        return self.orders.exists(_required(order_id, "order_id", "Order ID"))

    def delete_order(self, order_id: str) -> None:
        order = self.get_order(order_id)
        self.orders.remove(order)
        logger.info("Order deleted", order_id=order_id, order_number=order.order_number)

    def get_status_history(self, order_id: str) -> list[OrderStatusHistory]:
        return self.history.for_order(_required(order_id, "order_id", "Order ID"))

    def get_order_events(self, order_id: str, event_type: str | None = None) -> list[OrderEvent]:
        order_id = _required(order_id, "order_id", "Order ID")
        if event_type:
            return self.events.of_type(event_type, order_id=order_id)
        return self.events.for_order(order_id)

    # -------------------------------------------------------------------
    # Audit trail
    # -------------------------------------------------------------------
    def _record_history(
        self,
        order: Order,
        to_status: str,
        from_status: str | None,
        changed_by: str | None,
    ) -> OrderStatusHistory:
        order_id = str(order.id)
        entry = OrderStatusHistory.record(
            order_id=order_id,
            sequence=self.history.next_sequence(order_id),
            to_status=to_status,
            from_status=from_status,
            changed_by=changed_by,
        )
        self.history.add(entry)
        return entry

    def _log_event(self, order: Order, event_type: OrderEventType, payload: dict) -> OrderEvent:
        event = OrderEvent.log(self.events.next_event_id(), str(order.id), event_type, payload)
        self.events.add(event)
        return event
