"""Order aggregate (CQRS): the core of the ordering domain.

The Order is the only way to change an order's items, address, shipments,
totals and status. Every mutation checks the status state machine first, so
an order can never be observed in a state it could not have reached.

State Machine:
    created             → paid, cancelled
    paid                → fulfilled, refunded, cancelled
    fulfilled           → partially_returned, refunded
    partially_returned  → refunded
    refunded, cancelled → (terminal)
"""

import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderAddressSet,
    OrderCreated,
    OrderItemAdded,
    OrderItemGiftChanged,
    OrderItemQuantityChanged,
    OrderItemRemoved,
    OrderStatusChanged,
    OrderTotalsUpdated,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentShipped,
)
from ordering.order.exceptions import (
    ConsistencyError,
    InvalidTransitionError,
    OrderItemNotFound,
    ShipmentNotFound,
)

GIFT_MESSAGE_MAX_LENGTH = 500
TOTALS_TOLERANCE = 0.01

_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    CREATED = "created"
    PAID = "paid"
    FULFILLED = "fulfilled"
    PARTIALLY_RETURNED = "partially_returned"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "str | OrderStatus") -> "OrderStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError({"status": [f"Invalid order status: {value}"]}) from None

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _VALID_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self]


class OrderSource(Enum):
    WEB = "web"
    MOBILE = "mobile"
    POS = "pos"
    ADMIN = "admin"
    API = "api"

    @classmethod
    def parse(cls, value: "str | OrderSource | None") -> "OrderSource":
        if value is None:
            return cls.WEB
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError({"source": [f"Invalid order source: {value}"]}) from None


_VALID_TRANSITIONS = {
    OrderStatus.CREATED: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.FULFILLED, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.FULFILLED: {OrderStatus.PARTIALLY_RETURNED, OrderStatus.REFUNDED},
    OrderStatus.PARTIALLY_RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}


def can_transition(current: str | OrderStatus, target: str | OrderStatus) -> bool:
    return OrderStatus.parse(current).can_transition_to(OrderStatus.parse(target))


# ---------------------------------------------------------------------------
# Customer reference
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RegisteredCustomer:
    user_id: str


@dataclass(frozen=True)
class GuestCustomer:
    guest_token: str


CustomerRef = RegisteredCustomer | GuestCustomer


def customer_from(user_id: str | None = None, guest_token: str | None = None) -> CustomerRef:
    """Build the customer reference, rejecting anything but exactly one identity."""
    user_id = (user_id or "").strip() or None
    guest_token = (guest_token or "").strip() or None
    if user_id and guest_token:
        raise ValidationError({"customer": ["Provide either user_id or guest_token, not both"]})
    if user_id:
        return RegisteredCustomer(user_id=user_id)
    if guest_token:
        return GuestCustomer(guest_token=guest_token)
    raise ValidationError({"customer": ["Either user_id or guest_token is required"]})


def normalize_currency(code: str | None) -> str:
    normalized = (code or "USD").strip().upper()
    if not _CURRENCY_PATTERN.match(normalized):
        raise ValidationError({"currency": [f"Invalid currency code: {code}"]})
    return normalized


def generate_order_number(prefix: str = "ORD", now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"{prefix}-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class OrderTotals:
    """Money summary of an order.

    Totals are replaced whole, never edited field by field. ``total`` must
    reconcile with the components to within a cent.
    """

    subtotal = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)

    @invariant.post
    def total_must_reconcile(self):
        expected = (self.subtotal or 0.0) + (self.tax or 0.0) + (self.shipping or 0.0) - (self.discount or 0.0)
        if abs(expected - (self.total or 0.0)) > TOTALS_TOLERANCE:
            raise ValidationError({"total": ["Total does not match subtotal + tax + shipping - discount"]})

    @classmethod
    def create(
        cls,
        subtotal: float,
        tax: float,
        shipping: float,
        discount: float,
        total: float,
    ) -> "OrderTotals":
        """Validate caller-supplied totals, raising ConsistencyError on any mismatch."""
        for name, value in (
            ("subtotal", subtotal),
            ("tax", tax),
            ("shipping", shipping),
            ("discount", discount),
            ("total", total),
        ):
            if value is None or value < 0:
                raise ConsistencyError(name, f"{name.capitalize()} cannot be negative")
        expected = subtotal + tax + shipping - discount
        if abs(expected - total) > TOTALS_TOLERANCE:
            raise ConsistencyError(
                "total",
                f"Total {total:.2f} does not match calculated total {expected:.2f}",
            )
        return cls(subtotal=subtotal, tax=tax, shipping=shipping, discount=discount, total=total)

    @classmethod
    def compute(
        cls,
        subtotal: float,
        tax: float = 0.0,
        shipping: float = 0.0,
        discount: float = 0.0,
    ) -> "OrderTotals":
        subtotal, tax, shipping, discount = (round(v, 2) for v in (subtotal, tax, shipping, discount))
        total = round(subtotal + tax + shipping - discount, 2)
        if total < 0:
            raise ConsistencyError("discount", "Discount cannot exceed subtotal + tax + shipping")
        return cls.create(subtotal, tax, shipping, discount, total)

    @classmethod
    def zero(cls) -> "OrderTotals":
        return cls(subtotal=0.0, tax=0.0, shipping=0.0, discount=0.0, total=0.0)


@ordering.value_object(part_of="Order")
class ProductSnapshot:
    """Catalogue data frozen onto an order line at the moment it was added.

    Later catalogue edits never change what an order says was bought or what
    was charged for it.
    """

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=1000)
    weight = Float(min_value=0.0)
    length = Float(min_value=0.0)
    width = Float(min_value=0.0)
    height = Float(min_value=0.0)
    attributes = Text()  # JSON object

    @invariant.post
    def identity_fields_must_not_be_blank(self):
        for field_name in ("product_id", "variant_id", "sku", "name"):
            if _blank(getattr(self, field_name)):
                raise ValidationError({field_name: [f"{field_name} cannot be blank"]})

    @classmethod
    def from_catalogue(cls, variant, product) -> "ProductSnapshot":
        """Build a snapshot from catalogue records (``Variant`` and ``Product``)."""
        attributes = {k: v for k, v in (("size", variant.size), ("color", variant.color)) if v}
        return cls(
            product_id=product.product_id,
            variant_id=variant.variant_id,
            sku=variant.sku,
            name=product.title,
            variant_name=variant.display_name,
            price=variant.price,
            image_url=variant.image_url or product.image_url,
            weight=variant.weight,
            length=variant.length,
            width=variant.width,
            height=variant.height,
            attributes=json.dumps(attributes) if attributes else None,
        )

    @property
    def full_name(self) -> str:
        if self.variant_name:
            return f"{self.name} - {self.variant_name}"
        return self.name

    @property
    def attributes_dict(self) -> dict:
        return json.loads(self.attributes) if self.attributes else {}

    @property
    def has_dimensions(self) -> bool:
        return all(v is not None for v in (self.length, self.width, self.height))


@ordering.value_object(part_of="Order")
class AddressSnapshot:
    """A billing or shipping address as captured on the order."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)
    email = String(max_length=254)

    @invariant.post
    def required_lines_must_not_be_blank(self):
        for field_name in ("first_name", "last_name", "address_line1", "city", "state", "postal_code", "country"):
            if _blank(getattr(self, field_name)):
                raise ValidationError({field_name: [f"{field_name} cannot be blank"]})

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line on the order: one variant, a quantity, and its frozen snapshot."""

    line_number = Integer(required=True, min_value=1)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    snapshot = ValueObject(ProductSnapshot, required=True)
    is_gift = Boolean(default=False)
    gift_message = String(max_length=GIFT_MESSAGE_MAX_LENGTH)

    @property
    def unit_price(self) -> float:
        return self.snapshot.price

    @property
    def subtotal(self) -> float:
        return round(self.quantity * self.snapshot.price, 2)

    def set_as_gift(self, gift_message: str | None = None) -> None:
        _check_gift_message(gift_message)
        self.is_gift = True
        self.gift_message = gift_message

    def remove_gift(self) -> None:
        self.is_gift = False
        self.gift_message = None


def _check_gift_message(gift_message: str | None) -> None:
    if gift_message and len(gift_message) > GIFT_MESSAGE_MAX_LENGTH:
        raise ValidationError(
            {"gift_message": [f"Gift message cannot exceed {GIFT_MESSAGE_MAX_LENGTH} characters"]}
        )


@ordering.entity(part_of="Order")
class OrderAddress:
    billing_address = ValueObject(AddressSnapshot, required=True)
    shipping_address = ValueObject(AddressSnapshot, required=True)


@ordering.entity(part_of="Order")
class OrderShipment:
    """A parcel sent for this order.

    A shipment is created, then shipped once (carrier, service and tracking
    are recorded together), then delivered once.
    """

    carrier = String(max_length=100)
    service = String(max_length=100)
    tracking_number = String(max_length=255)
    gift_receipt = Boolean(default=False)
    pickup_location_id = Identifier()
    shipped_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()

    @classmethod
    def create(
        cls,
        carrier: str | None = None,
        service: str | None = None,
        tracking_number: str | None = None,
        gift_receipt: bool = False,
        pickup_location_id: str | None = None,
        shipped_at: datetime | None = None,
        delivered_at: datetime | None = None,
    ) -> "OrderShipment":
        _check_shipment_dates(shipped_at, delivered_at)
        return cls(
            carrier=carrier,
            service=service,
            tracking_number=tracking_number,
            gift_receipt=gift_receipt,
            pickup_location_id=pickup_location_id,
            shipped_at=shipped_at,
            delivered_at=delivered_at,
            created_at=datetime.now(UTC),
        )

    @property
    def is_shipped(self) -> bool:
        return self.shipped_at is not None

    @property
    def is_delivered(self) -> bool:
        return self.delivered_at is not None

    def mark_as_shipped(self, carrier: str, service: str, tracking_number: str) -> datetime:
        if self.is_shipped:
            raise ValidationError({"shipment": ["Shipment has already been shipped"]})
        missing = [
            name
            for name, value in (("carrier", carrier), ("service", service), ("tracking_number", tracking_number))
            if _blank(value)
        ]
        if missing:
            raise ValidationError({name: [f"{name} is required to ship"] for name in missing})
        now = datetime.now(UTC)
        self.carrier = carrier
        self.service = service
        self.tracking_number = tracking_number
        self.shipped_at = now
        return now

    def mark_as_delivered(self) -> datetime:
        if self.is_delivered:
            raise ValidationError({"shipment": ["Shipment has already been delivered"]})
        if not self.is_shipped:
            raise ValidationError({"delivered_at": ["Cannot have delivered_at without shipped_at"]})
        now = datetime.now(UTC)
        self.delivered_at = now
        return now

    def update_tracking_number(self, tracking_number: str) -> None:
        if _blank(tracking_number):
            raise ValidationError({"tracking_number": ["Tracking number cannot be blank"]})
        self.tracking_number = tracking_number


def _check_shipment_dates(shipped_at: datetime | None, delivered_at: datetime | None) -> None:
    if delivered_at is None:
        return
    if shipped_at is None:
        raise ValidationError({"delivered_at": ["Cannot have delivered_at without shipped_at"]})
    if delivered_at < shipped_at:
        raise ValidationError({"delivered_at": ["Delivered date cannot be before shipped date"]})


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    user_id = Identifier()
    guest_token = String(max_length=255)
    items = HasMany(OrderItem)
    addresses = HasMany(OrderAddress)
    shipments = HasMany(OrderShipment)
    totals = ValueObject(OrderTotals)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.CREATED.value,
    )
    source = String(
        choices=OrderSource,
        default=OrderSource.WEB.value,
    )
    currency = String(max_length=3, default="USD")
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def must_belong_to_exactly_one_customer(self):
        if bool(self.user_id) == bool(self.guest_token):
            raise ValidationError({"customer": ["Order must have either user_id or guest_token, but not both"]})

    @invariant.post
    def at_most_one_address(self):
        if len(self.addresses or []) > 1:
            raise ValidationError({"address": ["Order can have at most one address"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer: CustomerRef,
        items_data: list[dict],
        currency: str = "USD",
        source: str | None = None,
        tax: float = 0.0,
        shipping: float = 0.0,
        discount: float = 0.0,
        order_number: str | None = None,
    ) -> "Order":
        """Create an order from validated snapshots.

        Each entry of ``items_data`` carries ``snapshot`` (a ProductSnapshot),
        ``quantity`` and optionally ``is_gift`` / ``gift_message``.
        """
        if not items_data:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number or generate_order_number(now=now),
            user_id=customer.user_id if isinstance(customer, RegisteredCustomer) else None,
            guest_token=customer.guest_token if isinstance(customer, GuestCustomer) else None,
            status=OrderStatus.CREATED.value,
            source=OrderSource.parse(source).value,
            currency=normalize_currency(currency),
            created_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            for item_data in items_data:
                order.add_items(
                    order._new_item(
                        item_data["snapshot"],
                        item_data["quantity"],
                        item_data.get("is_gift", False),
                        item_data.get("gift_message"),
                    )
                )
            order.totals = OrderTotals.compute(order._items_subtotal(), tax, shipping, discount)

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order.order_number,
                user_id=order.user_id,
                guest_token=order.guest_token,
                item_count=len(order.items),
                currency=order.currency,
                source=order.source,
                total=order.totals.total,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def customer(self) -> CustomerRef:
        if self.user_id:
            return RegisteredCustomer(user_id=self.user_id)
        return GuestCustomer(guest_token=self.guest_token)

    @property
    def is_guest_order(self) -> bool:
        return bool(self.guest_token)

    @property
    def lines(self) -> list[OrderItem]:
        return sorted(self.items or [], key=lambda i: i.line_number)

    @property
    def address(self) -> OrderAddress | None:
        return (self.addresses or [None])[0]

    @property
    def ordered_shipments(self) -> list[OrderShipment]:
        return sorted(self.shipments or [], key=lambda s: s.created_at or datetime.min.replace(tzinfo=UTC))

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items or [])

    def can_transition_to(self, target: str | OrderStatus) -> bool:
        return OrderStatus(self.status).can_transition_to(OrderStatus.parse(target))

    def get_item(self, item_id: str) -> OrderItem:
        item = next((i for i in (self.items or []) if str(i.id) == str(item_id)), None)
        if item is None:
            raise OrderItemNotFound(item_id)
        return item

    def get_shipment(self, shipment_id: str) -> OrderShipment:
        shipment = next((s for s in (self.shipments or []) if str(s.id) == str(shipment_id)), None)
        if shipment is None:
            raise ShipmentNotFound(shipment_id)
        return shipment

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if not current.can_transition_to(target_status):
            raise InvalidTransitionError(current.value, target_status.value)

    def _assert_modifiable(self, what: str) -> None:
        if OrderStatus(self.status) != OrderStatus.CREATED:
            raise ValidationError({"status": [f"Cannot modify {what} once the order is {self.status}"]})

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def _new_item(
        self,
        snapshot: ProductSnapshot,
        quantity: int,
        is_gift: bool = False,
        gift_message: str | None = None,
    ) -> OrderItem:
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than 0"]})
        _check_gift_message(gift_message)
        next_line = max((i.line_number for i in self.items or []), default=0) + 1
        return OrderItem(
            line_number=next_line,
            variant_id=snapshot.variant_id,
            quantity=quantity,
            snapshot=snapshot,
            is_gift=bool(is_gift),
            gift_message=gift_message if is_gift else None,
        )

    def _items_subtotal(self) -> float:
        return round(sum(i.subtotal for i in self.items or []), 2)

    def recalculate_totals(self) -> None:
        """Recompute the subtotal from items, carrying tax, shipping and discount forward."""
        current = self.totals or OrderTotals.zero()
        self.totals = OrderTotals.compute(
            self._items_subtotal(),
            current.tax or 0.0,
            current.shipping or 0.0,
            current.discount or 0.0,
        )
        self.updated_at = datetime.now(UTC)

    def add_item(
        self,
        snapshot: ProductSnapshot,
        quantity: int,
        is_gift: bool = False,
        gift_message: str | None = None,
    ) -> OrderItem:
        self._assert_modifiable("items")
        item = self._new_item(snapshot, quantity, is_gift, gift_message)
        self.add_items(item)
        self.recalculate_totals()
        self.raise_(
            OrderItemAdded(
                order_id=str(self.id),
                item_id=str(item.id),
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                new_subtotal=self.totals.subtotal,
            )
        )
        return item

    def remove_item(self, item_id: str) -> None:
        self._assert_modifiable("items")
        item = self.get_item(item_id)
        if len(self.items) <= 1:
            raise ValidationError({"items": ["Cannot remove the last item from an order"]})
        self.remove_items(item)
        self.recalculate_totals()
        self.raise_(
            OrderItemRemoved(
                order_id=str(self.id),
                item_id=str(item.id),
                variant_id=item.variant_id,
                new_subtotal=self.totals.subtotal,
            )
        )

    def update_item_quantity(self, item_id: str, quantity: int) -> None:
        self._assert_modifiable("items")
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than 0"]})
        item = self.get_item(item_id)
        previous = item.quantity
        item.quantity = quantity
        self.recalculate_totals()
        self.raise_(
            OrderItemQuantityChanged(
                order_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous,
                new_quantity=quantity,
                new_subtotal=self.totals.subtotal,
            )
        )

    def set_item_gift(self, item_id: str, gift_message: str | None = None) -> None:
        self._assert_modifiable("items")
        item = self.get_item(item_id)
        item.set_as_gift(gift_message)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            OrderItemGiftChanged(
                order_id=str(self.id),
                item_id=str(item.id),
                is_gift=True,
                gift_message=gift_message,
            )
        )

    def remove_item_gift(self, item_id: str) -> None:
        self._assert_modifiable("items")
        item = self.get_item(item_id)
        item.remove_gift()
        self.updated_at = datetime.now(UTC)
        self.raise_(OrderItemGiftChanged(order_id=str(self.id), item_id=str(item.id), is_gift=False))

    # -------------------------------------------------------------------
    # Address
    # -------------------------------------------------------------------
    def set_address(self, billing: AddressSnapshot, shipping: AddressSnapshot) -> OrderAddress:
        self._assert_modifiable("the address")
        address = OrderAddress(billing_address=billing, shipping_address=shipping)
        with atomic_change(self):
            for existing in list(self.addresses or []):
                self.remove_addresses(existing)
            self.add_addresses(address)
            self.updated_at = datetime.now(UTC)
        self.raise_(
            OrderAddressSet(
                order_id=str(self.id),
                billing_city=billing.city,
                shipping_city=shipping.city,
                shipping_country=shipping.country,
            )
        )
        return address

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def update_totals(self, tax: float, shipping: float, discount: float) -> None:
        for name, value in (("tax", tax), ("shipping", shipping), ("discount", discount)):
            if value is None or value < 0:
                raise ConsistencyError(name, f"{name.capitalize()} cannot be negative")
        self.totals = OrderTotals.compute(self._items_subtotal(), tax, shipping, discount)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            OrderTotalsUpdated(
                order_id=str(self.id),
                subtotal=self.totals.subtotal,
                tax=self.totals.tax,
                shipping=self.totals.shipping,
                discount=self.totals.discount,
                total=self.totals.total,
            )
        )

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def create_shipment(
        self,
        carrier: str | None = None,
        service: str | None = None,
        tracking_number: str | None = None,
        gift_receipt: bool = False,
        pickup_location_id: str | None = None,
        shipped_at: datetime | None = None,
        delivered_at: datetime | None = None,
    ) -> OrderShipment:
        if OrderStatus(self.status) not in (OrderStatus.PAID, OrderStatus.FULFILLED):
            raise ValidationError({"status": [f"Cannot create shipment for an order that is {self.status}"]})
        shipment = OrderShipment.create(
            carrier=carrier,
            service=service,
            tracking_number=tracking_number,
            gift_receipt=gift_receipt,
            pickup_location_id=pickup_location_id,
            shipped_at=shipped_at,
            delivered_at=delivered_at,
        )
        self.add_shipments(shipment)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ShipmentCreated(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                pickup_location_id=pickup_location_id,
                gift_receipt=gift_receipt,
            )
        )
        return shipment

    def mark_shipment_shipped(self, shipment_id: str, carrier: str, service: str, tracking_number: str) -> None:
        shipment = self.get_shipment(shipment_id)
        shipped_at = shipment.mark_as_shipped(carrier, service, tracking_number)
        self.updated_at = shipped_at
        self.raise_(
            ShipmentShipped(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                carrier=carrier,
                service=service,
                tracking_number=tracking_number,
                shipped_at=shipped_at,
            )
        )

    def mark_shipment_delivered(self, shipment_id: str) -> None:
        shipment = self.get_shipment(shipment_id)
        delivered_at = shipment.mark_as_delivered()
        self.updated_at = delivered_at
        self.raise_(
            ShipmentDelivered(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                delivered_at=delivered_at,
            )
        )

    def update_shipment_tracking(self, shipment_id: str, tracking_number: str) -> None:
        shipment = self.get_shipment(shipment_id)
        shipment.update_tracking_number(tracking_number)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Status lifecycle
    # -------------------------------------------------------------------
    def _change_status(self, target_status: OrderStatus) -> None:
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=previous,
                to_status=target_status.value,
                changed_at=now,
            )
        )

    def mark_as_paid(self) -> None:
        """Record payment. Requires a billing/shipping address."""
        self._assert_can_transition(OrderStatus.PAID)
        if self.address is None:
            raise ValidationError({"address": ["Cannot mark order as paid without an address"]})
        self._change_status(OrderStatus.PAID)

    def mark_as_fulfilled(self) -> None:
        """Record fulfilment. Requires at least one shipment."""
        self._assert_can_transition(OrderStatus.FULFILLED)
        if not self.shipments:
            raise ValidationError({"shipments": ["Cannot mark order as fulfilled without shipments"]})
        self._change_status(OrderStatus.FULFILLED)

    def cancel(self) -> None:
        if OrderStatus(self.status) == OrderStatus.FULFILLED:
            raise InvalidTransitionError(
                self.status,
                OrderStatus.CANCELLED.value,
                reason="Cannot cancel an order that has been fulfilled",
            )
        self._assert_can_transition(OrderStatus.CANCELLED)
        self._change_status(OrderStatus.CANCELLED)

    def refund(self) -> None:
        if OrderStatus(self.status) not in (OrderStatus.PAID, OrderStatus.FULFILLED):
            raise InvalidTransitionError(
                self.status,
                OrderStatus.REFUNDED.value,
                reason=f"Cannot refund an order that is {self.status}",
            )
        self._assert_can_transition(OrderStatus.REFUNDED)
        self._change_status(OrderStatus.REFUNDED)

    def update_status(self, new_status: str | OrderStatus) -> None:
        """Generic transition along the state machine, without the named-action guards."""
        target = OrderStatus.parse(new_status)
        self._assert_can_transition(target)
        self._change_status(target)
