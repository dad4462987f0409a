"""FastAPI routes for the Ordering domain.

Writes go through Protean commands processed synchronously. Reads go straight
to the management service's query methods.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddItemRequest,
    CancelOrderRequest,
    ChangeStatusRequest,
    CreateOrderRequest,
    CreateShipmentRequest,
    ItemIdResponse,
    OrderEventResponse,
    OrderIdResponse,
    OrderListResponse,
    OrderResponse,
    RefundOrderRequest,
    SetAddressRequest,
    SetItemGiftRequest,
    ShipmentIdResponse,
    ShipShipmentRequest,
    StatusActionRequest,
    StatusActionResponse,
    StatusHistoryResponse,
    StatusResponse,
    UpdateItemQuantityRequest,
    UpdateTotalsRequest,
    UpdateTrackingRequest,
)
from ordering.order.cancellation import CancelOrder, RefundOrder
from ordering.order.creation import CreateOrder
from ordering.order.fulfillment import (
    CreateShipment,
    MarkOrderFulfilled,
    MarkShipmentDelivered,
    MarkShipmentShipped,
    UpdateShipmentTracking,
)
from ordering.order.management import OrderManagementService
from ordering.order.modification import (
    AddOrderItem,
    RemoveOrderItem,
    SetOrderAddress,
    SetOrderItemGift,
    UpdateOrderItemQuantity,
    UpdateOrderTotals,
)
from ordering.order.payment import MarkOrderPaid
from ordering.order.status import ChangeOrderStatus

order_router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user_id: str | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> OrderListResponse:
    result = OrderManagementService.from_environment().list_orders(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        user_id=user_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return OrderListResponse(
        items=[OrderResponse.from_aggregate(o) for o in result.items],
        total_count=result.total_count,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@order_router.get("/by-number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str) -> OrderResponse:
    order = OrderManagementService.from_environment().get_order_by_number(order_number)
    return OrderResponse.from_aggregate(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = OrderManagementService.from_environment().get_order(order_id)
    return OrderResponse.from_aggregate(order)


@order_router.get("/{order_id}/history", response_model=list[StatusHistoryResponse])
async def get_status_history(order_id: str) -> list[StatusHistoryResponse]:
    service = OrderManagementService.from_environment()
    service.get_order(order_id)
    return [
        StatusHistoryResponse(
            from_status=row.from_status,
            to_status=row.to_status,
            changed_at=row.changed_at,
            changed_by=row.changed_by,
        )
        for row in service.get_status_history(order_id)
    ]


@order_router.get("/{order_id}/events", response_model=list[OrderEventResponse])
async def get_order_events(order_id: str, event_type: str | None = None) -> list[OrderEventResponse]:
    return [
        OrderEventResponse(
            event_id=event.event_id,
            event_type=event.event_type,
            payload=event.data,
            created_at=event.created_at,
        )
        for event in OrderManagementService.from_environment().get_order_events(order_id, event_type)
    ]


# ---------------------------------------------------------------------------
# Creation and deletion
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest) -> OrderIdResponse:
    command = CreateOrder(
        user_id=body.user_id,
        guest_token=body.guest_token,
        items=json.dumps([item.model_dump() for item in body.items]),
        currency=body.currency,
        source=body.source,
        location_id=body.location_id,
        tax=body.tax,
        shipping=body.shipping,
        discount=body.discount,
    )
    outcome = current_domain.process(command, asynchronous=False)
    return OrderIdResponse.from_outcome(outcome)


@order_router.delete("/{order_id}", response_model=StatusResponse)
async def delete_order(order_id: str) -> StatusResponse:
    OrderManagementService.from_environment().delete_order(order_id)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Items, address, totals
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_order_item(order_id: str, body: AddItemRequest) -> ItemIdResponse:
    command = AddOrderItem(
        order_id=order_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        is_gift=body.is_gift,
        gift_message=body.gift_message,
    )
    result = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=result)


@order_router.delete("/{order_id}/items/{item_id}", response_model=StatusResponse)
async def remove_order_item(order_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveOrderItem(order_id=order_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/items/{item_id}/quantity", response_model=StatusResponse)
async def update_order_item_quantity(order_id: str, item_id: str, body: UpdateItemQuantityRequest) -> StatusResponse:
    command = UpdateOrderItemQuantity(order_id=order_id, item_id=item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/items/{item_id}/gift", response_model=StatusResponse)
async def set_order_item_gift(order_id: str, item_id: str, body: SetItemGiftRequest) -> StatusResponse:
    command = SetOrderItemGift(
        order_id=order_id,
        item_id=item_id,
        is_gift=body.is_gift,
        gift_message=body.gift_message,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/address", response_model=StatusResponse)
async def set_order_address(order_id: str, body: SetAddressRequest) -> StatusResponse:
    command = SetOrderAddress(
        order_id=order_id,
        billing_address=json.dumps(body.billing_address.model_dump()),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/totals", response_model=StatusResponse)
async def update_order_totals(order_id: str, body: UpdateTotalsRequest) -> StatusResponse:
    command = UpdateOrderTotals(order_id=order_id, tax=body.tax, shipping=body.shipping, discount=body.discount)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/shipments", status_code=201, response_model=ShipmentIdResponse)
async def create_shipment(order_id: str, body: CreateShipmentRequest) -> ShipmentIdResponse:
    command = CreateShipment(order_id=order_id, **body.model_dump())
    result = current_domain.process(command, asynchronous=False)
    return ShipmentIdResponse(shipment_id=result)


@order_router.put("/{order_id}/shipments/{shipment_id}/ship", response_model=StatusResponse)
async def mark_shipment_shipped(order_id: str, shipment_id: str, body: ShipShipmentRequest) -> StatusResponse:
    command = MarkShipmentShipped(
        order_id=order_id,
        shipment_id=shipment_id,
        carrier=body.carrier,
        service=body.service,
        tracking_number=body.tracking_number,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/shipments/{shipment_id}/deliver", response_model=StatusResponse)
async def mark_shipment_delivered(order_id: str, shipment_id: str) -> StatusResponse:
    current_domain.process(MarkShipmentDelivered(order_id=order_id, shipment_id=shipment_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/shipments/{shipment_id}/tracking", response_model=StatusResponse)
async def update_shipment_tracking(order_id: str, shipment_id: str, body: UpdateTrackingRequest) -> StatusResponse:
    command = UpdateShipmentTracking(
        order_id=order_id,
        shipment_id=shipment_id,
        tracking_number=body.tracking_number,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Status lifecycle
# ---------------------------------------------------------------------------
@order_router.put("/{order_id}/pay", response_model=StatusActionResponse)
async def mark_order_paid(order_id: str, body: StatusActionRequest | None = None) -> StatusActionResponse:
    changed_by = body.changed_by if body else None
    outcome = current_domain.process(MarkOrderPaid(order_id=order_id, changed_by=changed_by), asynchronous=False)
    return StatusActionResponse.from_outcome(outcome)


@order_router.put("/{order_id}/fulfil", response_model=StatusActionResponse)
async def mark_order_fulfilled(order_id: str, body: StatusActionRequest | None = None) -> StatusActionResponse:
    changed_by = body.changed_by if body else None
    outcome = current_domain.process(MarkOrderFulfilled(order_id=order_id, changed_by=changed_by), asynchronous=False)
    return StatusActionResponse.from_outcome(outcome)


@order_router.put("/{order_id}/cancel", response_model=StatusActionResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest | None = None) -> StatusActionResponse:
    body = body or CancelOrderRequest()
    command = CancelOrder(order_id=order_id, reason=body.reason, cancelled_by=body.cancelled_by)
    outcome = current_domain.process(command, asynchronous=False)
    return StatusActionResponse.from_outcome(outcome)


@order_router.put("/{order_id}/refund", response_model=StatusActionResponse)
async def refund_order(order_id: str, body: RefundOrderRequest | None = None) -> StatusActionResponse:
    body = body or RefundOrderRequest()
    command = RefundOrder(order_id=order_id, reason=body.reason, refunded_by=body.refunded_by)
    outcome = current_domain.process(command, asynchronous=False)
    return StatusActionResponse.from_outcome(outcome)


@order_router.put("/{order_id}/status", response_model=StatusActionResponse)
async def change_order_status(order_id: str, body: ChangeStatusRequest) -> StatusActionResponse:
    command = ChangeOrderStatus(order_id=order_id, status=body.status, changed_by=body.changed_by)
    outcome = current_domain.process(command, asynchronous=False)
    return StatusActionResponse.from_outcome(outcome)
