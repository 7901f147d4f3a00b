"""FastAPI routes for purchase orders and custom bot orders."""

from fastapi import APIRouter, Depends, Query

from container import get_container
from ordering.api.schemas import (
    BulkOrderResponse,
    CreateBulkOrderRequest,
    CreateCustomOrderRequest,
    CreateOrderRequest,
    CustomOrderCreatedResponse,
    CustomOrderListResponse,
    CustomOrderTransitionResponse,
    OrderListResponse,
    OrderLookupResponse,
    OrderResponse,
    PaymentStatusResponse,
    RefundRequest,
    TransitionResponse,
    UpdateOrderStatusRequest,
)
from ordering.custom import CustomBotOrder, CustomOrderRequest
from ordering.payment_state import TransitionResult
from ordering.purchase import Order
from shared.http import require_admin


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(**order.to_event_snapshot())


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(changed=result.changed, state=result.current, message=result.message)


def _custom_transition_response(result: TransitionResult) -> CustomOrderTransitionResponse:
    return CustomOrderTransitionResponse(
        changed=result.changed,
        state=result.current,
        message=result.message,
        order=result.order,
    )


# ---------------------------------------------------------------------------
# Purchase Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(body: CreateOrderRequest) -> OrderResponse:
    """Place a purchase order for a catalog item."""
    order = get_container().orders.create(
        item=body.item,
        amount=body.amount,
        payment_method=body.payment_method,
        email=body.email,
    )
    return _order_response(order)


@order_router.post("/bulk", status_code=201, response_model=BulkOrderResponse)
def create_bulk_order(body: CreateBulkOrderRequest) -> BulkOrderResponse:
    """Check out a cart: one order per item under a shared ref code."""
    orders = get_container().orders.create_bulk(body.items, body.payment_method, email=body.email)
    return BulkOrderResponse(
        ref_code=orders[0].ref_code,
        orders=[_order_response(order) for order in orders],
        total_amount=sum(order.amount for order in orders),
        payment_method=orders[0].payment_method.value,
    )


@order_router.get("/{item}/{ref_code}", response_model=OrderLookupResponse)
def lookup_order(item: str, ref_code: str) -> OrderLookupResponse:
    """Customer-facing status check used by the download page."""
    return OrderLookupResponse(**get_container().orders.lookup(ref_code, item))


@order_router.post("/{item}/{ref_code}/downloaded", response_model=TransitionResponse)
def mark_downloaded(item: str, ref_code: str) -> TransitionResponse:
    return _transition_response(get_container().orders.mark_downloaded(ref_code, item))


# ---------------------------------------------------------------------------
# Custom Order Router
# ---------------------------------------------------------------------------
custom_order_router = APIRouter(prefix="/custom-orders", tags=["custom-orders"])


@custom_order_router.post("", status_code=201, response_model=CustomOrderCreatedResponse)
def create_custom_order(body: CreateCustomOrderRequest) -> CustomOrderCreatedResponse:
    """Submit a custom bot request. Every invalid field is reported."""
    order = get_container().custom_orders.create(CustomOrderRequest(**body.model_dump()))
    return CustomOrderCreatedResponse(
        id=order.id,
        ref_code=order.ref_code,
        tracking_number=order.tracking_number,
        status=order.status.value,
        payment_status=order.payment_status.value,
        budget_amount=order.budget_amount,
        payment_method=order.payment_method.value,
    )


@custom_order_router.get("/{ref_code}/payment-status", response_model=PaymentStatusResponse)
def payment_status(ref_code: str) -> PaymentStatusResponse:
    return PaymentStatusResponse(**get_container().custom_orders.payment_status_view(ref_code))


@custom_order_router.get("/track/{tracking_number}", response_model=PaymentStatusResponse)
def track_custom_order(tracking_number: str) -> PaymentStatusResponse:
    order = get_container().custom_orders.get_by_tracking_number(tracking_number)
    return PaymentStatusResponse(**order.payment_view())


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("/orders", response_model=OrderListResponse)
def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
) -> OrderListResponse:
    orders, total = get_container().orders.list(page=page, limit=limit, status=status, search=search)
    return OrderListResponse(
        orders=[_order_response(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
    )


@admin_router.post("/orders/status", response_model=OrderResponse)
def update_order_status(body: UpdateOrderStatusRequest) -> OrderResponse:
    """Operator override of a purchase order's status."""
    order = get_container().orders.update_status(body.ref_code, body.item, body.status)
    return _order_response(order)


@admin_router.get("/custom-orders", response_model=CustomOrderListResponse)
def list_custom_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
) -> CustomOrderListResponse:
    orders, total = get_container().custom_orders.list(page=page, limit=limit, status=status, search=search)
    return CustomOrderListResponse(orders=orders, total=total, page=page, limit=limit)


@admin_router.get("/custom-orders/{order_id}", response_model=CustomBotOrder)
def get_custom_order(order_id: int) -> CustomBotOrder:
    return get_container().custom_orders.get(order_id)


@admin_router.post("/custom-orders/{order_id}/complete", response_model=CustomOrderTransitionResponse)
def complete_custom_order(order_id: int) -> CustomOrderTransitionResponse:
    """Mark a paid custom order delivered and email the client."""
    return _custom_transition_response(get_container().custom_orders.complete(order_id))


@admin_router.post("/custom-orders/{order_id}/refund", response_model=CustomOrderTransitionResponse)
def refund_custom_order(order_id: int, body: RefundRequest) -> CustomOrderTransitionResponse:
    return _custom_transition_response(get_container().custom_orders.refund(order_id, body.reason, body.message))
