"""FastAPI routes for the Ordering domain: checkout, webhooks, orders and admin."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    ChangeStatusRequest,
    ChangeStatusResponse,
    CheckoutRequest,
    CheckoutResponse,
    ConfirmationResponse,
    OrderSummarySchema,
    WebhookAckResponse,
)
from ordering.checkout.placement import OrderLine
from ordering.order.confirmation import build_confirmation, list_customer_orders
from ordering.order.order import Order
from ordering.outcomes import InsufficientStock, TransitionOutcome
from ordering.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_customer(x_customer_id: str | None = Header(default=None)) -> str:
    """Customer id asserted by the authentication layer in front of this service."""
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_customer_id


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
def checkout(
    body: CheckoutRequest,
    customer_id: str = Depends(require_customer),
    idempotency_key: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> CheckoutResponse:
    """Place a pending order for the cart and return the payment page.

    Declared without ``async`` so the gateway call runs in the threadpool.
    """
    lines = [
        OrderLine(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )
        for item in body.items
    ]
    result = services.checkout.start(
        customer_id=customer_id,
        lines=lines,
        shipping_address=body.shipping_address.model_dump(),
        checkout_key=idempotency_key,
        discount=body.discount,
    )
    if isinstance(result, InsufficientStock):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "insufficient_stock",
                "product_id": result.product_id,
                "requested": result.requested,
                "available": result.available,
            },
        )
    return CheckoutResponse(
        order_number=result.order_number,
        session_id=result.session_id,
        session_url=result.session_url,
        total=result.total,
    )


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/payments", response_model=WebhookAckResponse)
async def payment_webhook(request: Request, services: Services = Depends(get_services)) -> WebhookAckResponse:
    """Receive a payment gateway notification.

    Every business outcome is acknowledged with 200 so the gateway stops
    retrying; only infrastructure failures answer 5xx.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature") or request.headers.get("x-gateway-signature", "")

    notification = services.gateway.parse_notification(payload, signature)
    if notification is None:
        return WebhookAckResponse(outcome="ignored")

    outcome = services.reconciler.reconcile(notification)
    return WebhookAckResponse(outcome=outcome.value)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderSummarySchema])
async def my_orders(customer_id: str = Depends(require_customer)) -> list[OrderSummarySchema]:
    return [OrderSummarySchema(**summary) for summary in list_customer_orders(customer_id)]


@order_router.get("/confirmation", response_model=ConfirmationResponse)
async def order_confirmation(
    order_number: str,
    customer_id: str = Depends(require_customer),
) -> ConfirmationResponse:
    """Confirmation page data, re-read from the store on every request."""
    return ConfirmationResponse(**build_confirmation(order_number, customer_id=customer_id))


@order_router.get("/by-number/{order_number}", response_model=ConfirmationResponse)
async def order_by_number(
    order_number: str,
    customer_id: str = Depends(require_customer),
) -> ConfirmationResponse:
    return ConfirmationResponse(**build_confirmation(order_number, customer_id=customer_id))


@order_router.post("/{order_number}/retry-payment", response_model=CheckoutResponse)
def retry_payment(
    order_number: str,
    customer_id: str = Depends(require_customer),
    services: Services = Depends(get_services),
) -> CheckoutResponse:
    """Reopen a failed order and return a new payment page."""
    result = services.checkout.retry_payment(order_number, customer_id)
    return CheckoutResponse(
        order_number=result.order_number,
        session_id=result.session_id,
        session_url=result.session_url,
        total=result.total,
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_router.post("/{order_number}/status", response_model=ChangeStatusResponse)
async def change_order_status(
    order_number: str,
    body: ChangeStatusRequest,
    services: Services = Depends(get_services),
) -> ChangeStatusResponse:
    """Move an order along its lifecycle; disallowed moves are reported, not failed."""
    outcome = services.administration.change_status(
        order_number,
        body.status,
        reason=body.reason,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        estimated_delivery=body.estimated_delivery,
    )
    if outcome is TransitionOutcome.ORDER_NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Order {order_number} does not exist")

    order = current_domain.repository_for(Order).find_by_order_number(order_number)
    return ChangeStatusResponse(order_number=order_number, outcome=outcome.value, status=order.status)
