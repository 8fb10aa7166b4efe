from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app.constants.order_status import OrderStatus
from app.database import get_session
from app.dependencies.roles import require_admin, require_customer
from app.models.user import User
from app.schemas.orders_schemas import (
    AssignOrderRequest,
    OrderOut,
    PlaceOrderFromCartRequest,
    PlaceOrderRequest,
    UpdateOrderStatusRequest,
)
from app.schemas.payment_schemas import (
    OpenPaymentSessionRequest,
    RazorpayPaymentVerifySchema,
)
from app.services import fulfillment_service, order_service, payment_service
from app.services.order_event_service import get_order_timeline
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.services.webhook_service import handle_webhook
from app.utils.pagination import paginate
from app.utils.token import get_current_user

router = APIRouter()


def _order_out(order) -> OrderOut:
    return OrderOut.model_validate(order)


# -------- ADMIN ORDERS --------

@router.get("/admin/orders")
def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    data = paginate(
        session=session,
        query=order_service.list_orders_query(status=status.value if status else None),
        page=page,
        limit=limit,
    )
    data["results"] = [_order_out(o) for o in data["results"]]

    return {"message": "Orders fetched successfully", **data}


@router.put("/admin/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: UpdateOrderStatusRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = fulfillment_service.update_order_status(session, order_id, payload.status, admin)
    return {"message": "Order status updated successfully", "order": _order_out(order)}


@router.put("/admin/orders/{order_id}/assign")
def assign_order_to_delivery(
    order_id: int,
    payload: AssignOrderRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = fulfillment_service.assign_delivery(
        session, order_id, payload.delivery_partner_id, admin
    )
    return {
        "message": "Order assigned to delivery partner successfully",
        "order": _order_out(order),
    }


@router.delete("/admin/orders/{order_id}")
def delete_order(
    order_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    fulfillment_service.delete_order(session, order_id, admin)
    return {"message": "Order deleted successfully"}


# -------- PAYMENTS --------

@router.post("/payment/place", status_code=201)
def open_payment_session(
    request: Request,
    payload: OpenPaymentSessionRequest,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(require_customer),
):
    data = payment_service.open_payment_session(
        session,
        gateway,
        current_user,
        payload.cart_id,
        request.app.state.settings.currency,
        address_id=payload.address_id,
        new_shipping_address=payload.new_shipping_address,
    )
    return {"message": "Payment session created", "data": data}


@router.post("/payment/validate")
def verify_razorpay_payment(
    payload: RazorpayPaymentVerifySchema,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(require_customer),
):
    result = payment_service.verify_and_capture(
        session,
        gateway,
        current_user,
        payment_id=payload.payment_id,
        order_id=payload.order_id,
        provider_payment_id=payload.razorpay_payment_id,
        provider_order_id=payload.razorpay_order_id,
        signature=payload.razorpay_signature,
        cart_id=payload.cart_id,
    )
    payment = result["payment"]
    message = (
        "Payment already processed"
        if result["already_captured"]
        else "Payment verified successfully"
    )

    return {
        "message": message,
        "data": {
            "payment_id": payment.id,
            "order_id": payment.order_id,
            "status": payment.status,
            "provider_payment_id": payment.provider_payment_id,
            "amount": payment.amount,
            "currency": payment.currency,
        },
    }


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    raw_body = await request.body()
    result = await run_in_threadpool(
        handle_webhook, session, gateway, raw_body, x_razorpay_signature
    )
    return {"message": "Webhook received", "data": result}


# -------- CUSTOMER ORDERS --------

@router.post("", status_code=201)
def place_order(
    payload: PlaceOrderRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    order = order_service.place_order(
        session,
        current_user,
        payload.items,
        address_id=payload.address_id,
        new_shipping_address=payload.new_shipping_address,
    )
    return {"message": "Order placed successfully", "order": _order_out(order)}


@router.post("/cart/{cart_id}/order", status_code=201)
def place_order_from_cart(
    cart_id: int,
    payload: PlaceOrderFromCartRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    order = order_service.place_order_from_cart(
        session,
        current_user,
        cart_id,
        address_id=payload.address_id,
        new_shipping_address=payload.new_shipping_address,
    )
    return {"message": "Order placed successfully from cart", "order": _order_out(order)}


@router.get("")
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    data = paginate(
        session=session,
        query=order_service.list_orders_query(
            user_id=current_user.id,
            status=status.value if status else None,
        ),
        page=page,
        limit=limit,
    )
    data["results"] = [_order_out(o) for o in data["results"]]

    return {"message": "Orders fetched successfully", **data}


@router.get("/{order_id}")
def order_details(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = order_service.get_order_for_viewer(session, order_id, current_user)
    timeline = [
        {
            "event_type": e.event_type,
            "label": e.label,
            "created_by": e.created_by,
            "created_at": e.created_at,
        }
        for e in get_order_timeline(session, order.id)
    ]
    return {"message": "Order fetched successfully", "order": _order_out(order), "timeline": timeline}
