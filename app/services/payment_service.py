import logging
import re
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlmodel import Session

from app.constants.order_status import OrderStatus, PaymentStatus
from app.database import transaction
from app.exceptions import (
    InvalidSignatureError,
    MissingFieldsError,
    NotFoundError,
    PaymentNotCapturedError,
    ProviderError,
    ValidationError,
)
from app.models.inventory_transaction import StockReason
from app.models.order import Order
from app.models.payment import Payment, PaymentRecordStatus
from app.models.user import User
from app.schemas.address_schemas import ShippingAddressCreate
from app.services.cart_service import clear_cart, get_user_cart
from app.services.inventory_service import adjust_stock
from app.services.order_event_service import log_order_event
from app.services.order_service import (
    cart_lines,
    compute_totals,
    create_order_records,
    snapshot_shipping_address,
    to_minor_units,
)
from app.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

RECEIPT_MAX_LENGTH = 40  # Razorpay rejects longer receipts
BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def make_receipt(order_id, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    order_part = re.sub(r"[^A-Za-z0-9]", "", str(order_id))[:16]
    return f"rcpt_{order_part}_{_base36(now_ms)}"[:RECEIPT_MAX_LENGTH]


def open_payment_session(
    session: Session,
    gateway: PaymentGateway,
    user: User,
    cart_id: int,
    currency: str,
    address_id: Optional[int] = None,
    new_shipping_address: Optional[ShippingAddressCreate] = None,
) -> Dict[str, Any]:
    """
    Create a PENDING/UNPAID order from the cart and open a provider order.

    Stock is not touched here; it is taken when the payment is captured.
    If the provider call fails the order is kept and only the payment
    attempt is marked FAILED.
    """
    cart = get_user_cart(session, cart_id, user.id)
    lines = cart_lines(cart)
    totals = compute_totals(lines, include_tax=True)
    amount = to_minor_units(totals.total)

    with transaction(session):
        shipping_address = snapshot_shipping_address(
            session, user, address_id, new_shipping_address
        )
        order = create_order_records(
            session, user, shipping_address, lines, totals, payment_mode="online"
        )
        payment = Payment(
            order_id=order.id,
            cart_id=cart.id,
            user_id=user.id,
            provider=gateway.name,
            receipt=make_receipt(order.id),
            amount=amount,
            currency=currency,
            status=PaymentRecordStatus.CREATED.value,
            meta={"totals": asdict(totals)},
        )
        session.add(payment)
        log_order_event(
            session,
            order.id,
            "order_placed",
            f"Order #{order.id} placed, awaiting payment",
            created_by=str(user.id),
            meta={"total": totals.total},
        )

    try:
        provider_order = gateway.create_order(
            amount,
            currency,
            payment.receipt,
            notes={"order_id": str(order.id), "payment_id": str(payment.id), "user_id": str(user.id)},
        )
    except Exception as exc:
        logger.error(f"Provider order creation failed for order {order.id}: {exc}")
        payment.status = PaymentRecordStatus.FAILED.value
        payment.meta = {**(payment.meta or {}), "error": str(exc)}
        payment.updated_at = datetime.utcnow()
        session.add(payment)
        session.commit()
        raise ProviderError() from exc

    payment.provider_order_id = provider_order["id"]
    payment.meta = {**(payment.meta or {}), "provider_order": provider_order}
    payment.updated_at = datetime.utcnow()
    session.add(payment)
    session.commit()

    logger.info(f"Payment session {payment.id} opened for order {order.id} ({amount} {currency})")
    return {
        "provider_order": provider_order,
        "order_id": order.id,
        "payment_id": payment.id,
        "key_id": gateway.key_id,
        "amount": amount,
        "currency": currency,
        "totals": asdict(totals),
    }


def finalize_capture(
    session: Session,
    payment: Payment,
    provider_payment_id: str,
    meta: Dict[str, Any],
    actor_id: Optional[int],
    cart_id: Optional[int] = None,
) -> bool:
    """
    Single source of truth for completing payments.

    The CAPTURED latch is taken with a conditional UPDATE from CREATED; only
    the caller that flips it runs the side effects. Returns False when the
    payment was already captured or has failed.
    """
    with transaction(session):
        flipped = session.execute(
            update(Payment)
            .where(
                Payment.id == payment.id,
                Payment.status == PaymentRecordStatus.CREATED.value,
            )
            .values(
                status=PaymentRecordStatus.CAPTURED.value,
                provider_payment_id=provider_payment_id,
                meta={**(payment.meta or {}), **meta},
                updated_at=datetime.utcnow(),
            )
        ).rowcount

        if not flipped:
            logger.info(f"Payment {payment.id} already settled, skipping side effects")
            return False

        order = session.get(Order, payment.order_id)
        if not order:
            raise NotFoundError("Order not found")

        order.payment_status = PaymentStatus.PAID.value
        order.updated_at = datetime.utcnow()
        session.add(order)

        if order.status == OrderStatus.CANCELLED.value:
            # the money is in, the goods are not going out
            payment.meta = {**(payment.meta or {}), **meta, "refund_required": True}
            session.add(payment)
            log_order_event(
                session,
                order.id,
                "payment_captured_after_cancel",
                f"Payment captured for cancelled order #{order.id}, refund required",
                created_by=str(actor_id) if actor_id else "system",
                meta={"payment_id": payment.id, "provider_payment_id": provider_payment_id},
            )
            logger.warning(f"Payment {payment.id} captured for cancelled order {order.id}, refund required")
            return True

        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.CONFIRMED.value

        for item in order.items:
            adjust_stock(
                session,
                item.product_id,
                -item.quantity,
                StockReason.PAYMENT_CAPTURED,
                actor_id,
                order_id=order.id,
            )

        if cart_id is not None:
            clear_cart(session, cart_id, order.user_id)

        log_order_event(
            session,
            order.id,
            "payment_captured",
            f"Payment captured for order #{order.id}",
            created_by=str(actor_id) if actor_id else "system",
            meta={"payment_id": payment.id, "provider_payment_id": provider_payment_id},
        )

    logger.info(f"Payment {payment.id} captured, order {payment.order_id} confirmed")
    return True


def verify_and_capture(
    session: Session,
    gateway: PaymentGateway,
    user: User,
    payment_id: int,
    order_id: int,
    provider_payment_id: Optional[str],
    provider_order_id: Optional[str],
    signature: Optional[str],
    cart_id: Optional[int] = None,
) -> Dict[str, Any]:
    if not (provider_payment_id and provider_order_id and signature):
        raise MissingFieldsError()

    payment = session.get(Payment, payment_id)
    if not payment or payment.order_id != order_id or payment.user_id != user.id:
        raise NotFoundError("Payment not found")

    # 🔒 Idempotency guard
    if payment.status == PaymentRecordStatus.CAPTURED.value:
        return {"already_captured": True, "payment": payment}
    if payment.status == PaymentRecordStatus.FAILED.value:
        raise ValidationError("Payment attempt has failed")

    if payment.provider_order_id != provider_order_id:
        raise ValidationError("Payment order mismatch")

    if not gateway.verify_payment_signature(provider_order_id, provider_payment_id, signature):
        logger.warning(f"Signature mismatch for payment {payment.id}")
        raise InvalidSignatureError()

    try:
        provider_payment = gateway.fetch_payment(provider_payment_id)
    except Exception as exc:
        logger.error(f"Could not fetch provider payment {provider_payment_id}: {exc}")
        raise ProviderError() from exc

    if provider_payment.get("status") != "captured":
        raise PaymentNotCapturedError()

    captured = finalize_capture(
        session,
        payment,
        provider_payment_id,
        {
            "source": "client_verify",
            "signature": signature,
            "provider_status": provider_payment.get("status"),
            "verified_at": datetime.utcnow().isoformat(),
        },
        actor_id=user.id,
        cart_id=cart_id,
    )
    session.refresh(payment)
    return {"already_captured": not captured, "payment": payment}
