import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.exceptions import InsufficientStockError, InvalidSignatureError, ValidationError
from app.models.order import Order
from app.models.payment import Payment, PaymentRecordStatus
from app.services.payment_gateway import PaymentGateway
from app.services.payment_service import finalize_capture

logger = logging.getLogger(__name__)

CAPTURE_EVENTS = {"payment.captured", "payment.authorized", "order.paid"}
FAILURE_EVENTS = {"payment.failed"}


def _payment_entity(event: Dict[str, Any]) -> Dict[str, Any]:
    return ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}


def _find_payment(session: Session, provider_order_id: Optional[str]) -> Optional[Payment]:
    if not provider_order_id:
        return None
    return session.exec(
        select(Payment).where(Payment.provider_order_id == provider_order_id)
    ).first()


def handle_webhook(
    session: Session,
    gateway: PaymentGateway,
    raw_body: bytes,
    signature: Optional[str],
) -> Dict[str, Any]:
    """
    Provider-initiated reconciliation.

    Safe to call any number of times and in any order relative to the
    client-side verification. Only a bad signature is rejected; every
    recognised delivery is acknowledged so the provider stops retrying.
    """
    try:
        body = raw_body.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Rejected webhook with undecodable body")
        raise InvalidSignatureError("Invalid webhook signature") from exc

    if not gateway.verify_webhook_signature(body, signature):
        logger.warning("Rejected webhook with invalid signature")
        raise InvalidSignatureError("Invalid webhook signature")

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Malformed webhook payload") from exc

    event_type = event.get("event")
    entity = _payment_entity(event)
    provider_order_id = entity.get("order_id")

    if event_type in CAPTURE_EVENTS:
        return _reconcile_capture(session, event_type, entity, provider_order_id)
    if event_type in FAILURE_EVENTS:
        return _reconcile_failure(session, entity, provider_order_id)

    logger.info(f"Ignoring webhook event {event_type}")
    return {"status": "ignored", "event": event_type}


def _reconcile_capture(
    session: Session,
    event_type: str,
    entity: Dict[str, Any],
    provider_order_id: Optional[str],
) -> Dict[str, Any]:
    payment = _find_payment(session, provider_order_id)
    if not payment:
        # not created locally (yet); acknowledging avoids retry storms
        logger.info(f"Webhook {event_type} for unknown provider order {provider_order_id}")
        return {"status": "ignored", "event": event_type}

    if payment.status == PaymentRecordStatus.CAPTURED.value:
        return {"status": "already_processed", "payment_id": payment.id}

    if payment.status == PaymentRecordStatus.FAILED.value:
        logger.error(
            f"Provider reports {event_type} for failed payment {payment.id}, refund required"
        )
        payment.meta = {
            **(payment.meta or {}),
            "late_capture": {"event": event_type, "provider_payment_id": entity.get("id")},
            "refund_required": True,
        }
        payment.updated_at = datetime.utcnow()
        session.add(payment)
        session.commit()
        return {"status": "already_processed", "payment_id": payment.id}

    if session.get(Order, payment.order_id) is None:
        logger.warning(f"Webhook {event_type} for payment {payment.id} whose order {payment.order_id} was deleted")
        return {"status": "ignored", "event": event_type, "payment_id": payment.id}

    try:
        captured = finalize_capture(
            session,
            payment,
            entity.get("id"),
            {
                "source": "webhook",
                "webhook_event": event_type,
                "provider_status": entity.get("status"),
                "reconciled_at": datetime.utcnow().isoformat(),
            },
            actor_id=None,
        )
    except InsufficientStockError as exc:
        logger.error(
            f"Payment {payment.id} captured by provider but stock is short: {exc.message}"
        )
        session.refresh(payment)
        payment.meta = {**(payment.meta or {}), "capture_error": exc.message}
        payment.updated_at = datetime.utcnow()
        session.add(payment)
        session.commit()
        return {"status": "stock_unavailable", "payment_id": payment.id}

    status = "processed" if captured else "already_processed"
    return {"status": status, "payment_id": payment.id}


def _reconcile_failure(
    session: Session,
    entity: Dict[str, Any],
    provider_order_id: Optional[str],
) -> Dict[str, Any]:
    payment = _find_payment(session, provider_order_id)
    if not payment:
        return {"status": "ignored", "event": "payment.failed"}

    failed = session.execute(
        update(Payment)
        .where(
            Payment.id == payment.id,
            Payment.status == PaymentRecordStatus.CREATED.value,
        )
        .values(
            status=PaymentRecordStatus.FAILED.value,
            provider_payment_id=entity.get("id"),
            meta={
                **(payment.meta or {}),
                "error": entity.get("error_description") or "payment failed",
                "source": "webhook",
            },
            updated_at=datetime.utcnow(),
        )
    ).rowcount
    session.commit()

    if failed:
        logger.info(f"Payment {payment.id} marked FAILED by provider")
    return {"status": "processed" if failed else "already_processed", "payment_id": payment.id}
