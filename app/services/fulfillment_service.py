import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from app.constants.order_status import (
    DELIVERY_TO_ORDER_STATUS,
    DeliveryStatus,
    OrderStatus,
    can_advance_order,
    can_transition_delivery,
)
from app.database import transaction
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from app.models.delivery import Delivery
from app.models.order import Order
from app.models.user import User
from app.services.inventory_service import release_order_stock
from app.services.order_event_service import log_order_event

logger = logging.getLogger(__name__)

CLOSED_ORDER_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


def _get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _close_open_delivery(order: Order):
    delivery = order.delivery
    if delivery is None or not can_transition_delivery(delivery.status, DeliveryStatus.FAILED.value):
        return
    delivery.status = DeliveryStatus.FAILED.value
    delivery.notes = "Order cancelled"
    delivery.last_update_at = datetime.utcnow()


def update_order_status(
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    actor: User,
) -> Order:
    """Move an order forward. Equal or earlier statuses are rejected."""
    order = _get_order(session, order_id)
    current = order.status
    new_status = OrderStatus(new_status)

    if new_status.value == current:
        raise InvalidTransitionError("Order is already in this status")
    if not can_advance_order(current, new_status.value):
        raise InvalidTransitionError("Cannot update to previous status")

    with transaction(session):
        order.status = new_status.value
        order.updated_at = datetime.utcnow()
        session.add(order)

        if new_status == OrderStatus.CANCELLED:
            release_order_stock(session, order.id, actor.id)
            _close_open_delivery(order)

        log_order_event(
            session,
            order.id,
            "status_changed",
            f"Order #{order.id} moved from {current} to {new_status.value}",
            created_by=str(actor.id),
            meta={"from": current, "to": new_status.value},
        )

    session.refresh(order)
    logger.info(f"Order {order.id} status {current} -> {order.status}")
    return order


def assign_delivery(
    session: Session,
    order_id: int,
    delivery_partner_id: int,
    actor: User,
) -> Order:
    order = _get_order(session, order_id)

    partner = session.get(User, delivery_partner_id)
    if not partner or partner.role != "delivery":
        raise NotFoundError(
            "Delivery partner not found or Role with this ID not associated with it"
        )

    if order.delivery is not None:
        raise ConflictError("Order already assigned to a delivery partner")
    if order.status in CLOSED_ORDER_STATUSES:
        raise InvalidTransitionError(f"Cannot assign a {order.status.lower()} order")

    with transaction(session):
        # assignment is the only way a delivery row comes to exist
        order.delivery = Delivery(
            delivery_partner_id=partner.id,
            status=DeliveryStatus.ASSIGNED.value,
        )
        session.add(order)
        log_order_event(
            session,
            order.id,
            "delivery_assigned",
            f"Order #{order.id} assigned to delivery partner {partner.id}",
            created_by=str(actor.id),
            meta={"delivery_partner_id": partner.id},
        )

    session.refresh(order)
    logger.info(f"Order {order.id} assigned to delivery partner {partner.id}")
    return order


def update_delivery_status(
    session: Session,
    delivery_id: int,
    partner: User,
    new_status: DeliveryStatus,
    notes: Optional[str] = None,
) -> Delivery:
    """
    Advance a delivery along the transition table and mirror the change
    onto the parent order's status.
    """
    delivery = session.get(Delivery, delivery_id)
    if not delivery:
        raise NotFoundError("Delivery not found")

    if delivery.delivery_partner_id != partner.id:
        raise ForbiddenError("You are not authorized to update this delivery")

    order = _get_order(session, delivery.order_id)
    if order.status == OrderStatus.CANCELLED.value:
        raise InvalidTransitionError("Order has been cancelled")

    current = delivery.status
    new_status = DeliveryStatus(new_status)
    if not can_transition_delivery(current, new_status.value):
        raise InvalidTransitionError(
            f"Invalid status transition from {current} to {new_status.value}"
        )

    with transaction(session):
        delivery.status = new_status.value
        delivery.notes = notes
        delivery.last_update_at = datetime.utcnow()
        session.add(delivery)

        # one-way: delivery drives order status, never the reverse
        order_status = DELIVERY_TO_ORDER_STATUS.get(new_status)
        if order_status:
            order.status = order_status.value
            order.updated_at = datetime.utcnow()
            session.add(order)

        log_order_event(
            session,
            delivery.order_id,
            "delivery_updated",
            f"Delivery #{delivery.id} moved from {current} to {new_status.value}",
            created_by=str(partner.id),
            meta={"from": current, "to": new_status.value, "notes": notes},
        )

    session.refresh(delivery)
    logger.info(f"Delivery {delivery.id} status {current} -> {delivery.status}")
    return delivery


def get_assigned_deliveries(session: Session, partner: User) -> List[Delivery]:
    return session.exec(
        select(Delivery)
        .where(
            Delivery.delivery_partner_id == partner.id,
            Delivery.status.in_([
                DeliveryStatus.ASSIGNED.value,
                DeliveryStatus.OUT_FOR_DELIVERY.value,
            ]),
        )
        .order_by(Delivery.assigned_at)
    ).all()


def delete_order(session: Session, order_id: int, actor: User):
    """Return whatever stock the order took, then drop the order."""
    order = _get_order(session, order_id)

    with transaction(session):
        release_order_stock(session, order.id, actor.id)
        session.delete(order)

    logger.info(f"Order {order_id} deleted by user {actor.id}")
