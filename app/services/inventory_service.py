# app/services/inventory_service.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.database import transaction
from app.exceptions import (
    DuplicateStockAdjustmentError,
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)
from app.models.inventory_transaction import InventoryTransaction, StockReason
from app.models.product import Product

logger = logging.getLogger(__name__)

REASON_LABELS = {
    StockReason.ORDER_PLACED: "Order #{order_id} placed",
    StockReason.PAYMENT_CAPTURED: "Order #{order_id} payment captured",
    StockReason.ORDER_CANCELLED: "Order #{order_id} cancellation",
    StockReason.ADMIN_RESTOCK: "Admin Restock",
    StockReason.ADMIN_RESERVATION: "Admin Reservation",
}


@dataclass
class StockAdjustment:
    product_id: int
    new_stock: int


def reason_label(reason: StockReason, order_id: Optional[int] = None) -> str:
    return REASON_LABELS[reason].format(order_id=order_id)


def adjust_stock(
    session: Session,
    product_id: int,
    delta: int,
    reason: StockReason,
    actor_id: Optional[int],
    order_id: Optional[int] = None,
    note: Optional[str] = None,
) -> StockAdjustment:
    """
    Apply a signed delta to a product's stock and append one ledger row.

    The stock change is a single conditional UPDATE, so two concurrent
    decrements can never take the stock below zero. Nothing is committed
    here: both writes belong to the caller's transaction.
    """
    if delta == 0:
        raise ValidationError("Stock adjustment must be non-zero")

    new_stock = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock + delta >= 0)
        .values(stock=Product.stock + delta, updated_at=datetime.utcnow())
        .returning(Product.stock)
    ).scalar_one_or_none()

    if new_stock is None:
        product = session.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        raise InsufficientStockError(product.name, product.stock, -delta)

    session.add(
        InventoryTransaction(
            product_id=product_id,
            delta=delta,
            kind=reason,
            reason=reason_label(reason, order_id),
            order_id=order_id,
            note=note,
            created_by=actor_id,
        )
    )
    try:
        session.flush()
    except IntegrityError as exc:
        raise DuplicateStockAdjustmentError() from exc

    logger.info(
        f"Stock adjusted: product={product_id} delta={delta} "
        f"reason={reason.value} order={order_id} -> {new_stock}"
    )
    return StockAdjustment(product_id=product_id, new_stock=new_stock)


def restock_product(
    session: Session,
    product_id: int,
    quantity: int,
    actor_id: int,
    note: Optional[str] = None,
) -> StockAdjustment:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    with transaction(session):
        result = adjust_stock(
            session,
            product_id,
            quantity,
            StockReason.ADMIN_RESTOCK,
            actor_id,
            note=note or "Admin Restock",
        )
    return result


def reserve_stock(
    session: Session,
    items: Iterable,
    actor_id: int,
) -> List[StockAdjustment]:
    """Take stock for every item, or for none of them."""
    with transaction(session):
        results = [
            adjust_stock(
                session,
                item.product_id,
                -item.quantity,
                StockReason.ADMIN_RESERVATION,
                actor_id,
                note=f"Reservation - product {item.product_id}",
            )
            for item in items
        ]
    return results


def order_stock_balance(session: Session, order_id: int) -> dict:
    """Net ledger delta per product for one order."""
    rows = session.exec(
        select(InventoryTransaction.product_id, func.sum(InventoryTransaction.delta))
        .where(InventoryTransaction.order_id == order_id)
        .group_by(InventoryTransaction.product_id)
    ).all()
    return {product_id: int(net) for product_id, net in rows}


def release_order_stock(
    session: Session,
    order_id: int,
    actor_id: Optional[int],
) -> List[StockAdjustment]:
    """
    Give back whatever the ledger shows this order took.

    Orders whose payment was never captured took nothing, so nothing is
    returned for them. Does not commit.
    """
    released = []
    for product_id, net in order_stock_balance(session, order_id).items():
        if net >= 0:
            continue
        released.append(
            adjust_stock(
                session,
                product_id,
                -net,
                StockReason.ORDER_CANCELLED,
                actor_id,
                order_id=order_id,
            )
        )
    return released


def list_transactions(session: Session, product_id: int) -> List[InventoryTransaction]:
    if not session.get(Product, product_id):
        raise ProductNotFoundError()

    return session.exec(
        select(InventoryTransaction)
        .where(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.created_at, InventoryTransaction.id)
    ).all()
