from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class StockReason(str, Enum):
    ORDER_PLACED = "ORDER_PLACED"
    PAYMENT_CAPTURED = "PAYMENT_CAPTURED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ADMIN_RESTOCK = "ADMIN_RESTOCK"
    ADMIN_RESERVATION = "ADMIN_RESERVATION"


class InventoryTransaction(SQLModel, table=True):
    """
    Append-only stock ledger row.

    For every product, the sum of ``delta`` over its rows equals the
    product's current stock (minus whatever it was seeded with).
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        # NULL order ids never collide, so admin adjustments are unrestricted
        UniqueConstraint("order_id", "product_id", "kind", name="uq_inventory_order_line"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    delta: int

    kind: StockReason = Field(index=True)
    reason: str
    # plain column, audit rows outlive deleted orders
    order_id: Optional[int] = Field(default=None, index=True)
    note: Optional[str] = None

    created_by: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
