from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.order import Order


class ShippingAmount(SQLModel, table=True):
    __tablename__ = "shipping_amounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", unique=True)

    subtotal_amount: float
    shipping_amount: float
    tax_amount: float = 0
    discount_amount: float = 0
    total_amount: float

    order: Optional["Order"] = Relationship(back_populates="amount")
