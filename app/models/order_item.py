from sqlmodel import SQLModel, Field , Relationship
from typing import Optional , TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.order import Order

class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: int = Field(foreign_key="products.id")

    # copied from the product when the order is placed
    product_name: str
    unit_price: float
    quantity: int
    line_total: float

    order: Optional["Order"] = Relationship(back_populates="items")
