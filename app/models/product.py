from sqlmodel import SQLModel, Field ,Relationship
from sqlalchemy import CheckConstraint
from typing import Optional, TYPE_CHECKING
from datetime import datetime


if TYPE_CHECKING:
    from .category import Category

class Product(SQLModel, table=True):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    price: float

    # written only by app.services.inventory_service.adjust_stock
    stock: int = Field(default=0)

    category_id: Optional[int] = Field(default=None, foreign_key="categories.id")
    category: Optional["Category"] = Relationship(back_populates="products")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0
