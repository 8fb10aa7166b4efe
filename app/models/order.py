from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from app.constants.order_status import OrderStatus, PaymentStatus
from app.models.delivery import Delivery
from app.models.order_event import OrderEvent
from app.models.order_item import OrderItem
from app.models.shipping_address import ShippingAddress
from app.models.shipping_amount import ShippingAmount


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    shipping_address_id: int = Field(foreign_key="shipping_addresses.id")

    status: str = Field(default=OrderStatus.PENDING.value, index=True)
    payment_status: str = Field(default=PaymentStatus.UNPAID.value)
    payment_mode: str = Field(default="cod")  # cod | online

    placed_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # relationships (important!)
    shipping_address: Optional[ShippingAddress] = Relationship()
    items: List[OrderItem] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    amount: Optional[ShippingAmount] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "uselist": False},
    )
    delivery: Optional[Delivery] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "uselist": False},
    )
    events: List[OrderEvent] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
