from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from app.constants.order_status import DeliveryStatus

if TYPE_CHECKING:
    from app.models.order import Order


class Delivery(SQLModel, table=True):
    __tablename__ = "deliveries"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", unique=True)
    delivery_partner_id: int = Field(foreign_key="users.id", index=True)

    status: str = Field(default=DeliveryStatus.ASSIGNED.value, index=True)
    notes: Optional[str] = None

    assigned_at: datetime = Field(default_factory=datetime.utcnow)
    last_update_at: datetime = Field(default_factory=datetime.utcnow)

    order: Optional["Order"] = Relationship(back_populates="delivery")
