from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class ShippingAddress(SQLModel, table=True):
    """Per-order copy of the recipient details. Never edited after insert."""
    __tablename__ = "shipping_addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    ship_name: str
    ship_phone: str
    ship_address: str
    ship_city: str
    ship_state: str
    ship_zip: str
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
