from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

class Address(SQLModel, table=True):
    __tablename__ = "addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    recipient_name: str
    phone: str
    address: str
    city: str
    state: str
    postal_code: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
