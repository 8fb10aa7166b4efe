from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from enum import Enum
from typing import Optional
from datetime import datetime


class PaymentRecordStatus(str, Enum):
    CREATED = "CREATED"
    FAILED = "FAILED"
    CAPTURED = "CAPTURED"


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)

    # weak references, a payment attempt may outlive its order
    order_id: int = Field(index=True)
    cart_id: Optional[int] = Field(default=None)
    user_id: int = Field(index=True)

    provider: str = Field(default="razorpay")
    receipt: str = Field(max_length=40)
    provider_order_id: Optional[str] = Field(default=None, index=True, unique=True)
    provider_payment_id: Optional[str] = Field(default=None, index=True)

    amount: int  # minor units (paise / cents)
    currency: str = Field(default="INR")
    status: str = Field(default=PaymentRecordStatus.CREATED.value, index=True)
    meta: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
