from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel

class CartAddRequest(SQLModel):
    product_id: int
    quantity: int = 1

class CartUpdateRequest(SQLModel):
    quantity: int


class CartItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    created_at: datetime


class CartOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    items: List[CartItemOut]
