from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.inventory_transaction import StockReason


class RestockRequest(BaseModel):
    product_id: int
    quantity: int
    reason: Optional[str] = None


class StockItem(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class ReserveStockRequest(BaseModel):
    items: List[StockItem] = Field(min_length=1)


class InventoryTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    delta: int
    kind: StockReason
    reason: str
    order_id: Optional[int] = None
    note: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
