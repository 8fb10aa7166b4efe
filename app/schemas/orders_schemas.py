from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.constants.order_status import DeliveryStatus, OrderStatus
from app.schemas.address_schemas import ShippingAddressCreate


class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class ShippingTarget(BaseModel):
    """Either a saved address-book entry or an inline address."""
    address_id: Optional[int] = None
    new_shipping_address: Optional[ShippingAddressCreate] = None

    @model_validator(mode="after")
    def check_address(self):
        if self.address_id is None and self.new_shipping_address is None:
            raise ValueError("Either address_id or new_shipping_address is required")
        return self


class PlaceOrderRequest(ShippingTarget):
    items: List[OrderItemRequest] = Field(min_length=1)


class PlaceOrderFromCartRequest(ShippingTarget):
    pass


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class AssignOrderRequest(BaseModel):
    delivery_partner_id: int


class UpdateDeliveryStatusRequest(BaseModel):
    status: DeliveryStatus
    notes: Optional[str] = None


class PlacedOrderItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    line_total: float


class ShippingAmountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subtotal_amount: float
    shipping_amount: float
    tax_amount: float
    discount_amount: float
    total_amount: float


class ShippingAddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ship_name: str
    ship_phone: str
    ship_address: str
    ship_city: str
    ship_state: str
    ship_zip: str
    notes: Optional[str] = None


class DeliveryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    delivery_partner_id: int
    status: str
    notes: Optional[str] = None
    assigned_at: datetime
    last_update_at: datetime


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    payment_status: str
    payment_mode: str
    placed_at: datetime
    updated_at: datetime
    items: List[PlacedOrderItem]
    amount: Optional[ShippingAmountOut] = None
    shipping_address: Optional[ShippingAddressOut] = None
    delivery: Optional[DeliveryOut] = None
