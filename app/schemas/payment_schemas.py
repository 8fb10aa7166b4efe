from typing import Optional

from pydantic import BaseModel

from app.schemas.orders_schemas import ShippingTarget


class OpenPaymentSessionRequest(ShippingTarget):
    cart_id: int


# Provider fields stay optional so a missing one is reported as a
# MissingFieldsError rather than a schema error.
class RazorpayPaymentVerifySchema(BaseModel):
    payment_id: int
    order_id: int
    razorpay_payment_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    cart_id: Optional[int] = None
