from pydantic import BaseModel
from typing import Optional

class ShippingAddressCreate(BaseModel):
    recipient_name: str
    phone: str
    address: str
    city: str
    state: str
    postal_code: str
    notes: Optional[str] = None
