from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AddressIn(BaseModel):
    name: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2, max_length=2)
    phone: Optional[str] = None


class CreateSessionIn(BaseModel):
    shipping_method: str = "standard"
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    discount_code: Optional[str] = None


class SessionCreatedOut(BaseModel):
    session_id: str
    redirect_url: str


class SessionLineOut(BaseModel):
    variant_id: int
    sku: str
    product_name: str
    variant_name: str
    unit_price_cents: int
    quantity: int
    line_total_cents: int


class CheckoutSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    status: str
    lines: List[SessionLineOut]
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    shipping_method: str
    discount_code: Optional[str] = None
    redirect_url: Optional[str] = None
    expires_at: datetime
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PaymentWebhookIn(BaseModel):
    """checkout.session.completed / checkout.session.expired"""

    type: str
    session_id: str
