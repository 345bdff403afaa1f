from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    variant_id: int
    sku: str
    product_name: Optional[str] = None
    variant_name: Optional[str] = None
    quantity: int
    unit_price_cents: int
    total_price_cents: int


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    order_number: str
    checkout_session_id: str
    status: str
    payment_status: str
    shipping_status: str
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    shipping_method: Optional[str] = None
    discount_code: Optional[str] = None
    shipping_address: Optional[dict] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


class OrderSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    order_number: str
    status: str
    shipping_status: str
    total_cents: int
    created_at: datetime
