from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class DropshipItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    order_item_id: int
    supplier_sku: str
    quantity: int
    unit_cost_cents: int
    total_cost_cents: int


class DropshipOrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_id: int
    supplier_id: int
    status: str
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    tracking_url: Optional[str] = None
    issue_note: Optional[str] = None
    total_cost_cents: int
    placed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[DropshipItemOut] = []


class FulfillmentSummaryOut(BaseModel):
    counts: Dict[str, int]
    total: int
    orders: List[DropshipOrderOut]


class TrackingIn(BaseModel):
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    tracking_url: Optional[str] = None


class StatusUpdateIn(TrackingIn):
    status: str
    note: Optional[str] = None


class SupplierUpdateIn(StatusUpdateIn):
    dropship_order_id: int
