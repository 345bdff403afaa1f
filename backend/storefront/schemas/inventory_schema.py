from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AvailabilityOut(BaseModel):
    variant_id: int
    available: int
    in_stock: bool


class ShortfallOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_id: int
    variant_id: int
    requested: int
    decremented: int
    shortfall: int
    status: str
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class RestockIn(BaseModel):
    quantity: int
