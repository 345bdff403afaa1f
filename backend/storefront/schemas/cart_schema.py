from typing import Optional

from pydantic import BaseModel


# quantity bounds are enforced by the cart service so they map to domain errors
class AddItemIn(BaseModel):
    variant_id: int
    quantity: int = 1


class UpdateItemIn(BaseModel):
    quantity: int


class MergeCartIn(BaseModel):
    # defaults to the caller's cart_session cookie
    session_token: Optional[str] = None
