from typing import List

from fastapi import APIRouter, Depends

from storefront.api.deps import get_identity, order_service
from storefront.schemas.order_schema import OrderOut, OrderSummaryOut
from storefront.services.identity import Identity
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=List[OrderSummaryOut], summary="List my orders")
def list_orders(
    limit: int = 50,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(order_service),
):
    return svc.list_orders(identity, limit=min(max(limit, 1), 200))


@router.get("/{order_number}", response_model=OrderOut)
def get_order(
    order_number: str,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(order_service),
):
    return svc.get_order(order_number, identity)


@router.post("/{order_number}/cancel", response_model=OrderOut, summary="Cancel an order that has not shipped")
def cancel_order(
    order_number: str,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(order_service),
):
    return svc.cancel_order(order_number, identity)
