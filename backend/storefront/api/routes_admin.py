from typing import List, Optional

from fastapi import APIRouter, Depends

from storefront.api.deps import fulfillment_service, inventory_service, require_admin
from storefront.models.inventory_shortfall import OPEN
from storefront.schemas.fulfillment_schema import (
    DropshipOrderOut,
    FulfillmentSummaryOut,
    StatusUpdateIn,
    TrackingIn,
)
from storefront.schemas.inventory_schema import AvailabilityOut, RestockIn, ShortfallOut
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.inventory_service import InventoryService

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/inventory/shortfalls", response_model=List[ShortfallOut])
def list_shortfalls(status: Optional[str] = OPEN, svc: InventoryService = Depends(inventory_service)):
    # status=ALL lists every shortfall
    if status and status.upper() == "ALL":
        status = None
    return svc.list_shortfalls(status.upper() if status else None)


@router.post("/inventory/shortfalls/{shortfall_id}/retry", response_model=ShortfallOut)
def retry_shortfall(shortfall_id: int, svc: InventoryService = Depends(inventory_service)):
    return svc.retry_shortfall(shortfall_id)


@router.post("/inventory/{variant_id}/restock", response_model=AvailabilityOut)
def restock(variant_id: int, payload: RestockIn, svc: InventoryService = Depends(inventory_service)):
    svc.restock(variant_id, payload.quantity)
    avail = svc.available_quantity(variant_id)
    return {"variant_id": variant_id, "available": avail, "in_stock": avail > 0}


@router.get("/fulfillment", response_model=FulfillmentSummaryOut, summary="Counts per status and one page of records")
def fulfillment_summary(
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    svc: FulfillmentService = Depends(fulfillment_service),
):
    return svc.summary(status=status, limit=limit, offset=offset)


@router.get("/fulfillment/attention", response_model=List[DropshipOrderOut])
def needing_attention(older_than_hours: int = 48, svc: FulfillmentService = Depends(fulfillment_service)):
    return svc.needing_attention(older_than_hours)


@router.get("/fulfillment/{dropship_id}", response_model=DropshipOrderOut)
def get_dropship_order(dropship_id: int, svc: FulfillmentService = Depends(fulfillment_service)):
    return svc.get(dropship_id)


@router.post("/fulfillment/{dropship_id}/status", response_model=DropshipOrderOut)
def update_status(
    dropship_id: int,
    payload: StatusUpdateIn,
    svc: FulfillmentService = Depends(fulfillment_service),
):
    return svc.transition(
        dropship_id,
        payload.status,
        tracking_number=payload.tracking_number,
        carrier=payload.carrier,
        tracking_url=payload.tracking_url,
        note=payload.note,
    )


@router.post("/fulfillment/{dropship_id}/tracking", response_model=DropshipOrderOut)
def update_tracking(
    dropship_id: int,
    payload: TrackingIn,
    svc: FulfillmentService = Depends(fulfillment_service),
):
    return svc.update_tracking(
        dropship_id,
        tracking_number=payload.tracking_number,
        carrier=payload.carrier,
        tracking_url=payload.tracking_url,
    )
