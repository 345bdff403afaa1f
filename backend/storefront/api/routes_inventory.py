from fastapi import APIRouter, Depends

from storefront.api.deps import inventory_service
from storefront.schemas.inventory_schema import AvailabilityOut
from storefront.services.inventory_service import InventoryService

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("/{variant_id}", response_model=AvailabilityOut)
def available(variant_id: int, svc: InventoryService = Depends(inventory_service)):
    avail = svc.available_quantity(variant_id)
    return {"variant_id": variant_id, "available": avail, "in_stock": avail > 0}
