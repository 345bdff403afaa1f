import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header

from storefront.api.deps import checkout_service, container_dep, fulfillment_service, order_service
from storefront.container import Container
from storefront.errors import Forbidden
from storefront.schemas.checkout_schema import PaymentWebhookIn
from storefront.schemas.fulfillment_schema import DropshipOrderOut, SupplierUpdateIn
from storefront.schemas.order_schema import OrderOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import OrderService

log = logging.getLogger("storefront.webhooks")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _check_secret(expected: str, given: Optional[str]):
    # an unset secret leaves the endpoint open (local development)
    if expected and not (given and secrets.compare_digest(given, expected)):
        raise Forbidden("Invalid webhook secret")


@router.post("/payment", summary="Payment provider callback")
def payment_webhook(
    payload: PaymentWebhookIn,
    x_webhook_secret: Optional[str] = Header(None),
    container: Container = Depends(container_dep),
    orders: OrderService = Depends(order_service),
    checkouts: CheckoutService = Depends(checkout_service),
):
    _check_secret(container.settings.PAYMENT_WEBHOOK_SECRET, x_webhook_secret)
    if payload.type == "checkout.session.completed":
        order = orders.confirm_payment(payload.session_id)
        return OrderOut.model_validate(order)
    if payload.type == "checkout.session.expired":
        session = checkouts.expire_session(payload.session_id)
        return {"received": True, "session_id": session.id, "status": session.status}
    log.info("ignoring payment event %s", payload.type)
    return {"received": True}


@router.post("/suppliers/{supplier_id}", response_model=DropshipOrderOut, summary="Supplier status callback")
def supplier_webhook(
    supplier_id: int,
    payload: SupplierUpdateIn,
    x_webhook_secret: Optional[str] = Header(None),
    container: Container = Depends(container_dep),
    svc: FulfillmentService = Depends(fulfillment_service),
):
    _check_secret(container.settings.SUPPLIER_WEBHOOK_SECRET, x_webhook_secret)
    return svc.supplier_update(
        supplier_id,
        payload.dropship_order_id,
        payload.status,
        tracking_number=payload.tracking_number,
        carrier=payload.carrier,
        tracking_url=payload.tracking_url,
        note=payload.note,
    )
