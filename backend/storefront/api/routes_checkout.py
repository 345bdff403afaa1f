from fastapi import APIRouter, Depends

from storefront.api.deps import checkout_service, get_identity
from storefront.schemas.checkout_schema import CheckoutSessionOut, CreateSessionIn, SessionCreatedOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.identity import Identity

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.post("/sessions", response_model=SessionCreatedOut, summary="Open a checkout session")
def create_session(
    payload: CreateSessionIn,
    identity: Identity = Depends(get_identity),
    svc: CheckoutService = Depends(checkout_service),
):
    billing = payload.billing_address.model_dump() if payload.billing_address else None
    session = svc.create_session(
        identity,
        payload.shipping_method,
        payload.shipping_address.model_dump(),
        billing_address=billing,
        discount_code=payload.discount_code,
    )
    return {"session_id": session.id, "redirect_url": session.redirect_url}


@router.get("/sessions/{session_id}", response_model=CheckoutSessionOut)
def get_session(
    session_id: str,
    identity: Identity = Depends(get_identity),
    svc: CheckoutService = Depends(checkout_service),
):
    return svc.get_session(session_id, identity)


@router.post("/sessions/{session_id}/cancel", response_model=CheckoutSessionOut)
def cancel_session(
    session_id: str,
    identity: Identity = Depends(get_identity),
    svc: CheckoutService = Depends(checkout_service),
):
    return svc.cancel_session(session_id, identity)
