from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from storefront.api.deps import CART_COOKIE, cart_service, get_identity
from storefront.errors import BadRequest
from storefront.schemas.cart_schema import AddItemIn, MergeCartIn, UpdateItemIn
from storefront.services.cart_service import CartService
from storefront.services.identity import Identity
from storefront.services.pricing import Destination

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", summary="Get cart with estimated totals")
def get_cart(
    shipping_method: str = "standard",
    discount_code: Optional[str] = None,
    country: Optional[str] = None,
    state: Optional[str] = None,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(cart_service),
):
    cart = svc.find_cart(identity)
    return svc.summary(cart, shipping_method, discount_code, Destination(country, state))


@router.post("/items", summary="Add item to cart")
def add_item(
    payload: AddItemIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(cart_service),
):
    cart = svc.get_or_create_cart(identity)
    svc.add_item(cart, payload.variant_id, payload.quantity)
    return svc.summary(cart)


@router.patch("/items/{item_id}", summary="Change item quantity (0 removes it)")
def update_item(
    item_id: int,
    payload: UpdateItemIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(cart_service),
):
    item = svc.get_item_for(identity, item_id)
    cart = item.cart
    svc.update_quantity(item, payload.quantity)
    return svc.summary(cart)


@router.delete("/items/{item_id}", summary="Remove item")
def remove_item(
    item_id: int,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(cart_service),
):
    item = svc.get_item_for(identity, item_id)
    cart = item.cart
    svc.remove_item(item)
    return svc.summary(cart)


@router.delete("", summary="Empty the cart")
def clear_cart(identity: Identity = Depends(get_identity), svc: CartService = Depends(cart_service)):
    cart = svc.find_cart(identity)
    if cart is not None:
        svc.clear(cart)
    return svc.summary(cart)


@router.post("/merge", summary="Merge the guest cart into the signed-in user's cart")
def merge_cart(
    request: Request,
    response: Response,
    payload: Optional[MergeCartIn] = None,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(cart_service),
):
    if not identity.is_user:
        raise BadRequest("Sign in before merging a guest cart")
    token = (payload.session_token if payload else None) or request.cookies.get(CART_COOKIE)
    if not token:
        raise BadRequest("No guest cart to merge")
    cart = svc.merge_guest_cart(token, identity.user_id)
    response.delete_cookie(CART_COOKIE)
    return svc.summary(cart)
