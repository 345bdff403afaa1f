import secrets
from typing import Optional

from fastapi import Depends, Header, Request, Response
from sqlalchemy.orm import Session

from storefront.container import Container, get_container
from storefront.db import get_db
from storefront.errors import Forbidden
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.identity import Identity
from storefront.services.inventory_service import InventoryService
from storefront.services.order_service import OrderService

CART_COOKIE = "cart_session"
CART_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def container_dep() -> Container:
    return get_container()


def get_identity(
    request: Request,
    response: Response,
    x_user_id: Optional[str] = Header(None),
) -> Identity:
    """
    X-User-Id (set by the auth layer in front of us) wins; otherwise the
    anonymous cart_session cookie, issuing a fresh one when absent.
    """
    if x_user_id:
        return Identity.user(x_user_id)
    token = request.cookies.get(CART_COOKIE)
    if not token:
        token = secrets.token_urlsafe(24)
        response.set_cookie(
            CART_COOKIE, token, max_age=CART_COOKIE_MAX_AGE, httponly=True, samesite="lax"
        )
    return Identity.guest(token)


def require_admin(
    x_admin_key: Optional[str] = Header(None),
    container: Container = Depends(container_dep),
):
    expected = container.settings.ADMIN_API_KEY
    if not expected:
        raise Forbidden("Admin API is disabled")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise Forbidden("Invalid admin key")


def cart_service(db: Session = Depends(get_db), container: Container = Depends(container_dep)):
    return CartService(db, container.event_bus, container.tax_calculator)


def checkout_service(db: Session = Depends(get_db), container: Container = Depends(container_dep)):
    return CheckoutService(db, container.payment_gateway, container.tax_calculator)


def order_service(db: Session = Depends(get_db), container: Container = Depends(container_dep)):
    return OrderService(db, container.locks, container.event_bus)


def fulfillment_service(db: Session = Depends(get_db), container: Container = Depends(container_dep)):
    return FulfillmentService(db, container.event_bus)


def inventory_service(db: Session = Depends(get_db), container: Container = Depends(container_dep)):
    return InventoryService(db, container.locks)
