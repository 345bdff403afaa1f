import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from storefront.errors import BadRequest, Conflict, Forbidden, NotFound
from storefront.models import checkout_session as cs
from storefront.models.checkout_session import CheckoutSession
from storefront.repositories.discount_repo import DiscountRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.cart_service import CartService
from storefront.services.identity import Identity
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing import Destination, PricingEngine
from storefront.services.tax import StaticTaxCalculator
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.transactions import unit_of_work

log = logging.getLogger("storefront.checkout")


class CheckoutService:
    """
    Turns a cart into a PENDING checkout session: a frozen copy of the lines
    and totals, keyed by the payment gateway's session id. Stock is checked
    here but not taken; that happens when the payment is confirmed.
    """

    def __init__(self, db: Session, gateway, tax_calculator=None):
        self.db = db
        self.gateway = gateway
        self.product_repo = ProductRepository(db)
        self.order_repo = OrderRepository(db)
        self.inventory = InventoryService(db)
        self.tax_calculator = tax_calculator or StaticTaxCalculator()
        self.pricing = PricingEngine(DiscountRepository(db), self.tax_calculator)

    def create_session(
        self,
        identity: Identity,
        shipping_method_id: str,
        shipping_address: Dict,
        billing_address: Optional[Dict] = None,
        discount_code: Optional[str] = None,
    ) -> CheckoutSession:
        if not shipping_address:
            raise BadRequest("Shipping address is required")

        carts = CartService(self.db, tax_calculator=self.tax_calculator)
        cart = carts.find_cart(identity)
        if cart is None or not cart.items:
            raise BadRequest("Cart is empty")

        variants = self.product_repo.get_variants(it.variant_id for it in cart.items)
        for it in cart.items:
            v = variants.get(it.variant_id)
            if v is None or not v.is_sellable:
                name = v.product.name if v is not None and v.product else f"variant {it.variant_id}"
                raise BadRequest(
                    f"{name} is no longer available", {"variant_id": it.variant_id}
                )
            self.inventory.check_available(it.variant_id, it.quantity)

        lines = carts.priced_lines(cart)
        destination = Destination(
            country=shipping_address.get("country"), state=shipping_address.get("state")
        )
        summary = self.pricing.compute_summary(lines, shipping_method_id, discount_code, destination)

        line_items = [
            {
                "name": f"{ln.product_name} - {ln.variant_name}" if ln.variant_name else ln.product_name,
                "unit_amount_cents": ln.unit_price_cents,
                "quantity": ln.quantity,
            }
            for ln in summary.lines
        ]
        opened = self.gateway.create_session(
            line_items,
            metadata={"cart_id": cart.id, "owner_id": identity.owner_id, "total_cents": summary.total_cents},
        )

        with unit_of_work(self.db):
            session = CheckoutSession(
                id=opened["session_id"],
                cart_id=cart.id,
                owner_id=identity.owner_id,
                status=cs.PENDING,
                lines=[ln.to_dict() for ln in summary.lines],
                subtotal_cents=summary.subtotal_cents,
                shipping_cents=summary.shipping_cents,
                tax_cents=summary.tax_cents,
                discount_cents=summary.discount_cents,
                total_cents=summary.total_cents,
                shipping_method=summary.shipping_method,
                discount_code=summary.discount_code,
                shipping_address=dict(shipping_address),
                billing_address=dict(billing_address or shipping_address),
                redirect_url=opened["redirect_url"],
                expires_at=opened["expires_at"],
            )
            self.db.add(session)
        log.info(
            "checkout session %s opened for cart %s total=%s",
            session.id, cart.id, session.total_cents,
        )
        return session

    def get_session(self, session_id: str, identity: Optional[Identity] = None) -> CheckoutSession:
        session = self.order_repo.get_session(session_id)
        if session is None:
            raise NotFound("Checkout session not found", {"session_id": session_id})
        if identity is not None and session.owner_id != identity.owner_id:
            raise Forbidden("Checkout session belongs to another shopper")
        return session

    def cancel_session(self, session_id: str, identity: Identity) -> CheckoutSession:
        with unit_of_work(self.db):
            session = self.get_session(session_id, identity)
            if session.status != cs.PENDING:
                raise Conflict(
                    f"Checkout session is {session.status}, only PENDING sessions can be cancelled",
                    {"status": session.status},
                )
            session.status = cs.CANCELLED
        log.info("checkout session %s cancelled", session_id)
        return session

    def expire_session(self, session_id: str) -> CheckoutSession:
        """Gateway reported the session expired. Completed sessions are left alone."""
        with unit_of_work(self.db):
            session = self.get_session(session_id)
            if session.status == cs.PENDING:
                session.status = cs.EXPIRED
                log.info("checkout session %s expired by gateway", session_id)
        return session

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        now = as_utc(now) or utcnow()
        with unit_of_work(self.db):
            count = (
                self.db.query(CheckoutSession)
                .filter(CheckoutSession.status == cs.PENDING, CheckoutSession.expires_at < now)
                .update({CheckoutSession.status: cs.EXPIRED}, synchronize_session=False)
            )
        if count:
            log.info("expired %d overdue checkout session(s)", count)
        return count
