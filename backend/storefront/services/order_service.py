import logging
import secrets
import string
import time
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import BadRequest, Conflict, Expired, Forbidden, NotFound
from storefront.models import checkout_session as cs
from storefront.models import order as order_model
from storefront.models.order import Order, OrderItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.discount_repo import DiscountRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.services.events import INVENTORY_SHORTFALL, ORDER_CANCELLED, ORDER_CREATED, EventBus
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.identity import Identity
from storefront.services.inventory_service import COMMIT_LOCK, InventoryService
from storefront.services.pricing import validate_discount
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.locks import LockFactory
from storefront.utils.transactions import unit_of_work

log = logging.getLogger("storefront.orders")

_BASE36 = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_order_number() -> str:
    """ORD-<base36 millis>-<4 random chars>: sortable by time, short enough to read out."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"ORD-{_base36(int(time.time() * 1000))}-{suffix}"


class OrderService:
    def __init__(self, db: Session, locks: LockFactory, events: Optional[EventBus] = None):
        self.db = db
        self.locks = locks
        self.events = events
        self.order_repo = OrderRepository(db)
        self.cart_repo = CartRepository(db)
        self.discounts = DiscountRepository(db)
        self.inventory = InventoryService(db, locks)
        self.fulfillment = FulfillmentService(db, events)

    def confirm_payment(self, session_id: str) -> Order:
        """
        Materialize a paid checkout session as an Order. Idempotent: a
        session that already produced an order returns that order.
        """
        existing = self.order_repo.get_by_session_id(session_id)
        if existing is not None:
            log.info("duplicate confirmation for session %s -> %s", session_id, existing.order_number)
            return existing

        session = self.order_repo.get_session(session_id)
        if session is None:
            raise NotFound("Checkout session not found", {"session_id": session_id})
        if session.status == cs.COMPLETED:
            # another confirmation committed after our first lookup
            existing = self.order_repo.get_by_session_id(session_id)
            if existing is not None:
                return existing
        self._ensure_confirmable(session)

        with self.locks.hold(COMMIT_LOCK):
            # whatever we read before waiting on the lock may be stale
            self.db.rollback()
            try:
                with unit_of_work(self.db):
                    order, shortfalls = self._commit(session_id)
            except IntegrityError:
                # lost the race on the session's unique order
                order = self.order_repo.get_by_session_id(session_id)
                if order is None:
                    raise
                log.info("concurrent confirmation for session %s lost the race", session_id)
                return order

        if order is None:
            return self.order_repo.get_by_session_id(session_id)

        log.info(
            "order %s created from session %s total=%s",
            order.order_number, session_id, order.total_cents,
        )
        self._publish(order, shortfalls)
        return order

    def _ensure_confirmable(self, session):
        if session.status == cs.CANCELLED:
            raise Conflict("Checkout session was cancelled", {"session_id": session.id})
        if session.status == cs.EXPIRED:
            raise Expired("Checkout session has expired", {"session_id": session.id})
        if session.status != cs.PENDING:
            raise Conflict(
                f"Checkout session is {session.status}", {"session_id": session.id}
            )
        if utcnow() > as_utc(session.expires_at):
            with unit_of_work(self.db):
                session.status = cs.EXPIRED
            log.info("late confirmation for session %s; marked EXPIRED", session.id)
            raise Expired("Checkout session has expired", {"session_id": session.id})

    def _commit(self, session_id: str):
        """Everything that makes an order real. Runs inside one unit of work."""
        if self.order_repo.get_by_session_id(session_id) is not None:
            return None, []
        session = self.order_repo.get_session(session_id, for_update=True)
        # status or expiry may have changed while we waited for the lock
        self._ensure_confirmable(session)

        if session.discount_code:
            self._redeem_discount(session)

        order = Order(
            order_number=generate_order_number(),
            checkout_session_id=session.id,
            owner_id=session.owner_id,
            subtotal_cents=session.subtotal_cents,
            shipping_cents=session.shipping_cents,
            tax_cents=session.tax_cents,
            discount_cents=session.discount_cents,
            total_cents=session.total_cents,
            shipping_method=session.shipping_method,
            discount_code=session.discount_code,
            shipping_address=session.shipping_address,
            billing_address=session.billing_address,
        )
        for ln in session.lines:
            order.items.append(
                OrderItem(
                    variant_id=ln["variant_id"],
                    sku=ln.get("sku") or "",
                    product_name=ln.get("product_name"),
                    variant_name=ln.get("variant_name"),
                    quantity=ln["quantity"],
                    unit_price_cents=ln["unit_price_cents"],
                    total_price_cents=ln["unit_price_cents"] * ln["quantity"],
                )
            )
        self.db.add(order)
        self.db.flush()

        shortfalls = self.inventory.decrement_for_order(
            order.id, [(ln["variant_id"], ln["quantity"]) for ln in session.lines]
        )

        session.status = cs.COMPLETED
        session.completed_at = utcnow()

        if session.cart_id is not None:
            cart = self.cart_repo.get(session.cart_id)
            if cart is not None:
                self.cart_repo.clear(cart)
                self.cart_repo.touch(cart)

        self.fulfillment.create_for_order(order)
        return order, shortfalls

    def _redeem_discount(self, session):
        discount = self.discounts.get_by_code(session.discount_code)
        try:
            validate_discount(discount, session.subtotal_cents, utcnow())
        except BadRequest as e:
            raise Conflict(
                f"Discount {session.discount_code} can no longer be applied: {e.message}",
                {"code": session.discount_code},
            )
        if not self.discounts.redeem(session.discount_code):
            raise Conflict(
                f"Discount {session.discount_code} has reached its usage limit",
                {"code": session.discount_code},
            )

    def _publish(self, order: Order, shortfalls):
        if self.events is None:
            return
        session = self.order_repo.get_session(order.checkout_session_id)
        self.events.publish(
            ORDER_CREATED,
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "owner_id": order.owner_id,
                "cart_id": session.cart_id if session else None,
                "item_count": 0,
                "total_cents": order.total_cents,
            },
        )
        for sf in shortfalls:
            self.events.publish(
                INVENTORY_SHORTFALL,
                {
                    "shortfall_id": sf.id,
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "variant_id": sf.variant_id,
                    "shortfall": sf.shortfall,
                },
            )

    def cancel_order(self, order_number: str, identity: Identity) -> Order:
        """
        Customer cancellation of an order that has not shipped: stock taken
        for it goes back on hand, its supplier orders are cancelled and the
        payment is marked refunded, all in one unit of work.
        """
        self.get_order(order_number, identity)

        with self.locks.hold(COMMIT_LOCK):
            self.db.rollback()
            with unit_of_work(self.db):
                order = self.order_repo.get_by_number(order_number)
                if order.status == order_model.CANCELLED:
                    raise Conflict("Order is already cancelled", {"order_number": order_number})
                if order.shipping_status in (order_model.SHIPPED, order_model.DELIVERED):
                    raise Conflict(
                        "Cannot cancel an order that has been shipped or delivered",
                        {"order_number": order_number, "shipping_status": order.shipping_status},
                    )
                changed = self.fulfillment.cancel_for_order(order, note="Cancelled by customer")
                restored = self.inventory.release_for_order(
                    order.id, [(it.variant_id, it.quantity) for it in order.items]
                )
                order.status = order_model.CANCELLED
                order.payment_status = order_model.PAYMENT_REFUNDED
                order.cancelled_at = utcnow()

        log.info("order %s cancelled; %d unit(s) back in stock", order_number, restored)
        self.fulfillment.announce(changed)
        if self.events is not None:
            self.events.publish(
                ORDER_CANCELLED,
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "owner_id": order.owner_id,
                    "total_cents": order.total_cents,
                },
            )
        return order

    # --- reads -------------------------------------------------------------

    def get_order(self, order_number: str, identity: Identity) -> Order:
        order = self.order_repo.get_by_number(order_number)
        if order is None:
            raise NotFound("Order not found", {"order_number": order_number})
        if order.owner_id != identity.owner_id:
            raise Forbidden("Order belongs to another customer")
        return order

    def list_orders(self, identity: Identity, limit: int = 50) -> List[Order]:
        return self.order_repo.list_for_owner(identity.owner_id, limit=limit)
