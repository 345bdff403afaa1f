import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from storefront.models.cart_activity import CartActivity
from storefront.services.events import CART_CLEARED, CART_UPDATED, ORDER_CREATED, EventBus
from storefront.utils.clock import utcnow

log = logging.getLogger("storefront.abandonment")


class AbandonmentTracker:
    """
    Records the last activity of every cart so an external mailer can find
    idle carts. Runs as an event-bus subscriber with its own short-lived
    session: it never shares the caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def register(self, bus: EventBus):
        bus.subscribe(CART_UPDATED, self.handle)
        bus.subscribe(CART_CLEARED, self.handle)
        bus.subscribe(ORDER_CREATED, self.handle)

    def handle(self, event: str, payload: Dict[str, Any]):
        cart_id = payload.get("cart_id")
        if cart_id is None:
            return
        with self.session_factory() as s:
            rec = s.query(CartActivity).filter(CartActivity.cart_id == cart_id).first()
            if rec is None:
                rec = CartActivity(cart_id=cart_id)
                s.add(rec)
            rec.owner_id = payload.get("owner_id") or rec.owner_id
            rec.last_event = event
            rec.item_count = int(payload.get("item_count") or 0)
            rec.last_activity_at = utcnow()
            if event == ORDER_CREATED:
                rec.recovered_at = utcnow()
            s.commit()

    def idle_carts(self, idle_hours: int = 24) -> List[CartActivity]:
        """Carts with items and no activity since ``idle_hours`` ago."""
        cutoff = utcnow() - timedelta(hours=idle_hours)
        with self.session_factory() as s:
            rows = (
                s.query(CartActivity)
                .filter(
                    CartActivity.item_count > 0,
                    CartActivity.last_activity_at <= cutoff,
                    CartActivity.recovered_at.is_(None),
                )
                .order_by(CartActivity.last_activity_at)
                .all()
            )
            s.expunge_all()
            return rows
