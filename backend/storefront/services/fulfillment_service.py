import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from storefront.errors import BadRequest, Conflict, Forbidden, NotFound
from storefront.models import order as order_model
from storefront.models.dropship_order import (
    CANCELLED,
    CONFIRMED,
    DELIVERED,
    ISSUE,
    PENDING,
    PLACED,
    SHIPPED,
    STATUSES,
    DropshipOrder,
    DropshipOrderItem,
)
from storefront.models.order import Order
from storefront.repositories.product_repo import ProductRepository
from storefront.services.events import DROPSHIP_STATUS_CHANGED, EventBus
from storefront.utils.clock import utcnow
from storefront.utils.transactions import unit_of_work

log = logging.getLogger("storefront.fulfillment")

# happy path, in order; forward moves may skip steps
_RANK = {PENDING: 0, PLACED: 1, CONFIRMED: 2, SHIPPED: 3, DELIVERED: 4}

_TERMINAL = {DELIVERED, ISSUE, CANCELLED}

# exception states and the statuses they can be entered from
_ESCAPES = {
    CANCELLED: {PENDING, PLACED, CONFIRMED},
    ISSUE: {PENDING, PLACED, CONFIRMED, SHIPPED},
}

_TRACKED = {SHIPPED, DELIVERED}


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    if current in _TERMINAL:
        return False
    if target in _ESCAPES:
        return current in _ESCAPES[target]
    return _RANK[target] > _RANK[current]


def derive_shipping_status(statuses: List[str]) -> str:
    live = [s for s in statuses if s != CANCELLED]
    if not live:
        return order_model.UNFULFILLED
    if all(s == DELIVERED for s in live):
        return order_model.DELIVERED
    if all(s in _TRACKED for s in live):
        return order_model.SHIPPED
    if any(s in _TRACKED for s in live):
        return order_model.PARTIALLY_SHIPPED
    if any(s != PENDING for s in live):
        return order_model.PROCESSING
    return order_model.UNFULFILLED


class FulfillmentService:
    """Per-supplier dropship records for paid orders, and their status machine."""

    def __init__(self, db: Session, events: Optional[EventBus] = None):
        self.db = db
        self.events = events
        self.product_repo = ProductRepository(db)

    def get(self, dropship_id: int) -> DropshipOrder:
        d = (
            self.db.query(DropshipOrder)
            .options(selectinload(DropshipOrder.items))
            .filter(DropshipOrder.id == dropship_id)
            .first()
        )
        if d is None:
            raise NotFound(f"Dropship order {dropship_id} not found")
        return d

    def create_for_order(self, order: Order) -> List[DropshipOrder]:
        """
        Split an order's items by supplier. Items without a supplier source
        ship in-house and are skipped. Flushes only; safe to call twice.
        """
        if order.dropship_orders:
            return list(order.dropship_orders)

        sources = self.product_repo.get_sources(it.variant_id for it in order.items)
        groups = OrderedDict()
        for it in order.items:
            src = sources.get(it.variant_id)
            if src is None:
                continue
            groups.setdefault(src.supplier_id, []).append((it, src))

        created = []
        for supplier_id, pairs in groups.items():
            d = DropshipOrder(order_id=order.id, supplier_id=supplier_id, status=PENDING)
            total = 0
            for it, src in pairs:
                line_cost = src.unit_cost_cents * it.quantity
                total += line_cost
                d.items.append(
                    DropshipOrderItem(
                        order_item_id=it.id,
                        product_source_id=src.id,
                        supplier_sku=src.supplier_sku,
                        quantity=it.quantity,
                        unit_cost_cents=src.unit_cost_cents,
                        total_cost_cents=line_cost,
                    )
                )
            d.total_cost_cents = total
            self.db.add(d)
            order.dropship_orders.append(d)
            created.append(d)
        self.db.flush()
        if created:
            log.info("order %s split into %d dropship order(s)", order.order_number, len(created))
        return created

    def transition(
        self,
        dropship_id: int,
        status: str,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None,
        tracking_url: Optional[str] = None,
        note: Optional[str] = None,
        supplier_id: Optional[int] = None,
    ) -> DropshipOrder:
        status = (status or "").upper()
        if status not in STATUSES:
            raise BadRequest(f"Unknown fulfillment status: {status}", {"allowed": list(STATUSES)})
        has_tracking = any(v is not None for v in (tracking_number, carrier, tracking_url))
        if has_tracking and status not in _TRACKED:
            raise BadRequest("Tracking details can only be set on SHIPPED or DELIVERED orders")

        with unit_of_work(self.db):
            d = self.get(dropship_id)
            if supplier_id is not None and d.supplier_id != supplier_id:
                raise Forbidden("Dropship order belongs to another supplier")
            previous = d.status
            if not can_transition(previous, status):
                raise BadRequest(
                    f"Cannot move dropship order from {previous} to {status}",
                    {"from": previous, "to": status},
                )

            now = utcnow()
            if status != previous:
                d.status = status
                rank = _RANK.get(status, -1)
                if rank >= _RANK[PLACED] and d.placed_at is None:
                    d.placed_at = now
                if rank >= _RANK[SHIPPED] and d.shipped_at is None:
                    d.shipped_at = now
                if status == DELIVERED:
                    d.delivered_at = now
            if note is not None:
                d.issue_note = note
            if has_tracking:
                self._apply_tracking(d, tracking_number, carrier, tracking_url)
            d.updated_at = now
            self._sync_order_shipping_status(d.order)

        if status != previous:
            log.info("dropship order %s: %s -> %s", d.id, previous, status)
            self._notify(d, previous)
        else:
            log.info("dropship order %s: %s re-applied", d.id, status)
        return d

    def cancel_for_order(self, order: Order, note: Optional[str] = None) -> List[tuple]:
        """
        Cancel every open dropship order of ``order``. All or nothing: if any
        of them can no longer be cancelled, raises Conflict before touching
        the rest. Flushes only; returns (dropship, previous status) pairs for
        the caller to announce once committed.
        """
        open_ones = [d for d in order.dropship_orders if d.status != CANCELLED]
        blocked = [d for d in open_ones if not can_transition(d.status, CANCELLED)]
        if blocked:
            raise Conflict(
                "Some supplier orders can no longer be cancelled",
                {"dropship_orders": [{"id": d.id, "status": d.status} for d in blocked]},
            )
        now = utcnow()
        changed = []
        for d in open_ones:
            changed.append((d, d.status))
            d.status = CANCELLED
            if note is not None:
                d.issue_note = note
            d.updated_at = now
        self._sync_order_shipping_status(order)
        return changed

    def announce(self, changed: List[tuple]):
        for d, previous in changed:
            log.info("dropship order %s: %s -> %s", d.id, previous, d.status)
            self._notify(d, previous)

    def update_tracking(
        self,
        dropship_id: int,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None,
        tracking_url: Optional[str] = None,
    ) -> DropshipOrder:
        with unit_of_work(self.db):
            d = self.get(dropship_id)
            if d.status not in _TRACKED:
                raise BadRequest(
                    "Tracking details can only be set on SHIPPED or DELIVERED orders",
                    {"status": d.status},
                )
            self._apply_tracking(d, tracking_number, carrier, tracking_url)
            d.updated_at = utcnow()
        return d

    def supplier_update(self, supplier_id: int, dropship_id: int, status: str, **tracking) -> DropshipOrder:
        """A supplier reporting progress; it may only touch its own records."""
        return self.transition(dropship_id, status, supplier_id=supplier_id, **tracking)

    @staticmethod
    def _apply_tracking(d: DropshipOrder, tracking_number, carrier, tracking_url):
        if tracking_number is not None:
            d.tracking_number = tracking_number
        if carrier is not None:
            d.carrier = carrier
        if tracking_url is not None:
            d.tracking_url = tracking_url

    def _sync_order_shipping_status(self, order: Order):
        if order is None:
            return
        self.db.flush()
        statuses = [
            s
            for (s,) in self.db.query(DropshipOrder.status).filter(DropshipOrder.order_id == order.id)
        ]
        order.shipping_status = derive_shipping_status(statuses)

    def _notify(self, d: DropshipOrder, previous: str):
        if self.events is None:
            return
        self.events.publish(
            DROPSHIP_STATUS_CHANGED,
            {
                "dropship_order_id": d.id,
                "order_id": d.order_id,
                "supplier_id": d.supplier_id,
                "from": previous,
                "to": d.status,
            },
        )

    # --- admin reads -------------------------------------------------------

    def summary(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> Dict:
        """Live counts per status plus one page of records, newest first."""
        if status:
            status = status.upper()
            if status not in STATUSES:
                raise BadRequest(f"Unknown fulfillment status: {status}", {"allowed": list(STATUSES)})
        counts = {s: 0 for s in STATUSES}
        for s, n in (
            self.db.query(DropshipOrder.status, func.count(DropshipOrder.id))
            .group_by(DropshipOrder.status)
            .all()
        ):
            counts[s] = n

        qry = self.db.query(DropshipOrder).options(selectinload(DropshipOrder.items))
        if status:
            qry = qry.filter(DropshipOrder.status == status)
        total = qry.count()
        rows = (
            qry.order_by(DropshipOrder.created_at.desc(), DropshipOrder.id.desc())
            .offset(max(0, offset))
            .limit(max(1, min(limit, 200)))
            .all()
        )
        return {"counts": counts, "total": total, "orders": rows}

    def needing_attention(self, older_than_hours: int = 48) -> List[DropshipOrder]:
        """ISSUE records, plus PENDING ones nobody has placed within the window."""
        cutoff = utcnow() - timedelta(hours=older_than_hours)
        return (
            self.db.query(DropshipOrder)
            .filter(
                or_(
                    DropshipOrder.status == ISSUE,
                    (DropshipOrder.status == PENDING) & (DropshipOrder.created_at <= cutoff),
                )
            )
            .order_by(DropshipOrder.created_at)
            .all()
        )
