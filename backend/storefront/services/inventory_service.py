import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.errors import BadRequest, Conflict, InsufficientStock, NotFound, OutOfStock
from storefront.models.inventory import Inventory
from storefront.models.inventory_shortfall import OPEN, RESOLVED, VOID, InventoryShortfall
from storefront.models.product import ProductVariant
from storefront.utils.clock import utcnow
from storefront.utils.locks import LockFactory
from storefront.utils.transactions import unit_of_work

log = logging.getLogger("storefront.inventory")

# every stock decrement runs under this lock
COMMIT_LOCK = "inventory-commit"


class InventoryService:
    """
    The inventory ledger. Reads are open to everyone; the only writer of
    on-hand quantity in the purchase path is ``decrement_for_order``, which
    the order store calls inside its commit unit.
    """

    def __init__(self, db: Session, locks: Optional[LockFactory] = None):
        self.db = db
        self.locks = locks

    def _row(self, variant_id: int, for_update: bool = False) -> Optional[Inventory]:
        qry = self.db.query(Inventory).filter(Inventory.variant_id == variant_id)
        if for_update:
            # no-op on SQLite; the commit lock covers it there
            qry = qry.with_for_update()
        return qry.first()

    def available_quantity(self, variant_id: int) -> int:
        """available = on hand - reserved; a variant without a ledger row has none."""
        if self.db.get(ProductVariant, variant_id) is None:
            raise NotFound(f"Variant {variant_id} not found", {"variant_id": variant_id})
        row = self._row(variant_id)
        return row.available if row else 0

    def check_available(self, variant_id: int, requested: int) -> int:
        """Advisory check: raises OutOfStock / InsufficientStock, never reserves."""
        available = self.available_quantity(variant_id)
        if available <= 0:
            raise OutOfStock(variant_id)
        if requested > available:
            raise InsufficientStock(variant_id, requested, available)
        return available

    def decrement_for_order(
        self, order_id: int, lines: Iterable[Tuple[int, int]]
    ) -> List[InventoryShortfall]:
        """
        Take purchased units out of stock for a committed order.

        Each line is clamped so available never drops below zero. Units that
        could not be taken are recorded as OPEN shortfalls (returned) instead
        of being silently dropped. Flushes only; the caller owns the commit.
        """
        merged = {}
        for variant_id, qty in lines:
            merged[variant_id] = merged.get(variant_id, 0) + int(qty)

        shortfalls = []
        # fixed order keeps row locks deadlock-free on databases that take them
        for variant_id in sorted(merged):
            qty = merged[variant_id]
            row = self._row(variant_id, for_update=True)
            available = row.available if row else 0
            taken = min(qty, available)
            if row is not None and taken:
                row.quantity = row.quantity - taken
            if taken < qty:
                sf = InventoryShortfall(
                    order_id=order_id,
                    variant_id=variant_id,
                    requested=qty,
                    decremented=taken,
                    shortfall=qty - taken,
                    status=OPEN,
                )
                self.db.add(sf)
                shortfalls.append(sf)
                log.warning(
                    "inventory shortfall order=%s variant=%s requested=%s decremented=%s",
                    order_id, variant_id, qty, taken,
                )
        self.db.flush()
        return shortfalls

    def release_for_order(self, order_id: int, lines: Iterable[Tuple[int, int]]) -> int:
        """
        Put a cancelled order's units back on hand.

        Only units that were actually taken go back: open shortfalls for the
        order are voided and their missing units are not restocked. Flushes
        only; the caller owns the commit. Returns the units restored.
        """
        merged = {}
        for variant_id, qty in lines:
            merged[variant_id] = merged.get(variant_id, 0) + int(qty)

        open_shortfalls = (
            self.db.query(InventoryShortfall)
            .filter(InventoryShortfall.order_id == order_id, InventoryShortfall.status == OPEN)
            .all()
        )
        missing = {}
        for sf in open_shortfalls:
            missing[sf.variant_id] = missing.get(sf.variant_id, 0) + sf.shortfall
            sf.status = VOID
            sf.resolved_at = utcnow()

        restored = 0
        for variant_id in sorted(merged):
            qty = merged[variant_id] - missing.get(variant_id, 0)
            if qty <= 0:
                continue
            row = self._row(variant_id, for_update=True)
            if row is None:
                row = Inventory(variant_id=variant_id, quantity=0, reserved=0)
                self.db.add(row)
            row.quantity = (row.quantity or 0) + qty
            restored += qty
        self.db.flush()
        log.info("order %s released %d unit(s) back to stock", order_id, restored)
        return restored

    def list_shortfalls(self, status: Optional[str] = OPEN) -> List[InventoryShortfall]:
        qry = self.db.query(InventoryShortfall)
        if status:
            qry = qry.filter(InventoryShortfall.status == status)
        return qry.order_by(InventoryShortfall.created_at, InventoryShortfall.id).all()

    def retry_shortfall(self, shortfall_id: int) -> InventoryShortfall:
        """Take the outstanding units of a shortfall once stock allows it."""
        if self.locks is None:
            raise Conflict("Inventory ledger has no lock factory configured")
        with self.locks.hold(COMMIT_LOCK):
            with unit_of_work(self.db):
                sf = self.db.get(InventoryShortfall, shortfall_id)
                if sf is None:
                    raise NotFound(f"Shortfall {shortfall_id} not found")
                if sf.status == RESOLVED:
                    return sf
                if sf.status == VOID:
                    raise Conflict(f"Shortfall {shortfall_id} belongs to a cancelled order")
                row = self._row(sf.variant_id, for_update=True)
                available = row.available if row else 0
                if available < sf.shortfall:
                    raise InsufficientStock(sf.variant_id, sf.shortfall, available)
                row.quantity = row.quantity - sf.shortfall
                sf.decremented = sf.requested
                sf.status = RESOLVED
                sf.resolved_at = utcnow()
            log.info("shortfall %s resolved (variant=%s)", sf.id, sf.variant_id)
            return sf

    def restock(self, variant_id: int, quantity: int) -> Inventory:
        """Add received units (admin / goods-in); never part of the purchase path."""
        if quantity <= 0:
            raise BadRequest("Restock quantity must be positive")
        if self.db.get(ProductVariant, variant_id) is None:
            raise NotFound(f"Variant {variant_id} not found", {"variant_id": variant_id})
        with unit_of_work(self.db):
            row = self._row(variant_id, for_update=True)
            if row is None:
                row = Inventory(variant_id=variant_id, quantity=0, reserved=0)
                self.db.add(row)
            row.quantity = (row.quantity or 0) + quantity
        return row
