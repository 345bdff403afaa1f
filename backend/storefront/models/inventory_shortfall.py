from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from storefront.db import Base

OPEN = "OPEN"
RESOLVED = "RESOLVED"
# the order was cancelled before the missing units were taken
VOID = "VOID"


class InventoryShortfall(Base):
    """Units an order bought that the ledger could not decrement at commit."""

    __tablename__ = "inventory_shortfalls"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    requested = Column(Integer, nullable=False)
    decremented = Column(Integer, nullable=False)
    shortfall = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=OPEN)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    resolved_at = Column(DateTime, nullable=True)
