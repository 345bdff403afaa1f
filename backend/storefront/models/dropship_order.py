from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.db import Base

PENDING = "PENDING"
PLACED = "PLACED"
CONFIRMED = "CONFIRMED"
SHIPPED = "SHIPPED"
DELIVERED = "DELIVERED"
ISSUE = "ISSUE"
CANCELLED = "CANCELLED"

STATUSES = (PENDING, PLACED, CONFIRMED, SHIPPED, DELIVERED, ISSUE, CANCELLED)


class DropshipOrder(Base):
    __tablename__ = "dropship_orders"
    __table_args__ = (UniqueConstraint("order_id", "supplier_id", name="uq_dropship_order_supplier"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=PENDING, index=True)
    tracking_number = Column(String(128), nullable=True)
    carrier = Column(String(64), nullable=True)
    tracking_url = Column(String(512), nullable=True)
    issue_note = Column(String(1024), nullable=True)
    total_cost_cents = Column(Integer, nullable=False, default=0)
    placed_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    order = relationship("Order", back_populates="dropship_orders")
    supplier = relationship("Supplier")
    items = relationship(
        "DropshipOrderItem", back_populates="dropship_order", cascade="all, delete-orphan"
    )


class DropshipOrderItem(Base):
    __tablename__ = "dropship_order_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    dropship_order_id = Column(
        Integer, ForeignKey("dropship_orders.id"), nullable=False, index=True
    )
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=False)
    product_source_id = Column(Integer, ForeignKey("product_sources.id"), nullable=False)
    supplier_sku = Column(String(128), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost_cents = Column(Integer, nullable=False)
    total_cost_cents = Column(Integer, nullable=False)

    dropship_order = relationship("DropshipOrder", back_populates="items")
