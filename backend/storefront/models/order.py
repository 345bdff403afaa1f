from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base

CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"

PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_REFUNDED = "REFUNDED"

# shipping_status, derived from the dropship orders
UNFULFILLED = "UNFULFILLED"
PROCESSING = "PROCESSING"
PARTIALLY_SHIPPED = "PARTIALLY_SHIPPED"
SHIPPED = "SHIPPED"
DELIVERED = "DELIVERED"


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    # idempotency key: one order per confirmed checkout session
    checkout_session_id = Column(
        String(128), ForeignKey("checkout_sessions.id"), unique=True, nullable=False
    )
    owner_id = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=CONFIRMED)
    payment_status = Column(String(32), nullable=False, default=PAYMENT_COMPLETED)
    shipping_status = Column(String(32), nullable=False, default=UNFULFILLED)

    subtotal_cents = Column(Integer, nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    shipping_method = Column(String(32), nullable=True)
    discount_code = Column(String(50), nullable=True)
    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    cancelled_at = Column(DateTime, nullable=True)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    dropship_orders = relationship("DropshipOrder", back_populates="order")


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False)
    sku = Column(String(64), nullable=False)
    product_name = Column(String(256), nullable=True)
    variant_name = Column(String(256), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)  # price at purchase
    total_price_cents = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
