from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from storefront.db import Base

PENDING = "PENDING"
COMPLETED = "COMPLETED"
EXPIRED = "EXPIRED"
CANCELLED = "CANCELLED"


class CheckoutSession(Base):
    """
    Immutable snapshot of a cart plus its computed totals, keyed by the
    payment provider's session id. Only ``status`` and ``completed_at``
    change after the row is written.
    """

    __tablename__ = "checkout_sessions"

    id = Column(String(128), primary_key=True)  # payment gateway session id
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="SET NULL"), nullable=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=PENDING)

    # [{variant_id, sku, product_name, variant_name, unit_price_cents, quantity, line_total_cents}]
    lines = Column(JSON, nullable=False)
    subtotal_cents = Column(Integer, nullable=False)
    shipping_cents = Column(Integer, nullable=False)
    tax_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)
    shipping_method = Column(String(32), nullable=False)
    discount_code = Column(String(50), nullable=True)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)

    redirect_url = Column(String(512), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime, nullable=True)
