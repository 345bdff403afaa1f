from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from storefront.db import Base


class CartActivity(Base):
    """Last-seen activity per cart, written by the abandonment tracker."""

    __tablename__ = "cart_activity"
    id = Column(Integer, primary_key=True, autoincrement=True)
    # no FK: the tracker must keep working after a cart row is gone
    cart_id = Column(Integer, unique=True, nullable=False, index=True)
    owner_id = Column(String(64), nullable=True)
    last_event = Column(String(64), nullable=True)
    item_count = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    recovered_at = Column(DateTime, nullable=True)
