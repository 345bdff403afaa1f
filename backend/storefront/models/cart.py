from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        # owned by a user or by an anonymous session, never both
        CheckConstraint(
            "(user_id IS NULL) <> (session_token IS NULL)", name="ck_cart_single_owner"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, index=True, nullable=True)
    session_token = Column(String(64), unique=True, index=True, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    @property
    def owner_id(self) -> str:
        return self.user_id or self.session_token
