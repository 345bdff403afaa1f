from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from storefront.db import Base


class Inventory(Base):
    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved_nonneg"),
        CheckConstraint("quantity >= reserved", name="ck_inventory_available_nonneg"),
    )

    variant_id = Column(Integer, ForeignKey("product_variants.id"), primary_key=True)
    quantity = Column(Integer, nullable=False, default=0)  # on hand
    reserved = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    variant = relationship("ProductVariant", back_populates="inventory")

    @property
    def available(self) -> int:
        return max(0, (self.quantity or 0) - (self.reserved or 0))
