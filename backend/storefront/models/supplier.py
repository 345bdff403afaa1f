from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    status = Column(String(16), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE, SUSPENDED


class ProductSource(Base):
    """Which supplier ships a variant, under which supplier SKU, at what cost."""

    __tablename__ = "product_sources"

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(
        Integer, ForeignKey("product_variants.id"), unique=True, nullable=False, index=True
    )
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_sku = Column(String(128), nullable=False)
    unit_cost_cents = Column(Integer, nullable=False, default=0)

    variant = relationship("ProductVariant", back_populates="source")
    supplier = relationship("Supplier")
