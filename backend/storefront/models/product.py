from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(128), unique=True, index=True, nullable=False)
    name = Column(String(256), nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    variants = relationship("ProductVariant", back_populates="product")

    def __repr__(self):
        return f"<Product slug={self.slug} name={self.name}>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    sku = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(256), nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)

    product = relationship("Product", back_populates="variants")
    inventory = relationship("Inventory", back_populates="variant", uselist=False)
    source = relationship("ProductSource", back_populates="variant", uselist=False)

    @property
    def is_sellable(self) -> bool:
        return bool(self.active and self.product is not None and self.product.active)

    def __repr__(self):
        return f"<ProductVariant sku={self.sku} price_cents={self.price_cents}>"
