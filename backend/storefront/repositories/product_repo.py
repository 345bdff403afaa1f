from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models.inventory import Inventory
from storefront.models.product import Product, ProductVariant
from storefront.models.supplier import ProductSource, Supplier


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return (
            self.db.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id == variant_id)
            .first()
        )

    def get_variants(self, variant_ids: Iterable[int]) -> Dict[int, ProductVariant]:
        ids = list(set(variant_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id.in_(ids))
            .all()
        )
        return {v.id: v for v in rows}

    def get_sources(self, variant_ids: Iterable[int]) -> Dict[int, ProductSource]:
        ids = list(set(variant_ids))
        if not ids:
            return {}
        rows = self.db.query(ProductSource).filter(ProductSource.variant_id.in_(ids)).all()
        return {s.variant_id: s for s in rows}

    def create_or_update_product(self, slug: str, name: str, active: bool = True) -> Product:
        p = self.db.query(Product).filter(Product.slug == slug).first()
        if p:
            p.name = name
            p.active = active
        else:
            p = Product(slug=slug, name=name, active=active)
            self.db.add(p)
        self.db.flush()
        return p

    def create_or_update_variant(
        self,
        product: Product,
        sku: str,
        name: str,
        price_cents: int,
        stock: int = 0,
        active: bool = True,
    ) -> ProductVariant:
        v = self.db.query(ProductVariant).filter(ProductVariant.sku == sku).first()
        if v:
            v.product_id = product.id
            v.name = name
            v.price_cents = price_cents
            v.active = active
        else:
            v = ProductVariant(
                product_id=product.id, sku=sku, name=name, price_cents=price_cents, active=active
            )
            self.db.add(v)
            self.db.flush()
        inv = self.db.get(Inventory, v.id)
        if inv:
            inv.quantity = stock
        else:
            self.db.add(Inventory(variant_id=v.id, quantity=stock, reserved=0))
        self.db.flush()
        return v

    def create_or_update_supplier(self, name: str, status: str = "ACTIVE") -> Supplier:
        s = self.db.query(Supplier).filter(Supplier.name == name).first()
        if s:
            s.status = status
        else:
            s = Supplier(name=name, status=status)
            self.db.add(s)
        self.db.flush()
        return s

    def link_source(
        self, variant: ProductVariant, supplier: Supplier, supplier_sku: str, unit_cost_cents: int
    ) -> ProductSource:
        src = self.db.query(ProductSource).filter(ProductSource.variant_id == variant.id).first()
        if src:
            src.supplier_id = supplier.id
            src.supplier_sku = supplier_sku
            src.unit_cost_cents = unit_cost_cents
        else:
            src = ProductSource(
                variant_id=variant.id,
                supplier_id=supplier.id,
                supplier_sku=supplier_sku,
                unit_cost_cents=unit_cost_cents,
            )
            self.db.add(src)
        self.db.flush()
        return src
