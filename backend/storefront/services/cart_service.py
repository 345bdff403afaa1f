import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import BadRequest, Forbidden, NotFound
from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.discount_repo import DiscountRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.events import CART_CLEARED, CART_UPDATED, EventBus
from storefront.services.identity import Identity
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing import Destination, PricedLine, PricingEngine
from storefront.services.tax import StaticTaxCalculator

log = logging.getLogger("storefront.cart")


class CartService:
    def __init__(self, db: Session, events: Optional[EventBus] = None, tax_calculator=None):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)
        self.inventory = InventoryService(db)
        self.events = events
        self.pricing = PricingEngine(DiscountRepository(db), tax_calculator or StaticTaxCalculator())

    # --- identity / lookup -------------------------------------------------

    def find_cart(self, identity: Identity) -> Optional[Cart]:
        if identity.is_user:
            return self.cart_repo.get_by_user(identity.user_id)
        return self.cart_repo.get_by_session(identity.session_token)

    def get_or_create_cart(self, identity: Identity) -> Cart:
        c = self.find_cart(identity)
        if c:
            return c
        try:
            c = self.cart_repo.create(user_id=identity.user_id, session_token=identity.session_token)
            self.db.commit()
            return c
        except IntegrityError:
            # a concurrent request created it first; use theirs
            self.db.rollback()
            c = self.find_cart(identity)
            if c is None:
                raise
            return c

    def get_item_for(self, identity: Identity, item_id: int) -> CartItem:
        item = self.cart_repo.get_item(item_id)
        if item is None:
            raise NotFound("Cart item not found", {"item_id": item_id})
        if item.cart.owner_id != identity.owner_id:
            raise Forbidden("Cart item belongs to another cart", {"item_id": item_id})
        return item

    # --- mutations ---------------------------------------------------------

    def _sellable_variant(self, variant_id: int):
        variant = self.product_repo.get_variant(variant_id)
        if variant is None or not variant.is_sellable:
            raise NotFound("This product is no longer available", {"variant_id": variant_id})
        return variant

    def add_item(self, cart: Cart, variant_id: int, qty: int) -> CartItem:
        if qty is None or qty < 1:
            raise BadRequest("Quantity must be at least 1")
        self._sellable_variant(variant_id)
        existing = self.cart_repo.find_item(cart, variant_id)
        wanted = qty + (existing.quantity if existing else 0)
        self.inventory.check_available(variant_id, wanted)

        item = self.cart_repo.set_item_quantity(cart, variant_id, wanted)
        self.cart_repo.touch(cart)
        self.db.commit()
        self._notify(CART_UPDATED, cart)
        return item

    def update_quantity(self, item: CartItem, qty: int) -> Optional[CartItem]:
        """qty == 0 removes the line; returns None in that case."""
        if qty is None or qty < 0:
            raise BadRequest("Quantity cannot be negative")
        cart = item.cart
        if qty == 0:
            self.remove_item(item)
            return None
        self.inventory.check_available(item.variant_id, qty)
        item.quantity = qty
        self.cart_repo.touch(cart)
        self.db.commit()
        self._notify(CART_UPDATED, cart)
        return item

    def remove_item(self, item: CartItem):
        cart = item.cart
        self.cart_repo.remove_item(item)
        self.cart_repo.touch(cart)
        self.db.commit()
        self._notify(CART_UPDATED, cart)

    def clear(self, cart: Cart):
        self.cart_repo.clear(cart)
        self.cart_repo.touch(cart)
        self.db.commit()
        self._notify(CART_CLEARED, cart)

    def merge_guest_cart(self, session_token: str, user_id: str) -> Cart:
        """
        Fold an anonymous cart into the signed-in user's cart.

        Quantities for the same variant are summed and clamped to current
        available stock; lines that are no longer sellable or have no stock
        are dropped. The guest cart is deleted afterwards. A user without a
        cart simply takes over the guest cart.
        """
        guest = self.cart_repo.get_by_session(session_token)
        user_cart = self.cart_repo.get_by_user(user_id)
        if guest is None:
            return user_cart or self.get_or_create_cart(Identity.user(user_id))

        if user_cart is None:
            guest.session_token = None
            guest.user_id = user_id
            target = guest
        else:
            target = user_cart
            for gi in list(guest.items):
                existing = self.cart_repo.find_item(target, gi.variant_id)
                wanted = gi.quantity + (existing.quantity if existing else 0)
                self.cart_repo.set_item_quantity(target, gi.variant_id, wanted)
            self.cart_repo.delete(guest)

        for it in list(target.items):
            variant = self.product_repo.get_variant(it.variant_id)
            available = self.inventory.available_quantity(it.variant_id) if variant else 0
            if variant is None or not variant.is_sellable or available <= 0:
                self.cart_repo.remove_item(it)
            elif it.quantity > available:
                it.quantity = available
        self.cart_repo.touch(target)
        self.db.commit()
        log.info("merged guest cart into user cart %s", target.id)
        self._notify(CART_UPDATED, target)
        return target

    def _notify(self, event: str, cart: Cart):
        if self.events is None:
            return
        self.events.publish(
            event,
            {
                "cart_id": cart.id,
                "owner_id": cart.owner_id,
                "item_count": sum(it.quantity for it in cart.items),
            },
        )

    # --- reads -------------------------------------------------------------

    def priced_lines(self, cart: Cart) -> List[PricedLine]:
        variants = self.product_repo.get_variants(it.variant_id for it in cart.items)
        lines = []
        for it in cart.items:
            v = variants.get(it.variant_id)
            if v is None:
                raise NotFound("Variant not found", {"variant_id": it.variant_id})
            lines.append(
                PricedLine(
                    variant_id=v.id,
                    unit_price_cents=v.price_cents,
                    quantity=it.quantity,
                    sku=v.sku,
                    product_name=v.product.name if v.product else "",
                    variant_name=v.name,
                )
            )
        return lines

    def summary(
        self,
        cart: Optional[Cart],
        shipping_method: str = "standard",
        discount_code: Optional[str] = None,
        destination: Optional[Destination] = None,
    ) -> dict:
        if cart is None or not cart.items:
            return {
                "cart_id": cart.id if cart else None,
                "items": [],
                "subtotal_cents": 0,
                "estimated_shipping_cents": 0,
                "estimated_tax_cents": 0,
                "estimated_discount_cents": 0,
                "estimated_total_cents": 0,
            }
        lines = self.priced_lines(cart)
        s = self.pricing.compute_summary(lines, shipping_method, discount_code, destination)
        items = []
        for it, ln in zip(cart.items, lines):
            d = ln.to_dict()
            d["id"] = it.id
            d["available"] = self.inventory.available_quantity(it.variant_id)
            items.append(d)
        return {
            "cart_id": cart.id,
            "items": items,
            "subtotal_cents": s.subtotal_cents,
            "estimated_shipping_cents": s.shipping_cents,
            "estimated_tax_cents": s.tax_cents,
            "estimated_discount_cents": s.discount_cents,
            "estimated_total_cents": s.total_cents,
            "shipping_method": s.shipping_method,
            "discount_code": s.discount_code,
        }
