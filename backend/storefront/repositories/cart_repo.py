from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.utils.clock import utcnow


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, cart_id: int) -> Optional[Cart]:
        return self.db.get(Cart, cart_id)

    def get_by_session(self, session_token: str) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.session_token == session_token).first()

    def get_by_user(self, user_id: str) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def create(self, user_id: Optional[str] = None, session_token: Optional[str] = None) -> Cart:
        c = Cart(user_id=user_id, session_token=session_token)
        self.db.add(c)
        self.db.flush()
        return c

    def get_item(self, item_id: int) -> Optional[CartItem]:
        return self.db.get(CartItem, item_id)

    def find_item(self, cart: Cart, variant_id: int) -> Optional[CartItem]:
        return next((it for it in cart.items if it.variant_id == variant_id), None)

    def set_item_quantity(self, cart: Cart, variant_id: int, qty: int) -> CartItem:
        item = self.find_item(cart, variant_id)
        if item:
            item.quantity = qty
        else:
            item = CartItem(cart_id=cart.id, variant_id=variant_id, quantity=qty)
            self.db.add(item)
            cart.items.append(item)
        self.db.flush()
        return item

    def remove_item(self, item: CartItem):
        cart = item.cart
        if cart is not None and item in cart.items:
            cart.items.remove(item)
        self.db.delete(item)
        self.db.flush()

    def clear(self, cart: Cart):
        for it in list(cart.items):
            cart.items.remove(it)
            self.db.delete(it)
        self.db.flush()

    def touch(self, cart: Cart):
        cart.updated_at = utcnow()
        self.db.flush()

    def delete(self, cart: Cart):
        self.db.delete(cart)
        self.db.flush()
