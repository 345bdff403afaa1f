from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from storefront.models.checkout_session import CheckoutSession
from storefront.models.order import Order


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_session(self, session_id: str, for_update: bool = False) -> Optional[CheckoutSession]:
        qry = self.db.query(CheckoutSession).filter(CheckoutSession.id == session_id)
        if for_update:
            qry = qry.with_for_update()
        return qry.first()

    def get_by_session_id(self, session_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.checkout_session_id == session_id)
            .first()
        )

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.order_number == order_number)
            .first()
        )

    def list_for_owner(self, owner_id: str, limit: int = 50) -> List[Order]:
        return (
            self.db.query(Order)
            .filter(Order.owner_id == owner_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )
