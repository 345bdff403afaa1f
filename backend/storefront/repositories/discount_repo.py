from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from storefront.models.discount import Discount


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class DiscountRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> Optional[Discount]:
        norm = normalize_code(code)
        if not norm:
            return None
        return self.db.query(Discount).filter(Discount.code == norm).first()

    def redeem(self, code: str) -> bool:
        """
        Count one redemption of ``code``.

        A single conditional UPDATE, so two concurrent redemptions can never
        push usage_count past usage_limit. Returns False when the code is
        exhausted (or gone) and nothing was written.
        """
        norm = normalize_code(code)
        stmt = (
            update(Discount)
            .where(Discount.code == norm)
            .where(or_(Discount.usage_limit.is_(None), Discount.usage_count < Discount.usage_limit))
            .values(usage_count=Discount.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            return False
        # keep any loaded Discount instance in step with the row
        loaded = self.db.query(Discount).filter(Discount.code == norm).first()
        if loaded is not None:
            self.db.refresh(loaded)
        return True

    def create_or_update(self, code: str, **fields) -> Discount:
        d = self.get_by_code(code)
        if d is None:
            d = Discount(code=normalize_code(code))
            self.db.add(d)
        for k, v in fields.items():
            setattr(d, k, v)
        self.db.flush()
        return d
