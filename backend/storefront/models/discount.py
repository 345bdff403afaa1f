from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from storefront.db import Base

PERCENTAGE = "percentage"
FIXED = "fixed"


class Discount(Base):
    __tablename__ = "discounts"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_discount_usage_nonneg"),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="ck_discount_usage_within_limit",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case
    kind = Column(String(16), nullable=False, default=PERCENTAGE)  # percentage, fixed
    # percentage: percent, two decimals allowed (12.5 == 12.5%); fixed: whole cents
    value = Column(Numeric(10, 2), nullable=False)
    valid_from = Column(DateTime, nullable=True)
    valid_to = Column(DateTime, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    min_order_cents = Column(Integer, nullable=False, default=0)
    max_discount_cents = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Discount code={self.code} kind={self.kind} value={self.value}>"
