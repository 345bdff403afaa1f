"""
Pricing & discount engine.

Everything in here is pure: the same lines, shipping method, discount terms,
destination and clock always produce the same summary. Callers re-run it from
live data for every preview and again when a checkout session is created; a
client-supplied total is never an input.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from storefront.errors import BadRequest
from storefront.models.discount import FIXED, PERCENTAGE
from storefront.repositories.discount_repo import DiscountRepository, normalize_code
from storefront.services.tax import round_cents
from storefront.utils.clock import as_utc, utcnow

TaxCalculator = Callable[[int, int, Optional[str], Optional[str]], int]


@dataclass(frozen=True)
class ShippingMethod:
    id: str
    name: str
    fee_cents: int
    estimated_days: str


SHIPPING_METHODS = {
    m.id: m
    for m in (
        ShippingMethod("standard", "Standard Shipping", 599, "5-7 business days"),
        ShippingMethod("express", "Express Shipping", 1299, "2-3 business days"),
        ShippingMethod("overnight", "Overnight Shipping", 2499, "1 business day"),
        ShippingMethod("free", "Free Shipping", 0, "5-7 business days"),
    )
}


@dataclass(frozen=True)
class PricedLine:
    variant_id: int
    unit_price_cents: int
    quantity: int
    sku: str = ""
    product_name: str = ""
    variant_name: str = ""

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        d = asdict(self)
        d["line_total_cents"] = self.line_total_cents
        return d


@dataclass(frozen=True)
class Destination:
    country: Optional[str] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class PricingSummary:
    lines: List[PricedLine] = field(default_factory=list)
    subtotal_cents: int = 0
    shipping_cents: int = 0
    tax_cents: int = 0
    discount_cents: int = 0
    total_cents: int = 0
    shipping_method: Optional[str] = None
    discount_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "items": [ln.to_dict() for ln in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "shipping_cents": self.shipping_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "shipping_method": self.shipping_method,
            "discount_code": self.discount_code,
        }


def shipping_fee(shipping_method_id: str) -> int:
    method = SHIPPING_METHODS.get(shipping_method_id)
    if method is None:
        raise BadRequest(
            f"Unknown shipping method: {shipping_method_id}",
            {"shipping_method": shipping_method_id, "allowed": sorted(SHIPPING_METHODS)},
        )
    return method.fee_cents


def validate_discount(discount, subtotal_cents: int, now: datetime):
    """Raise BadRequest unless ``discount`` can be redeemed on this subtotal at ``now``."""
    if discount is None or not discount.active:
        raise BadRequest("Invalid discount code")
    code = discount.code
    valid_from = as_utc(discount.valid_from)
    valid_to = as_utc(discount.valid_to)
    if valid_from is not None and now < valid_from:
        raise BadRequest("This discount code is not yet active", {"code": code})
    if valid_to is not None and now > valid_to:
        raise BadRequest("This discount code has expired", {"code": code})
    if discount.usage_limit is not None and (discount.usage_count or 0) >= discount.usage_limit:
        raise BadRequest("This discount code has reached its usage limit", {"code": code})
    minimum = discount.min_order_cents or 0
    if subtotal_cents < minimum:
        raise BadRequest(
            f"Minimum order value of {minimum} cents required for this discount code",
            {"code": code, "min_order_cents": minimum, "subtotal_cents": subtotal_cents},
        )


def discount_deduction(discount, subtotal_cents: int) -> int:
    if discount.kind == PERCENTAGE:
        amount = round_cents(Decimal(subtotal_cents) * Decimal(str(discount.value)) / Decimal(100))
        if discount.max_discount_cents is not None:
            amount = min(amount, discount.max_discount_cents)
    elif discount.kind == FIXED:
        amount = int(discount.value)
    else:
        raise BadRequest(f"Unsupported discount kind: {discount.kind}")
    return max(0, min(amount, subtotal_cents))


def compute_summary(
    items: Iterable[PricedLine],
    shipping_method_id: str,
    destination: Destination,
    tax_calculator: TaxCalculator,
    discount=None,
    now: Optional[datetime] = None,
) -> PricingSummary:
    lines = list(items)
    for ln in lines:
        if ln.quantity < 1:
            raise BadRequest("Quantity must be at least 1", {"variant_id": ln.variant_id})
        if ln.unit_price_cents < 0:
            raise BadRequest("Unit price cannot be negative", {"variant_id": ln.variant_id})

    subtotal = sum(ln.line_total_cents for ln in lines)
    shipping = shipping_fee(shipping_method_id)
    tax = tax_calculator(subtotal, shipping, destination.country, destination.state)

    deduction = 0
    code = None
    if discount is not None:
        validate_discount(discount, subtotal, as_utc(now) or utcnow())
        deduction = discount_deduction(discount, subtotal)
        code = discount.code

    total = max(0, subtotal + shipping + tax - deduction)
    return PricingSummary(
        lines=lines,
        subtotal_cents=subtotal,
        shipping_cents=shipping,
        tax_cents=tax,
        discount_cents=deduction,
        total_cents=total,
        shipping_method=shipping_method_id,
        discount_code=code,
    )


class PricingEngine:
    """Binds compute_summary to the discount repository and tax calculator."""

    def __init__(self, discounts: DiscountRepository, tax_calculator: TaxCalculator):
        self.discounts = discounts
        self.tax_calculator = tax_calculator

    def resolve_discount(self, discount_code: Optional[str]):
        if not normalize_code(discount_code):
            return None
        discount = self.discounts.get_by_code(discount_code)
        if discount is None:
            raise BadRequest("Invalid discount code", {"code": normalize_code(discount_code)})
        return discount

    def compute_summary(
        self,
        items: Iterable[PricedLine],
        shipping_method_id: str,
        discount_code: Optional[str] = None,
        destination: Optional[Destination] = None,
        now: Optional[datetime] = None,
    ) -> PricingSummary:
        return compute_summary(
            items,
            shipping_method_id,
            destination or Destination(),
            self.tax_calculator,
            discount=self.resolve_discount(discount_code),
            now=now,
        )
