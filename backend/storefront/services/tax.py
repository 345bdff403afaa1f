from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

# static rates until a tax provider is wired in; "_default" is the fallback per level
TAX_RATES: Dict[str, object] = {
    "US": {
        "CA": Decimal("0.0725"),
        "NY": Decimal("0.08875"),
        "TX": Decimal("0.0625"),
        "FL": Decimal("0.06"),
        "_default": Decimal("0.05"),
    },
    "MY": Decimal("0.10"),
    "SG": Decimal("0.07"),
}


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StaticTaxCalculator:
    """Pure ``(subtotal, shipping, country, state) -> tax`` over TAX_RATES."""

    def __init__(self, rates: Optional[Dict[str, object]] = None):
        self.rates = rates if rates is not None else TAX_RATES

    def rate_for(self, country: Optional[str], state: Optional[str] = None) -> Decimal:
        entry = self.rates.get((country or "").upper())
        if entry is None:
            return Decimal("0")
        if isinstance(entry, dict):
            if state and state.upper() in entry:
                return entry[state.upper()]
            return entry.get("_default", Decimal("0"))
        return entry

    def __call__(self, subtotal_cents: int, shipping_cents: int, country: Optional[str], state: Optional[str] = None) -> int:
        # shipping is taxable alongside goods
        taxable = Decimal(subtotal_cents + shipping_cents)
        return round_cents(taxable * self.rate_for(country, state))
