"""Snapshot pricing for checkout.

All arithmetic is done in ``Decimal`` and rounded half-up to cents, then
handed to the aggregate as floats. Prices are captured from the catalogue at
build time and never recomputed afterwards.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ordering.settings import setting

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping_cost": float(self.shipping_cost),
            "discount": float(self.discount),
            "total_amount": float(self.total_amount),
        }


def line_total(unit_price, quantity) -> Decimal:
    return to_money(to_money(unit_price) * quantity)


def price_lines(line_totals) -> PriceBreakdown:
    """Compute subtotal, tax, shipping and total for a set of line totals.

    Shipping is free at or above ``FREE_SHIPPING_THRESHOLD``, otherwise a
    flat ``FLAT_SHIPPING_FEE``. Tax is ``TAX_RATE`` of the subtotal.
    """
    subtotal = to_money(sum((to_money(amount) for amount in line_totals), Decimal("0")))
    threshold = to_money(setting("FREE_SHIPPING_THRESHOLD"))
    shipping = Decimal("0.00") if subtotal >= threshold else to_money(setting("FLAT_SHIPPING_FEE"))
    tax = to_money(subtotal * Decimal(str(setting("TAX_RATE"))))
    discount = Decimal("0.00")
    total = to_money(subtotal + tax + shipping - discount)
    return PriceBreakdown(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping,
        discount=discount,
        total_amount=total,
    )
