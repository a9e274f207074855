"""Pricing Engine: the single source of truth for order and cart totals.

Pure functions over (unit price, quantity) lines and a loyalty-eligibility
flag. The live cart estimate, the authoritative checkout quote and the
subscription quote all go through ``quote()``, so equal inputs always produce
equal totals.

Computation order:
    subtotal = sum(round(price * qty))
    discount = subtotal * 20%  if eligible and subtotal > 20, else 0
    taxable  = subtotal - discount
    tax      = taxable * 20%
    shipping = 0 if subtotal >= 50, else 5.99
    total    = taxable + tax + shipping

Every derived amount is rounded to pennies (ROUND_HALF_UP) as soon as it is
derived, not only the final total.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

PENNY = Decimal("0.01")
ZERO = Decimal("0.00")

TAX_RATE = Decimal("0.20")
LOYALTY_DISCOUNT_RATE = Decimal("0.20")
LOYALTY_DISCOUNT_MIN_SUBTOTAL = Decimal("20.00")
LOYALTY_ELIGIBLE_AFTER_ORDERS = 10
FREE_SHIPPING_THRESHOLD = Decimal("50.00")
STANDARD_SHIPPING = Decimal("5.99")


def to_money(value) -> Decimal:
    """Coerce a float, int, str or Decimal to a penny-rounded Decimal.

    Floats go through ``str`` first so that 19.99 stays 19.99.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        amount = Decimal(value)
    return amount.quantize(PENNY, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity: int) -> Decimal:
    return to_money(to_money(unit_price) * quantity)


def is_loyalty_eligible(completed_orders: int | None) -> bool:
    return (completed_orders or 0) >= LOYALTY_ELIGIBLE_AFTER_ORDERS


@dataclass(frozen=True)
class PriceLine:
    unit_price: Decimal
    quantity: int

    @classmethod
    def of(cls, unit_price, quantity: int) -> "PriceLine":
        return cls(unit_price=to_money(unit_price), quantity=int(quantity))


@dataclass(frozen=True)
class PriceQuote:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    shipping: Decimal = ZERO
    total: Decimal = ZERO

    @property
    def taxable(self) -> Decimal:
        return to_money(self.subtotal - self.discount)

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
        }

    def as_floats(self) -> dict:
        """Float amounts for persistence in Protean ``Float`` fields."""
        return {key: float(value) for key, value in self.as_dict().items()}


def quote(lines: Iterable[PriceLine], loyalty_eligible: bool = False) -> PriceQuote:
    lines = list(lines)
    if not lines:
        return PriceQuote()

    subtotal = to_money(sum((line_total(line.unit_price, line.quantity) for line in lines), ZERO))

    discount = ZERO
    if loyalty_eligible and subtotal > LOYALTY_DISCOUNT_MIN_SUBTOTAL:
        discount = to_money(subtotal * LOYALTY_DISCOUNT_RATE)

    taxable = to_money(subtotal - discount)
    tax = to_money(taxable * TAX_RATE)
    shipping = ZERO if subtotal >= FREE_SHIPPING_THRESHOLD else STANDARD_SHIPPING
    total = to_money(taxable + tax + shipping)

    return PriceQuote(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        shipping=shipping,
        total=total,
    )
