# storefront/domain/pricing.py
"""
Checkout arithmetic.

    total = subtotal + shipping_fee + tax - discount_amount - loyalty_value

Policy values (fee, tax rate, discount table, point value) are configuration;
the services receive a ``PricingPolicy`` and never hardcode them.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR
from typing import Callable, Dict

from storefront.domain.errors import ValidationError
from storefront.utils import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping_fee: Decimal
    tax: Decimal
    discount_amount: Decimal
    loyalty_value: Decimal
    loyalty_points_earned: int
    total_amount: Decimal


def percentage_discounts(codes: Dict[str, Decimal]) -> Callable[[str | None, Decimal], Decimal]:
    """Discount lookup keyed by code; unknown or empty codes give nothing."""

    def lookup(code: str | None, subtotal: Decimal) -> Decimal:
        if not code:
            return ZERO
        percent = codes.get(code.strip().upper())
        if percent is None:
            return ZERO
        return money(subtotal * percent / Decimal(100))

    return lookup


@dataclass(frozen=True)
class PricingPolicy:
    shipping_fee: Decimal = settings.SHIPPING_FEE
    free_shipping_threshold: Decimal = settings.FREE_SHIPPING_THRESHOLD
    tax_rate: Decimal = settings.TAX_RATE
    loyalty_point_value: Decimal = settings.LOYALTY_POINT_VALUE
    loyalty_earn_rate: Decimal = settings.LOYALTY_EARN_RATE
    discount: Callable[[str | None, Decimal], Decimal] = field(
        default_factory=lambda: percentage_discounts(settings.DISCOUNT_CODES)
    )

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if self.free_shipping_threshold > 0 and subtotal >= self.free_shipping_threshold:
            return ZERO
        return money(self.shipping_fee)

    def loyalty_value(self, points: int) -> Decimal:
        return money(Decimal(points) * self.loyalty_point_value)

    def totals(self, subtotal: Decimal, discount_code: str | None = None, loyalty_points: int = 0) -> OrderTotals:
        subtotal = money(subtotal)
        discount_amount = min(self.discount(discount_code, subtotal), subtotal)
        loyalty_value = self.loyalty_value(loyalty_points)
        if loyalty_value > subtotal - discount_amount:
            raise ValidationError("Loyalty points exceed the order value", loyalty_points=loyalty_points)
        tax = money(subtotal * self.tax_rate)
        shipping_fee = self.shipping_for(subtotal)
        merchandise = subtotal - discount_amount - loyalty_value
        earned = int((merchandise * self.loyalty_earn_rate).to_integral_value(rounding=ROUND_FLOOR))

        return OrderTotals(
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            tax=tax,
            discount_amount=discount_amount,
            loyalty_value=loyalty_value,
            loyalty_points_earned=earned,
            total_amount=money(subtotal + shipping_fee + tax - discount_amount - loyalty_value),
        )
