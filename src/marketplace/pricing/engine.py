"""Pricing engine — turns a cart snapshot into an order summary.

Pure functions over plain data: no repositories, no clocks. The order of
operations is part of the contract because reordering silently changes what
the buyer pays:

1. ``subtotal = Σ unit_price * quantity``
2. discount from the coupon terms, capped at ``max_discount_amount`` and
   then at the subtotal
3. shipping: the method's flat rate, waived only for the standard tier when
   ``subtotal >= free_shipping_threshold``
4. ``tax = (subtotal - discount) * tax_rate``; shipping is never taxed
5. ``total = (subtotal - discount) + tax + shipping``
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.config import MarketplaceSettings, get_settings
from marketplace.exceptions import InsufficientStockError
from marketplace.pricing.money import to_money
from marketplace.pricing.shipping import ShippingMethod, parse_shipping_method, shipping_cost


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


@dataclass(frozen=True)
class DiscountTerms:
    """What a resolved coupon contributes to pricing. Never persisted on the cart."""

    code: str
    discount_type: DiscountType
    value: float
    max_discount_amount: float | None = None


@dataclass(frozen=True)
class PricedLine:
    key: str
    name: str
    unit_price: float
    quantity: int
    available_stock: int | None = None  # None: not checked

    @property
    def line_total(self) -> float:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class OrderSummary:
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float
    item_count: int
    shipping_method: str
    coupon_code: str | None = None
    currency: str = "USD"

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
            "item_count": self.item_count,
            "shipping_method": self.shipping_method,
            "coupon_code": self.coupon_code,
            "currency": self.currency,
        }


def tax_rate_for(jurisdiction=None, settings: MarketplaceSettings | None = None) -> float:
    """Tax rate for a buyer jurisdiction. A single configured rate today."""
    settings = settings or get_settings()
    return settings.tax_rate


def compute_discount(subtotal: float, terms: DiscountTerms | None) -> float:
    if terms is None or subtotal <= 0:
        return 0.0

    if terms.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * terms.value / 100
        if terms.max_discount_amount is not None:
            discount = min(discount, terms.max_discount_amount)
    else:
        discount = terms.value

    return to_money(min(max(discount, 0.0), subtotal))


def ensure_in_stock(lines) -> None:
    """Raise one message per short line, keyed by the line."""
    shortages = {}
    for line in lines:
        if line.available_stock is not None and line.quantity > line.available_stock:
            shortages[line.key] = [
                f"Only {line.available_stock} of {line.name} in stock, {line.quantity} requested"
            ]
    if shortages:
        raise InsufficientStockError(shortages)


def price_lines(
    lines,
    discount: DiscountTerms | None = None,
    shipping_method: str | ShippingMethod = ShippingMethod.STANDARD,
    jurisdiction=None,
    settings: MarketplaceSettings | None = None,
) -> OrderSummary:
    """Compute the order summary for ``lines`` (anything with unit_price/quantity)."""
    settings = settings or get_settings()
    method = shipping_method if isinstance(shipping_method, ShippingMethod) else parse_shipping_method(shipping_method)

    lines = list(lines)
    ensure_in_stock(lines)

    subtotal = to_money(sum(line.unit_price * line.quantity for line in lines))
    discount_amount = compute_discount(subtotal, discount)
    taxable = to_money(max(0.0, subtotal - discount_amount))
    tax = to_money(taxable * tax_rate_for(jurisdiction, settings))
    shipping = shipping_cost(method, subtotal, settings.free_shipping_threshold)

    return OrderSummary(
        subtotal=subtotal,
        discount=discount_amount,
        tax=tax,
        shipping=shipping,
        total=to_money(taxable + tax + shipping),
        item_count=sum(line.quantity for line in lines),
        shipping_method=method.value,
        coupon_code=discount.code if discount else None,
        currency=settings.currency,
    )
