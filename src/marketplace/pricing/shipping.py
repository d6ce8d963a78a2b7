"""Shipping methods and their flat rates."""

from enum import Enum

from protean.exceptions import ValidationError


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


SHIPPING_RATES = {
    ShippingMethod.STANDARD: 9.99,
    ShippingMethod.EXPRESS: 19.99,
    ShippingMethod.OVERNIGHT: 29.99,
}

# Only the baseline tier is ever waived by order volume
FREE_SHIPPING_ELIGIBLE = {ShippingMethod.STANDARD}


def parse_shipping_method(value) -> ShippingMethod:
    try:
        return ShippingMethod(value or ShippingMethod.STANDARD.value)
    except ValueError:
        options = ", ".join(m.value for m in ShippingMethod)
        raise ValidationError({"shipping_method": [f"Unknown shipping method {value!r}; choose one of {options}"]})


def shipping_cost(method: ShippingMethod, subtotal: float, free_shipping_threshold: float) -> float:
    if method in FREE_SHIPPING_ELIGIBLE and subtotal >= free_shipping_threshold:
        return 0.0
    return SHIPPING_RATES[method]
