"""BDD tests for checkout pricing."""

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from marketplace.config import MarketplaceSettings
from marketplace.exceptions import InsufficientStockError
from marketplace.pricing.engine import DiscountTerms, DiscountType, PricedLine, price_lines

scenarios("features/checkout_pricing.feature")


@pytest.fixture()
def pricing():
    return {"lines": [], "discount": None, "summary": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a cart line of {quantity:d} at {unit_price:f}"))
def cart_line(pricing, quantity, unit_price):
    pricing["lines"].append(
        PricedLine(key=f"line-{len(pricing['lines']) + 1}", name="Widget", unit_price=unit_price, quantity=quantity)
    )


@given(parsers.cfparse("a cart line of {quantity:d} at {unit_price:f} with {stock:d} in stock"))
def cart_line_with_stock(pricing, quantity, unit_price, stock):
    pricing["lines"].append(
        PricedLine(key="short-line", name="Widget", unit_price=unit_price, quantity=quantity, available_stock=stock)
    )


@given(parsers.cfparse("a {value:d} percent coupon"))
def percent_coupon(pricing, value):
    pricing["discount"] = DiscountTerms(code="PCT", discount_type=DiscountType.PERCENTAGE, value=float(value))


@given(parsers.cfparse("a fixed coupon worth {value:f}"))
def fixed_coupon(pricing, value):
    pricing["discount"] = DiscountTerms(code="FIXED", discount_type=DiscountType.FIXED, value=value)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the cart is priced for "{method}" shipping'))
def price_cart(pricing, method, error):
    try:
        pricing["summary"] = price_lines(
            pricing["lines"],
            discount=pricing["discount"],
            shipping_method=method,
            settings=MarketplaceSettings(),
        )
    except InsufficientStockError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the discount is {amount:f}"))
def discount_is(pricing, amount):
    assert pricing["summary"].discount == amount


@then(parsers.cfparse("the shipping is {amount:f}"))
def shipping_is(pricing, amount):
    assert pricing["summary"].shipping == amount


@then(parsers.cfparse("the tax is {amount:f}"))
def tax_is(pricing, amount):
    assert pricing["summary"].tax == amount


@then(parsers.cfparse("the total is {amount:f}"))
def total_is(pricing, amount):
    assert pricing["summary"].total == amount


@then("pricing fails for the short line")
def pricing_fails(error):
    assert isinstance(error["exc"], InsufficientStockError)
    assert "short-line" in error["exc"].messages
