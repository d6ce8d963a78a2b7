"""Tests for the ShoppingCart aggregate."""

import pytest
from protean.exceptions import ValidationError

from marketplace.cart.cart import MAX_CART_LINES, ShoppingCart, cart_id_for
from marketplace.cart.events import CartCleared, CartCouponApplied, CartLineAdded, CartLineRemoved
from marketplace.exceptions import InsufficientStockError


def _cart_with_line(quantity=1, available_stock=10):
    cart = ShoppingCart.create(buyer_id="buyer-1")
    line = cart.add_line(
        product_id="product-1",
        vendor_id="vendor-1",
        product_name="Ceramic Mug",
        unit_price=12.5,
        quantity=quantity,
        available_stock=available_stock,
    )
    return cart, line


class TestAddLine:
    def test_adds_line_with_price_snapshot(self):
        cart, line = _cart_with_line(quantity=2)

        assert len(cart.lines) == 1
        assert line.unit_price == 12.5
        assert line.quantity == 2
        assert isinstance(cart._events[-1], CartLineAdded)

    def test_same_product_merges_into_one_line(self):
        cart, line = _cart_with_line(quantity=2)
        cart.add_line(
            product_id="product-1",
            vendor_id="vendor-1",
            product_name="Ceramic Mug",
            unit_price=12.5,
            quantity=3,
            available_stock=10,
        )

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 5

    def test_variants_are_separate_lines(self):
        cart, _ = _cart_with_line()
        cart.add_line(
            product_id="product-1",
            variant_id="variant-blue",
            vendor_id="vendor-1",
            product_name="Ceramic Mug",
            variant_name="Blue",
            unit_price=14.0,
            quantity=1,
        )
        assert len(cart.lines) == 2

    def test_merged_quantity_cannot_exceed_stock(self):
        cart, _ = _cart_with_line(quantity=4, available_stock=5)
        with pytest.raises(InsufficientStockError):
            cart.add_line(
                product_id="product-1",
                vendor_id="vendor-1",
                product_name="Ceramic Mug",
                unit_price=12.5,
                quantity=2,
                available_stock=5,
            )
        assert cart.lines[0].quantity == 4

    def test_quantity_below_one_rejected(self):
        cart = ShoppingCart.create(buyer_id="buyer-1")
        with pytest.raises(ValidationError):
            cart.add_line(
                product_id="product-1",
                vendor_id="vendor-1",
                product_name="Ceramic Mug",
                unit_price=12.5,
                quantity=0,
            )


class TestCartLimits:
    def _fill(self, cart, count):
        for index in range(count):
            cart.add_line(
                product_id=f"product-{index}",
                vendor_id="vendor-1",
                product_name=f"Print #{index}",
                unit_price=5.0,
                quantity=1,
            )

    def test_line_past_the_cap_is_rejected(self):
        cart = ShoppingCart.create(buyer_id="buyer-1")
        self._fill(cart, MAX_CART_LINES)

        with pytest.raises(ValidationError) as exc:
            cart.add_line(
                product_id="product-extra",
                vendor_id="vendor-1",
                product_name="One too many",
                unit_price=5.0,
                quantity=1,
            )

        assert "lines" in exc.value.messages
        assert len(cart.lines) == MAX_CART_LINES

    def test_full_cart_still_merges_into_existing_line(self):
        cart = ShoppingCart.create(buyer_id="buyer-1")
        self._fill(cart, MAX_CART_LINES)

        line = cart.add_line(
            product_id="product-0",
            vendor_id="vendor-1",
            product_name="Print #0",
            unit_price=5.0,
            quantity=2,
        )

        assert line.quantity == 3
        assert len(cart.lines) == MAX_CART_LINES

    def test_cart_id_is_derived_from_buyer(self):
        first = ShoppingCart.create(buyer_id="buyer-1")
        second = ShoppingCart.create(buyer_id="buyer-1")

        assert str(first.id) == str(second.id) == cart_id_for("buyer-1")
        assert cart_id_for("buyer-2") != cart_id_for("buyer-1")


class TestUpdateAndRemove:
    def test_update_quantity(self):
        cart, line = _cart_with_line()
        cart.update_line_quantity(line.id, 3, available_stock=10)
        assert cart.lines[0].quantity == 3

    def test_update_beyond_stock_rejected(self):
        cart, line = _cart_with_line()
        with pytest.raises(InsufficientStockError):
            cart.update_line_quantity(line.id, 11, available_stock=10)

    def test_update_to_zero_rejected(self):
        cart, line = _cart_with_line()
        with pytest.raises(ValidationError):
            cart.update_line_quantity(line.id, 0)

    def test_remove_line(self):
        cart, line = _cart_with_line()
        cart.remove_line(line.id)
        assert cart.is_empty
        assert isinstance(cart._events[-1], CartLineRemoved)

    def test_unknown_line_rejected(self):
        cart, _ = _cart_with_line()
        with pytest.raises(ValidationError):
            cart.remove_line("no-such-line")


class TestCouponAndClear:
    def test_apply_coupon_normalizes_code(self):
        cart, _ = _cart_with_line()
        cart.apply_coupon(" save15 ")
        assert cart.coupon_code == "SAVE15"
        assert isinstance(cart._events[-1], CartCouponApplied)

    def test_same_coupon_twice_rejected(self):
        cart, _ = _cart_with_line()
        cart.apply_coupon("SAVE15")
        with pytest.raises(ValidationError):
            cart.apply_coupon("save15")

    def test_remove_coupon_without_one_rejected(self):
        cart, _ = _cart_with_line()
        with pytest.raises(ValidationError):
            cart.remove_coupon()

    def test_clear_empties_lines_and_coupon(self):
        cart, _ = _cart_with_line()
        cart.apply_coupon("SAVE15")

        cart.clear(order_id="order-1")

        assert cart.is_empty
        assert cart.coupon_code is None
        assert cart._events[-1].order_id == "order-1"
        assert isinstance(cart._events[-1], CartCleared)
