"""Application tests for cart line and coupon commands."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.cart.cart import MAX_CART_LINES, ShoppingCart
from marketplace.cart.coupons import RemoveCartCoupon
from marketplace.cart.items import ClearCart, RefreshCartPrices, RemoveCartLine, UpdateCartLineQuantity
from marketplace.cart.quote import find_cart, get_cart, quote_cart
from marketplace.catalogue.management import AddProductVariant
from marketplace.catalogue.product import Product
from marketplace.coupon.coupon import CouponRejection
from marketplace.coupon.issuance import DeactivateCoupon, IssueCoupon
from marketplace.exceptions import CouponExhaustedError, CouponRejectedError, InsufficientStockError
from marketplace.utils.paging import fetch_all


@pytest.fixture
def mug(storefront):
    vendor_id = storefront.register_vendor()
    return storefront.list_product(vendor_id, name="Ceramic Mug", price=20.0, stock_quantity=4)


def _issue_coupon(**overrides):
    defaults = {"code": "SAVE10", "discount_type": "fixed", "discount_value": 10.0}
    defaults.update(overrides)
    return current_domain.process(IssueCoupon(**defaults), asynchronous=False)


def _set_price(product_id, price):
    repo = current_domain.repository_for(Product)
    product = repo.get(product_id)
    product.price = price
    repo.add(product)


class TestCartLines:
    def test_first_line_creates_the_cart(self, storefront, mug):
        cart_id = storefront.add_to_cart("buyer-1", mug, quantity=2)

        cart = get_cart("buyer-1")
        assert str(cart.id) == cart_id
        assert cart.lines[0].unit_price == 20.0
        assert cart.lines[0].quantity == 2

    def test_quantity_limited_by_live_stock(self, storefront, mug):
        storefront.add_to_cart("buyer-1", mug, quantity=3)
        with pytest.raises(InsufficientStockError):
            storefront.add_to_cart("buyer-1", mug, quantity=2)
        assert get_cart("buyer-1").lines[0].quantity == 3

    def test_inactive_product_cannot_be_added(self, storefront, mug):
        repo = current_domain.repository_for(Product)
        product = repo.get(mug)
        product.status = "inactive"
        repo.add(product)

        with pytest.raises(ValidationError) as exc:
            storefront.add_to_cart("buyer-1", mug)
        assert "product_id" in exc.value.messages

    def test_variant_line_uses_variant_price(self, storefront, mug):
        variant_id = current_domain.process(
            AddProductVariant(product_id=mug, name="Blue", price=24.0, stock_quantity=2), asynchronous=False
        )
        storefront.add_to_cart("buyer-1", mug, variant_id=variant_id)

        line = get_cart("buyer-1").lines[0]
        assert line.unit_price == 24.0
        assert line.variant_name == "Blue"

    def test_update_and_remove(self, storefront, mug):
        storefront.add_to_cart("buyer-1", mug)
        line_id = str(get_cart("buyer-1").lines[0].id)

        current_domain.process(
            UpdateCartLineQuantity(buyer_id="buyer-1", line_id=line_id, quantity=4), asynchronous=False
        )
        assert get_cart("buyer-1").lines[0].quantity == 4

        current_domain.process(RemoveCartLine(buyer_id="buyer-1", line_id=line_id), asynchronous=False)
        assert get_cart("buyer-1").is_empty

    def test_clear_cart(self, storefront, mug):
        storefront.add_to_cart("buyer-1", mug)
        current_domain.process(ClearCart(buyer_id="buyer-1"), asynchronous=False)
        assert find_cart("buyer-1").is_empty

    def test_unknown_buyer_has_no_cart(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(ClearCart(buyer_id="nobody"), asynchronous=False)

    def test_refresh_accepts_live_prices(self, storefront, mug):
        storefront.add_to_cart("buyer-1", mug)
        _set_price(mug, 22.5)

        quote = quote_cart(get_cart("buyer-1"))
        assert list(quote.price_changes.values()) == [22.5]
        assert quote.summary.subtotal == 20.0

        current_domain.process(RefreshCartPrices(buyer_id="buyer-1"), asynchronous=False)
        assert get_cart("buyer-1").lines[0].unit_price == 22.5


class TestCartCapacity:
    def test_repeat_adds_share_one_cart_row(self, storefront, mug):
        first = storefront.add_to_cart("buyer-1", mug)
        second = storefront.add_to_cart("buyer-1", mug)

        assert first == second
        assert len(fetch_all(ShoppingCart, buyer_id="buyer-1")) == 1

    def test_concurrent_first_adds_cannot_create_two_carts(self):
        repo = current_domain.repository_for(ShoppingCart)
        first = ShoppingCart.create("buyer-1")
        second = ShoppingCart.create("buyer-1")

        repo.add(first)
        with pytest.raises(ValidationError):
            repo.add(second)

        assert len(fetch_all(ShoppingCart, buyer_id="buyer-1")) == 1

    def test_line_past_the_cap_is_rejected_and_nothing_is_lost(self, storefront):
        vendor_id = storefront.register_vendor()
        for index in range(MAX_CART_LINES):
            product_id = storefront.list_product(vendor_id, name=f"Print #{index}", price=5.0, stock_quantity=1)
            storefront.add_to_cart("buyer-1", product_id)
        extra = storefront.list_product(vendor_id, name="One too many", price=5.0, stock_quantity=1)

        with pytest.raises(ValidationError) as exc:
            storefront.add_to_cart("buyer-1", extra)

        assert "lines" in exc.value.messages
        cart = get_cart("buyer-1")
        assert len(cart.lines) == MAX_CART_LINES
        assert quote_cart(cart, "standard").summary.item_count == MAX_CART_LINES


class TestCartCoupons:
    def test_apply_and_remove(self, storefront, mug):
        _issue_coupon()
        storefront.add_to_cart("buyer-1", mug, quantity=2)

        storefront.apply_coupon("buyer-1", "save10")
        assert get_cart("buyer-1").coupon_code == "SAVE10"
        assert storefront.quote("buyer-1").discount == 10.0

        current_domain.process(RemoveCartCoupon(buyer_id="buyer-1"), asynchronous=False)
        assert get_cart("buyer-1").coupon_code is None

    def test_unknown_code(self, storefront, mug):
        storefront.add_to_cart("buyer-1", mug)
        with pytest.raises(CouponRejectedError) as exc:
            storefront.apply_coupon("buyer-1", "NOPE")
        assert exc.value.reason == CouponRejection.NOT_FOUND

    def test_minimum_order_value(self, storefront, mug):
        _issue_coupon(min_order_value=50.0)
        storefront.add_to_cart("buyer-1", mug)

        with pytest.raises(CouponRejectedError) as exc:
            storefront.apply_coupon("buyer-1", "SAVE10")
        assert exc.value.reason == CouponRejection.BELOW_MINIMUM
        assert "50.00" in exc.value.messages["coupon_code"][0]

    def test_expired_coupon(self, storefront, mug):
        now = datetime.now(UTC)
        _issue_coupon(starts_at=now - timedelta(days=10), expires_at=now - timedelta(days=1))
        storefront.add_to_cart("buyer-1", mug)

        with pytest.raises(CouponRejectedError) as exc:
            storefront.apply_coupon("buyer-1", "SAVE10")
        assert exc.value.reason == CouponRejection.EXPIRED

    def test_deactivated_coupon(self, storefront, mug):
        coupon_id = _issue_coupon()
        current_domain.process(DeactivateCoupon(coupon_id=coupon_id), asynchronous=False)
        storefront.add_to_cart("buyer-1", mug)

        with pytest.raises(CouponRejectedError) as exc:
            storefront.apply_coupon("buyer-1", "SAVE10")
        assert exc.value.reason == CouponRejection.INACTIVE

    def test_used_up_coupon_is_a_conflict(self, storefront, mug):
        _issue_coupon(max_uses=1)
        storefront.add_to_cart("buyer-1", mug)
        storefront.apply_coupon("buyer-1", "SAVE10")
        storefront.checkout("buyer-1")

        storefront.add_to_cart("buyer-2", mug)
        with pytest.raises(CouponExhaustedError):
            storefront.apply_coupon("buyer-2", "SAVE10")

    def test_duplicate_code_cannot_be_issued(self):
        _issue_coupon()
        with pytest.raises(ValidationError) as exc:
            _issue_coupon(code="save10")
        assert "code" in exc.value.messages
