import pytest
from protean.exceptions import ValidationError

from marketplace.catalogue.events import CommissionRateChanged, PayoutOnboardingCompleted, StockReleased, StockReserved
from marketplace.catalogue.product import Product
from marketplace.catalogue.vendor import Vendor
from marketplace.config import MarketplaceSettings, set_settings
from marketplace.exceptions import StockChangedError


class TestVendor:
    def test_register_uses_default_commission(self):
        vendor = Vendor.register(store_name="Clay & Co")
        assert vendor.commission_rate == 15.0
        assert vendor.payouts_enabled is False

    def test_register_picks_up_configured_default(self):
        set_settings(MarketplaceSettings(default_commission_rate=12.0))
        vendor = Vendor.register(store_name="Clay & Co")
        assert vendor.commission_rate == 12.0

    def test_rate_outside_percent_range_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Vendor.register(store_name="Clay & Co", commission_rate=120.0)
        assert "commission_rate" in exc.value.messages

    def test_change_commission_rate(self):
        vendor = Vendor.register(store_name="Clay & Co", commission_rate=10.0)
        vendor.change_commission_rate(20.0)

        assert vendor.commission_rate == 20.0
        event = vendor._events[-1]
        assert isinstance(event, CommissionRateChanged)
        assert event.previous_rate == 10.0

    def test_payout_onboarding(self):
        vendor = Vendor.register(store_name="Clay & Co")
        vendor.complete_payout_onboarding("acct_123")

        assert vendor.payouts_enabled is True
        assert vendor.payout_account_id == "acct_123"
        assert isinstance(vendor._events[-1], PayoutOnboardingCompleted)

    def test_onboarding_requires_account(self):
        vendor = Vendor.register(store_name="Clay & Co")
        with pytest.raises(ValidationError):
            vendor.complete_payout_onboarding("")


class TestProductStock:
    def test_reserve_decrements_stock(self):
        product = Product.list_product(vendor_id="vendor-1", name="Mug", price=12.0, stock_quantity=5)
        product.reserve_stock(3)

        assert product.stock_quantity == 2
        assert isinstance(product._events[-1], StockReserved)

    def test_reserve_more_than_available_is_a_conflict(self):
        product = Product.list_product(vendor_id="vendor-1", name="Mug", price=12.0, stock_quantity=2)
        with pytest.raises(StockChangedError):
            product.reserve_stock(3)
        assert product.stock_quantity == 2

    def test_release_restores_stock(self):
        product = Product.list_product(vendor_id="vendor-1", name="Mug", price=12.0, stock_quantity=2)
        product.reserve_stock(2)
        product.release_stock(2)

        assert product.stock_quantity == 2
        assert isinstance(product._events[-1], StockReleased)

    def test_variant_stock_and_price(self):
        product = Product.list_product(vendor_id="vendor-1", name="Mug", price=12.0, stock_quantity=0)
        blue = product.add_variant("Blue", stock_quantity=4, price=14.0)
        plain = product.add_variant("Plain", stock_quantity=1)

        assert product.price_for(blue.id) == 14.0
        assert product.price_for(plain.id) == 12.0
        assert product.available_stock(blue.id) == 4

        product.reserve_stock(3, variant_id=blue.id)
        assert product.available_stock(blue.id) == 1
        assert product.stock_quantity == 0

    def test_unknown_variant_rejected(self):
        product = Product.list_product(vendor_id="vendor-1", name="Mug", price=12.0)
        with pytest.raises(ValidationError) as exc:
            product.price_for("no-such-variant")
        assert "variant_id" in exc.value.messages
