import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

ADDRESS = {
    "recipient": "Ada Buyer",
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


class Storefront:
    """Drives the public commands to build up vendors, carts and paid orders."""

    def __init__(self, payments, payout_processor):
        self.payments = payments
        self.payout_processor = payout_processor
        self._payment_counter = 0

    def register_vendor(self, store_name="Clay & Co", commission_rate=15.0, onboarded=False):
        from marketplace.catalogue.management import CompletePayoutOnboarding, RegisterVendor

        vendor_id = current_domain.process(
            RegisterVendor(store_name=store_name, commission_rate=commission_rate), asynchronous=False
        )
        if onboarded:
            current_domain.process(
                CompletePayoutOnboarding(vendor_id=vendor_id, payout_account_id=f"acct_{vendor_id[:8]}"),
                asynchronous=False,
            )
        return vendor_id

    def list_product(self, vendor_id, name="Ceramic Mug", price=40.0, stock_quantity=10):
        from marketplace.catalogue.management import ListProduct

        return current_domain.process(
            ListProduct(vendor_id=vendor_id, name=name, price=price, stock_quantity=stock_quantity),
            asynchronous=False,
        )

    def add_to_cart(self, buyer_id, product_id, quantity=1, variant_id=None):
        from marketplace.cart.items import AddCartLine

        return current_domain.process(
            AddCartLine(buyer_id=buyer_id, product_id=product_id, variant_id=variant_id, quantity=quantity),
            asynchronous=False,
        )

    def apply_coupon(self, buyer_id, code):
        from marketplace.cart.coupons import ApplyCartCoupon

        return current_domain.process(ApplyCartCoupon(buyer_id=buyer_id, coupon_code=code), asynchronous=False)

    def quote(self, buyer_id, shipping_method="standard"):
        from marketplace.cart.quote import get_cart, quote_cart

        return quote_cart(get_cart(buyer_id), shipping_method).summary

    def capture_payment(self, buyer_id, amount=None, shipping_method="standard"):
        self._payment_counter += 1
        reference = f"pi_{buyer_id}_{self._payment_counter}"
        if amount is None:
            amount = self.quote(buyer_id, shipping_method).total
        self.payments.capture(reference, amount)
        return reference

    def checkout(self, buyer_id, payment_reference=None, shipping_method="standard", notes=None):
        from marketplace.order.checkout import PlaceOrder

        if payment_reference is None:
            payment_reference = self.capture_payment(buyer_id, shipping_method=shipping_method)
        return current_domain.process(
            PlaceOrder(
                buyer_id=buyer_id,
                payment_reference=payment_reference,
                shipping_address=json.dumps(ADDRESS),
                shipping_method=shipping_method,
                notes=notes,
            ),
            asynchronous=False,
        )

    def advance(self, order_item_id, vendor_id, target_status, **tracking):
        from marketplace.order.fulfillment import AdvanceOrderItem

        if target_status == "shipped" and not tracking:
            tracking = {"carrier": "UPS", "tracking_number": "1Z999"}
        return current_domain.process(
            AdvanceOrderItem(
                order_item_id=order_item_id,
                vendor_id=vendor_id,
                target_status=target_status,
                **tracking,
            ),
            asynchronous=False,
        )

    def deliver(self, order_item_id, vendor_id):
        for status in ("processing", "shipped", "delivered"):
            self.advance(order_item_id, vendor_id, status)


@pytest.fixture
def payments():
    from marketplace.payment import set_payment_confirmations
    from marketplace.payment.fake_adapter import FakePaymentConfirmations

    adapter = FakePaymentConfirmations()
    set_payment_confirmations(adapter)
    return adapter


@pytest.fixture
def payout_processor():
    from marketplace.payout.processor import set_payout_processor
    from marketplace.payout.processor.fake_adapter import FakePayoutProcessor

    adapter = FakePayoutProcessor()
    set_payout_processor(adapter)
    return adapter


@pytest.fixture
def storefront(payments, payout_processor):
    return Storefront(payments, payout_processor)
