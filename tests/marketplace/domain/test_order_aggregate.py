"""Tests for the Order header: placement, vendor fan-out, refunds and rollups."""

import json
import re

from marketplace.order.events import OrderFulfillmentProgressed, OrderPlaced, OrderRefunded, VendorOrderReceived
from marketplace.order.order import Order, PaymentStatus, generate_order_number
from marketplace.order.order_item import OrderItem
from marketplace.pricing.engine import OrderSummary

ADDRESS = {"street": "1 Main St", "city": "Springfield", "postal_code": "12345", "country": "US"}
TRACKING = {"carrier": "UPS", "tracking_number": "1Z999"}


def _summary():
    return OrderSummary(
        subtotal=120.0,
        discount=18.0,
        tax=8.16,
        shipping=0.0,
        total=110.16,
        item_count=3,
        shipping_method="standard",
        coupon_code="SAVE15",
    )


def _place():
    return Order.place(buyer_id="buyer-1", payment_reference="pi_1", summary=_summary(), shipping_address=ADDRESS)


def _item(order, vendor_id, unit_price=40.0, quantity=1):
    return OrderItem.create(
        order_id=str(order.id),
        order_number=order.order_number,
        buyer_id="buyer-1",
        vendor_id=vendor_id,
        product_id="product-1",
        product_name="Ceramic Mug",
        quantity=quantity,
        unit_price=unit_price,
        commission_rate=10.0,
    )


class TestPlace:
    def test_order_is_paid_with_frozen_totals(self):
        order = _place()

        assert order.payment_status == PaymentStatus.PAID.value
        assert order.pricing.total == 110.16
        assert order.pricing.discount == 18.0
        assert order.coupon_code == "SAVE15"
        assert order.paid_at is not None
        assert isinstance(order._events[0], OrderPlaced)

    def test_billing_defaults_to_shipping_address(self):
        order = _place()
        assert order.billing_address.city == "Springfield"

    def test_order_number_format(self):
        assert re.fullmatch(r"BK-[0-9A-Z]+-[0-9A-Z]{4}", generate_order_number())


class TestVendorFanOut:
    def test_one_notice_per_vendor(self):
        order = _place()
        items = [_item(order, "vendor-a"), _item(order, "vendor-a", quantity=2), _item(order, "vendor-b")]

        order.announce_vendor_orders(items)

        notices = [e for e in order._events if isinstance(e, VendorOrderReceived)]
        assert order.vendor_count == 2
        assert len(notices) == 2
        vendor_a = next(e for e in notices if e.vendor_id == "vendor-a")
        assert vendor_a.item_count == 3
        assert vendor_a.subtotal == 120.0
        assert vendor_a.commission_amount == 12.0
        assert len(json.loads(vendor_a.order_item_ids)) == 2


class TestSettlement:
    def test_refunded_once_every_item_is_reversed(self):
        order = _place()
        first, second = _item(order, "vendor-a"), _item(order, "vendor-b")
        first.cancel()

        assert order.settle_if_fully_reversed([first, second]) is False

        second.cancel()
        assert order.settle_if_fully_reversed([first, second]) is True
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert isinstance(order._events[-1], OrderRefunded)

    def test_already_refunded_order_is_left_alone(self):
        order = _place()
        item = _item(order, "vendor-a")
        item.cancel()
        order.settle_if_fully_reversed([item])

        assert order.settle_if_fully_reversed([item]) is False


class TestFulfillmentRollup:
    def test_shipped_only_when_every_live_item_shipped(self):
        order = _place()
        first, second = _item(order, "vendor-a"), _item(order, "vendor-b")
        first.start_processing()
        first.ship(tracking=TRACKING)

        assert order.refresh_fulfillment([first, second]) is False
        assert order.shipped_at is None

        second.start_processing()
        second.ship(tracking=TRACKING)
        assert order.refresh_fulfillment([first, second]) is True
        assert order.shipped_at is not None
        assert order.delivered_at is None
        assert isinstance(order._events[-1], OrderFulfillmentProgressed)

    def test_cancelled_items_do_not_hold_back_delivery(self):
        order = _place()
        delivered, cancelled = _item(order, "vendor-a"), _item(order, "vendor-b")
        delivered.start_processing()
        delivered.ship(tracking=TRACKING)
        delivered.mark_delivered()
        cancelled.cancel()

        assert order.refresh_fulfillment([delivered, cancelled]) is True
        assert order.delivered_at is not None

    def test_no_change_reports_false(self):
        order = _place()
        item = _item(order, "vendor-a")
        item.start_processing()
        item.ship(tracking=TRACKING)
        order.refresh_fulfillment([item])

        assert order.refresh_fulfillment([item]) is False
