"""Order aggregate — the buyer's checkout transaction.

An order is a header: who paid, how much, where it ships. Its totals are
frozen at creation and never recomputed from live prices. Fulfillment status
lives on the order items (one per line, per vendor); the ``shipped_at`` and
``delivered_at`` stamps here are rollups derived from those items.
"""

import json
import secrets
import string
import time
from collections import defaultdict
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, Integer, String, ValueObject

from marketplace.domain import marketplace
from marketplace.order.events import (
    OrderCancelled,
    OrderFulfillmentProgressed,
    OrderPlaced,
    OrderRefunded,
    VendorOrderReceived,
)
from marketplace.order.order_item import TERMINAL_STATES, OrderItemStatus
from marketplace.pricing.money import to_money
from marketplace.utils.timestamps import as_utc

_BASE36 = string.digits + string.ascii_uppercase


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


def _base36(number):
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number():
    """Human-readable order number, e.g. ``BK-LZ4K2M1A-7QX2``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"BK-{_base36(int(time.time() * 1000))}-{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class PostalAddress:
    """Shipping or billing address as captured at checkout."""

    recipient = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@marketplace.value_object(part_of="Order")
class OrderPricing:
    """Totals the buyer paid. Locked at checkout."""

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    buyer_id = Identifier(required=True)
    payment_reference = String(required=True, max_length=255)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.UNPAID.value)
    pricing = ValueObject(OrderPricing)
    shipping_method = String(max_length=20)
    coupon_code = String(max_length=50)
    shipping_address = ValueObject(PostalAddress)
    billing_address = ValueObject(PostalAddress)
    item_count = Integer(default=0)
    vendor_count = Integer(default=0)
    notes = String(max_length=500)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    @classmethod
    def place(cls, buyer_id, payment_reference, summary, shipping_address, billing_address=None, notes=None):
        """Create a paid order from a priced cart summary.

        Args:
            summary: ``OrderSummary`` from the pricing engine.
            shipping_address: Dict with street, city, state, postal_code, country.
            billing_address: Same shape; defaults to the shipping address.
            notes: Free-text instructions from the buyer.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(),
            buyer_id=buyer_id,
            payment_reference=payment_reference,
            payment_status=PaymentStatus.PAID.value,
            pricing=OrderPricing(
                subtotal=summary.subtotal,
                discount=summary.discount,
                tax=summary.tax,
                shipping_cost=summary.shipping,
                total=summary.total,
                currency=summary.currency,
            ),
            shipping_method=summary.shipping_method,
            coupon_code=summary.coupon_code,
            shipping_address=PostalAddress(**shipping_address),
            billing_address=PostalAddress(**(billing_address or shipping_address)),
            item_count=summary.item_count,
            notes=notes,
            created_at=now,
            paid_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_id=str(buyer_id),
                payment_reference=payment_reference,
                item_count=summary.item_count,
                subtotal=summary.subtotal,
                discount=summary.discount,
                tax=summary.tax,
                shipping_cost=summary.shipping,
                total=summary.total,
                currency=summary.currency,
                coupon_code=summary.coupon_code,
                placed_at=now,
            )
        )
        return order

    def announce_vendor_orders(self, order_items):
        """Raise one VendorOrderReceived per vendor present in ``order_items``."""
        by_vendor = defaultdict(list)
        for item in order_items:
            by_vendor[str(item.vendor_id)].append(item)

        self.vendor_count = len(by_vendor)
        for vendor_id, items in by_vendor.items():
            self.raise_(
                VendorOrderReceived(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    vendor_id=vendor_id,
                    order_item_ids=json.dumps([str(item.id) for item in items]),
                    item_count=sum(item.quantity for item in items),
                    subtotal=to_money(sum(item.subtotal for item in items)),
                    commission_amount=to_money(sum(item.commission_amount for item in items)),
                    placed_at=self.created_at,
                )
            )

    # -------------------------------------------------------------------
    # Buyer cancellation and refunds
    # -------------------------------------------------------------------
    def record_cancellation(self, reason=None):
        """Record a whole-order buyer cancellation; items were cancelled by the caller."""
        now = datetime.now(UTC)
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                reason=reason,
                refund_amount=self.pricing.total,
                cancelled_at=now,
            )
        )

    def settle_if_fully_reversed(self, order_items):
        """Flip payment to refunded once no item is left to fulfil.

        Returns True when the order was marked refunded.
        """
        if self.payment_status != PaymentStatus.PAID.value or not order_items:
            return False
        if any(OrderItemStatus(item.status) not in TERMINAL_STATES for item in order_items):
            return False

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.REFUNDED.value
        self.refunded_at = now
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                payment_reference=self.payment_reference,
                refund_amount=self.pricing.total,
                refunded_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Rollups
    # -------------------------------------------------------------------
    def refresh_fulfillment(self, order_items):
        """Recompute shipped/delivered stamps from the items still being fulfilled.

        The order counts as shipped once every live item has shipped, and as
        delivered once every live item is delivered. Returns True on change.
        """
        live = [item for item in order_items if OrderItemStatus(item.status) not in TERMINAL_STATES]
        shipped_states = {OrderItemStatus.SHIPPED, OrderItemStatus.DELIVERED}

        shipped_at = None
        delivered_at = None
        if live and all(OrderItemStatus(item.status) in shipped_states for item in live):
            shipped_at = max(as_utc(item.shipped_at) for item in live if item.shipped_at)
        if live and all(OrderItemStatus(item.status) == OrderItemStatus.DELIVERED for item in live):
            delivered_at = max(as_utc(item.delivered_at) for item in live if item.delivered_at)

        if as_utc(self.shipped_at) == shipped_at and as_utc(self.delivered_at) == delivered_at:
            return False

        self.shipped_at = shipped_at
        self.delivered_at = delivered_at
        self.raise_(
            OrderFulfillmentProgressed(
                order_id=str(self.id),
                shipped_at=shipped_at,
                delivered_at=delivered_at,
            )
        )
        return True
