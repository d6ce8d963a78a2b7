"""Domain events for the Order and OrderItem aggregates.

``VendorOrderReceived`` is raised once per vendor when an order is placed;
it is what vendor notifications subscribe to. Item events carry the vendor
so downstream consumers never need to load the order.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------
@marketplace.event(part_of="Order")
class OrderPlaced:
    """A paid checkout produced an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    payment_reference = String(required=True)
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    discount = Float()
    tax = Float()
    shipping_cost = Float()
    total = Float(required=True)
    currency = String(default="USD")
    coupon_code = String()
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class VendorOrderReceived:
    """One vendor's share of a placed order. Raised once per vendor."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    vendor_id = Identifier(required=True)
    order_item_ids = Text(required=True)  # JSON: list of ids
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    commission_amount = Float(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    """The buyer cancelled the whole order before any vendor started on it."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String()
    refund_amount = Float(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRefunded:
    """Every item of the order was cancelled or refunded; the payment must be returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_reference = String(required=True)
    refund_amount = Float(required=True)
    refunded_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderFulfillmentProgressed:
    __version__ = 1

    order_id = Identifier(required=True)
    shipped_at = DateTime()
    delivered_at = DateTime()


# ---------------------------------------------------------------------------
# OrderItem
# ---------------------------------------------------------------------------
@marketplace.event(part_of="OrderItem")
class OrderItemConfirmed:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    confirmed_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemProcessingStarted:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemShipped:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    tracking_url = String()
    shipped_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemDelivered:
    """The item reached the buyer and became eligible for the vendor's next payout."""

    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemCancelled:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    cancelled_by = String(required=True)
    reason = String()
    quantity_released = Integer(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemRefunded:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    refund_amount = Float(required=True)
    reason = String()
    quantity_released = Integer(required=True)
    refunded_at = DateTime(required=True)


@marketplace.event(part_of="OrderItem")
class TrackingEntryAdded:
    __version__ = 1

    order_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    tracking_entry_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    status = String(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemClaimedForPayout:
    __version__ = 1

    order_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    payout_id = Identifier(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemReleasedFromPayout:
    """A refunded item was taken out of a payout that had not been sent yet."""

    __version__ = 1

    order_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    payout_id = Identifier(required=True)


@marketplace.event(part_of="OrderItem")
class OrderItemClawedBack:
    """A refunded item that was already paid out was deducted from a later payout."""

    __version__ = 1

    order_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    paid_in_payout_id = Identifier(required=True)
    deducted_in_payout_id = Identifier(required=True)
    amount = Float(required=True)
