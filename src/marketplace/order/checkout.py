"""Checkout — splits a paid cart into an order and per-vendor order items.

``PlaceOrder`` runs after the buyer's payment was captured elsewhere. The
handler re-checks everything the payment amount was based on (live stock,
live prices, the coupon, the confirmed amount) before it writes anything;
every check that can fail runs before the first mutation, and all writes
share the handler's unit of work, so a rejected checkout leaves no trace.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.cart.quote import get_cart, quote_cart
from marketplace.catalogue.vendor import Vendor
from marketplace.coupon.coupon import Coupon
from marketplace.coupon.resolver import find_coupon
from marketplace.domain import marketplace
from marketplace.exceptions import (
    DuplicatePaymentError,
    InsufficientStockError,
    PaymentConfirmationError,
    PaymentMismatchError,
    PriceChangedError,
    StockChangedError,
)
from marketplace.order.order import Order
from marketplace.order.order_item import OrderItem
from marketplace.order.queries import find_order_by_payment_reference
from marketplace.order.stock import save_products
from marketplace.payment import get_payment_confirmations
from marketplace.pricing.money import money_equal
from marketplace.pricing.shipping import parse_shipping_method

logger = structlog.get_logger(__name__)

_ADDRESS_FIELDS = ("street", "city", "postal_code", "country")


@marketplace.command(part_of="Order")
class PlaceOrder:
    buyer_id = Identifier(required=True)
    payment_reference = String(max_length=255)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    shipping_method = String(max_length=20, default="standard")
    notes = String(max_length=500)  # buyer instructions for the vendors


def _parse_address(raw, field_name):
    try:
        address = json.loads(raw) if isinstance(raw, str) else dict(raw or {})
    except (TypeError, ValueError):
        raise ValidationError({field_name: ["Address must be a JSON object"]})
    if not isinstance(address, dict):
        raise ValidationError({field_name: ["Address must be a JSON object"]})

    missing = [name for name in _ADDRESS_FIELDS if not address.get(name)]
    if missing:
        raise ValidationError({field_name: [f"Missing {', '.join(missing)}"]})
    return address


def _confirmed_payment(payment_reference):
    if not payment_reference:
        raise PaymentConfirmationError({"payment_reference": ["A confirmed payment is required to place an order"]})

    if find_order_by_payment_reference(payment_reference) is not None:
        raise DuplicatePaymentError(
            {"payment_reference": [f"Payment {payment_reference} was already used for an order"]}
        )

    confirmation = get_payment_confirmations().confirm(payment_reference)
    if not confirmation.confirmed:
        raise PaymentConfirmationError(
            {"payment_reference": [confirmation.failure_reason or "Payment is not confirmed"]}
        )
    return confirmation


def _assert_prices_unchanged(quote):
    changes = {
        str(live.line.id): [
            f"Price of {live.line.product_name} changed from {live.line.unit_price:.2f} to {live.live_price:.2f}"
        ]
        for live in quote.live_lines
        if live.price_changed
    }
    if changes:
        raise PriceChangedError(changes)


def _assert_payment_covers(confirmation, summary):
    if confirmation.currency and confirmation.currency != summary.currency:
        raise PaymentMismatchError(
            {"payment_reference": [f"Payment was captured in {confirmation.currency}, order is in {summary.currency}"]}
        )
    if not money_equal(confirmation.amount, summary.total):
        raise PaymentMismatchError(
            {
                "payment_reference": [
                    f"Captured amount {confirmation.amount:.2f} does not match order total {summary.total:.2f}"
                ]
            }
        )


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        shipping_address = _parse_address(command.shipping_address, "shipping_address")
        billing_address = (
            _parse_address(command.billing_address, "billing_address") if command.billing_address else None
        )
        method = parse_shipping_method(command.shipping_method)

        confirmation = _confirmed_payment(command.payment_reference)

        cart = get_cart(command.buyer_id)
        if cart.is_empty:
            raise ValidationError({"cart": ["Cart is empty"]})

        # 1. Re-validate stock, prices, coupon and the captured amount
        products = {}
        try:
            quote = quote_cart(cart, method.value, products=products)
        except InsufficientStockError as exc:
            logger.warning("Checkout rejected: stock changed", buyer_id=str(command.buyer_id), lines=exc.messages)
            raise StockChangedError(exc.messages)
        _assert_prices_unchanged(quote)
        _assert_payment_covers(confirmation, quote.summary)

        coupon = find_coupon(quote.summary.coupon_code) if quote.summary.coupon_code else None

        # 2. Group lines by the vendor that owns the product now
        live_lines = sorted(quote.live_lines, key=lambda live: str(live.product.vendor_id))
        vendor_repo = current_domain.repository_for(Vendor)
        vendors = {}
        for live in live_lines:
            vendor_id = str(live.product.vendor_id)
            if vendor_id not in vendors:
                vendors[vendor_id] = vendor_repo.get(vendor_id)

        # 3. Order header with the frozen summary
        order = Order.place(
            buyer_id=command.buyer_id,
            payment_reference=command.payment_reference,
            summary=quote.summary,
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=command.notes,
        )

        # 4 + 5. One item per line at the vendor's current rate; reserve stock
        order_items = []
        for live in live_lines:
            line = live.line
            vendor = vendors[str(live.product.vendor_id)]
            order_items.append(
                OrderItem.create(
                    order_id=str(order.id),
                    order_number=order.order_number,
                    buyer_id=command.buyer_id,
                    vendor_id=str(vendor.id),
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    variant_name=line.variant_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    commission_rate=vendor.commission_rate,
                    created_at=order.created_at,
                )
            )
            live.product.reserve_stock(line.quantity, line.variant_id)

        order.announce_vendor_orders(order_items)
        if coupon is not None:
            coupon.record_redemption(order.id)

        current_domain.repository_for(Order).add(order)
        item_repo = current_domain.repository_for(OrderItem)
        for item in order_items:
            item_repo.add(item)
        save_products(products)
        if coupon is not None:
            current_domain.repository_for(Coupon).add(coupon)

        # 6. Cart goes last
        cart.clear(order_id=order.id)
        current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            buyer_id=str(command.buyer_id),
            vendor_count=order.vendor_count,
            item_count=len(order_items),
            total=order.pricing.total,
        )
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "order_item_ids": [str(item.id) for item in order_items],
        }
