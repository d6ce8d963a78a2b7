"""Vendor analytics — one seller's sales, catalogue and fulfillment figures.

Sales figures count the vendor's items in paid orders created inside the
window; cancelled and refunded items drop out. Commission is the amount frozen
on each item at checkout, not the vendor's current rate.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.analytics.platform import PERIODS, TOP_N
from marketplace.catalogue.product import Product
from marketplace.catalogue.vendor import Vendor
from marketplace.config import get_settings
from marketplace.order.order import Order, PaymentStatus
from marketplace.order.order_item import OrderItemStatus
from marketplace.order.queries import items_for_vendor
from marketplace.payout.queries import payout_summary, vendor_earnings
from marketplace.pricing.money import to_money
from marketplace.utils.paging import fetch_all
from marketplace.utils.timestamps import as_utc

logger = structlog.get_logger(__name__)


def _paid_order_ids():
    return {str(order.id) for order in fetch_all(Order, payment_status=PaymentStatus.PAID.value)}


def _daily_stats(items, start, end):
    days = {}
    day = start.date()
    while day <= end.date():
        days[day.isoformat()] = {"orders": set(), "revenue": 0.0, "commission": 0.0}
        day += timedelta(days=1)

    for item in items:
        entry = days[as_utc(item.created_at).date().isoformat()]
        entry["orders"].add(str(item.order_id))
        entry["revenue"] += item.subtotal
        entry["commission"] += item.commission_amount

    return [
        {
            "date": date,
            "orders": len(entry["orders"]),
            "revenue": to_money(entry["revenue"]),
            "commission": to_money(entry["commission"]),
        }
        for date, entry in days.items()
    ]


def _top_products(items):
    stats = {}
    for item in items:
        entry = stats.setdefault(str(item.product_id), {"name": item.product_name, "quantity": 0, "revenue": 0.0})
        entry["quantity"] += item.quantity
        entry["revenue"] += item.subtotal

    ranked = sorted(stats.items(), key=lambda pair: pair[1]["revenue"], reverse=True)[:TOP_N]
    return [
        {
            "product_id": product_id,
            "name": entry["name"],
            "quantity": entry["quantity"],
            "revenue": to_money(entry["revenue"]),
        }
        for product_id, entry in ranked
    ]


def _product_stats(vendor_id):
    threshold = get_settings().low_stock_threshold
    products = fetch_all(Product, vendor_id=str(vendor_id))
    return {
        "total": len(products),
        "active": sum(1 for product in products if product.is_active),
        "low_stock": sum(1 for product in products if 0 < product.stock_quantity <= threshold),
        "out_of_stock": sum(1 for product in products if product.stock_quantity == 0),
    }


def vendor_analytics(vendor_id, period="30d", as_of=None):
    """Sales, catalogue and fulfillment figures for one vendor.

    Args:
        vendor_id: The selling vendor.
        period: One of ``7d``, ``30d``, ``90d`` or ``1y``.
        as_of: End of the window; now when omitted.

    Returns:
        Dict with ``period``, ``daily_stats`` (one row per day, zero-filled),
        ``top_products``, ``summary``, ``product_stats`` and ``order_stats``.
    """
    if period not in PERIODS:
        raise ValidationError({"period": [f"Period must be one of {', '.join(PERIODS)}"]})

    end = as_utc(as_of) or datetime.now(UTC)
    start = end - PERIODS[period]
    current_domain.repository_for(Vendor).get(vendor_id)

    all_items = items_for_vendor(vendor_id)
    paid_ids = _paid_order_ids()
    sold = [
        item
        for item in all_items
        if str(item.order_id) in paid_ids
        and not item.is_terminal
        and start <= as_utc(item.created_at) <= end
    ]

    revenue = to_money(sum(item.subtotal for item in sold))
    commission = to_money(sum(item.commission_amount for item in sold))
    orders = len({str(item.order_id) for item in sold})

    order_stats = {status.value: 0 for status in OrderItemStatus}
    for item in all_items:
        order_stats[item.status] += 1

    pending_payout = payout_summary(vendor_id)["pending_amount"] + vendor_earnings(vendor_id)["unpaid_amount"]

    logger.debug("Vendor analytics computed", vendor_id=str(vendor_id), period=period, orders=orders)
    return {
        "period": period,
        "start": start,
        "end": end,
        "daily_stats": _daily_stats(sold, start, end),
        "top_products": _top_products(sold),
        "summary": {
            "total_orders": orders,
            "total_revenue": revenue,
            "total_commission": commission,
            "net_revenue": to_money(revenue - commission),
            "average_order_value": to_money(revenue / orders) if orders else 0.0,
            "pending_payout": to_money(pending_payout),
        },
        "product_stats": _product_stats(vendor_id),
        "order_stats": order_stats,
    }
