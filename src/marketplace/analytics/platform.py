"""Platform analytics — read-only revenue, order and leaderboard figures.

Computed on request from paid orders and their items; nothing is stored.
Growth compares the requested window with the window of equal length just
before it and reads 0 when that earlier window had no orders.
"""

from collections import defaultdict
from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.vendor import Vendor
from marketplace.order.order import Order, PaymentStatus
from marketplace.order.order_item import OrderItem
from marketplace.pricing.money import to_money
from marketplace.utils.paging import fetch_all
from marketplace.utils.timestamps import as_utc

logger = structlog.get_logger(__name__)

PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}
TOP_N = 5


def _growth(current, previous):
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def _revenue(orders):
    return to_money(sum(order.pricing.total for order in orders))


def _commission(orders, items_by_order):
    return to_money(sum(item.commission_amount for order in orders for item in items_by_order[str(order.id)]))


def _in_window(orders, start, end):
    return [order for order in orders if start <= as_utc(order.created_at) <= end]


def _store_name(vendor_id):
    try:
        return current_domain.repository_for(Vendor).get(vendor_id).store_name
    except ObjectNotFoundError:
        return "Unknown"


def _top_vendors(items):
    stats = defaultdict(lambda: {"revenue": 0.0, "commission": 0.0, "orders": set(), "items_sold": 0})
    for item in items:
        entry = stats[str(item.vendor_id)]
        entry["revenue"] += item.subtotal
        entry["commission"] += item.commission_amount
        entry["orders"].add(str(item.order_id))
        entry["items_sold"] += item.quantity

    ranked = sorted(stats.items(), key=lambda pair: pair[1]["revenue"], reverse=True)[:TOP_N]
    return [
        {
            "vendor_id": vendor_id,
            "store_name": _store_name(vendor_id),
            "revenue": to_money(entry["revenue"]),
            "commission": to_money(entry["commission"]),
            "orders_count": len(entry["orders"]),
            "items_sold": entry["items_sold"],
        }
        for vendor_id, entry in ranked
    ]


def _top_products(items):
    stats = {}
    for item in items:
        entry = stats.setdefault(str(item.product_id), {"product_name": item.product_name, "revenue": 0.0, "units_sold": 0})
        entry["revenue"] += item.subtotal
        entry["units_sold"] += item.quantity

    ranked = sorted(stats.items(), key=lambda pair: pair[1]["revenue"], reverse=True)[:TOP_N]
    return [
        {
            "product_id": product_id,
            "product_name": entry["product_name"],
            "revenue": to_money(entry["revenue"]),
            "units_sold": entry["units_sold"],
        }
        for product_id, entry in ranked
    ]


def _by_day(orders, items_by_order):
    days = defaultdict(lambda: {"revenue": 0.0, "commission": 0.0, "orders": 0})
    for order in orders:
        day = days[as_utc(order.created_at).date().isoformat()]
        day["revenue"] += order.pricing.total
        day["commission"] += sum(item.commission_amount for item in items_by_order[str(order.id)])
        day["orders"] += 1
    return [
        {
            "date": date,
            "revenue": to_money(day["revenue"]),
            "commission": to_money(day["commission"]),
            "orders": day["orders"],
        }
        for date, day in sorted(days.items())
    ]


def platform_analytics(period="30d", as_of=None):
    """Revenue, order and leaderboard figures for the window ending at ``as_of``.

    Args:
        period: One of ``7d``, ``30d``, ``90d`` or ``1y``.
        as_of: End of the window; now when omitted.
    """
    if period not in PERIODS:
        raise ValidationError({"period": [f"Period must be one of {', '.join(PERIODS)}"]})

    end = as_utc(as_of) or datetime.now(UTC)
    length = PERIODS[period]
    start = end - length
    previous_start = start - length

    paid_orders = fetch_all(Order, payment_status=PaymentStatus.PAID.value)
    paid_ids = {str(order.id) for order in paid_orders}
    items_by_order = defaultdict(list)
    for item in fetch_all(OrderItem):
        if str(item.order_id) in paid_ids:
            items_by_order[str(item.order_id)].append(item)

    current = _in_window(paid_orders, start, end)
    previous = [order for order in paid_orders if previous_start <= as_utc(order.created_at) < start]
    current_items = [item for order in current for item in items_by_order[str(order.id)]]

    day_start = end.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = day_start.replace(day=1)

    revenue = _revenue(current)
    previous_revenue = _revenue(previous)
    commission = _commission(current, items_by_order)
    item_subtotal = sum(item.subtotal for item in current_items)

    by_status = defaultdict(int)
    for item in current_items:
        by_status[item.status] += 1

    logger.debug("Platform analytics computed", period=period, orders=len(current))
    return {
        "period": period,
        "start": start,
        "end": end,
        "revenue": {
            "total": revenue,
            "commission": commission,
            "average_commission_rate": round(commission / item_subtotal * 100, 2) if item_subtotal else 0.0,
            "growth": _growth(revenue, previous_revenue),
            "today": _revenue(_in_window(paid_orders, day_start, end)),
            "this_month": _revenue(_in_window(paid_orders, month_start, end)),
            "by_day": _by_day(current, items_by_order),
        },
        "orders": {
            "total": len(current),
            "average_value": to_money(revenue / len(current)) if current else 0.0,
            "growth": _growth(len(current), len(previous)),
            "by_status": dict(by_status),
        },
        "top_vendors": _top_vendors(current_items),
        "top_products": _top_products(current_items),
    }
