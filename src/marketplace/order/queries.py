"""Read helpers for orders and order items."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.vendor import Vendor
from marketplace.order.order import Order, PaymentStatus
from marketplace.order.order_item import OrderItem, OrderItemStatus
from marketplace.utils.paging import fetch_all
from marketplace.utils.timestamps import as_utc


def items_for_order(order_id, changed=()) -> list[OrderItem]:
    """All items of an order, with ``changed`` instances standing in for their stored rows."""
    items = fetch_all(OrderItem, order_id=str(order_id))
    changed_by_id = {str(item.id): item for item in changed}
    items = [changed_by_id.get(str(item.id), item) for item in items]
    return sorted(items, key=lambda item: as_utc(item.created_at))


def items_for_vendor(vendor_id, status=None) -> list[OrderItem]:
    filters = {"vendor_id": str(vendor_id)}
    if status:
        filters["status"] = status
    items = fetch_all(OrderItem, **filters)
    return sorted(items, key=lambda item: as_utc(item.created_at), reverse=True)


def find_order_by_payment_reference(payment_reference) -> Order | None:
    query = current_domain.repository_for(Order)._dao.query
    orders = query.filter(payment_reference=payment_reference).limit(1).all().items
    return orders[0] if orders else None


def vendor_order_item(order_item_id, vendor_id) -> OrderItem:
    """Load an item on behalf of a vendor; other vendors' items read as missing."""
    item = current_domain.repository_for(OrderItem).get(order_item_id)
    if str(item.vendor_id) != str(vendor_id):
        raise ObjectNotFoundError({"order_item_id": [f"Order item {order_item_id} not found"]})
    return item


def items_for_payout(payout_id) -> list[OrderItem]:
    return fetch_all(OrderItem, payout_id=str(payout_id))


DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def _store_names(vendor_ids):
    repo = current_domain.repository_for(Vendor)
    names = {}
    for vendor_id in vendor_ids:
        try:
            names[vendor_id] = repo.get(vendor_id).store_name
        except ObjectNotFoundError:
            names[vendor_id] = "Unknown"
    return names


def _order_row(order, items, store_names):
    vendor_ids = list(dict.fromkeys(str(item.vendor_id) for item in items))
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "buyer_id": str(order.buyer_id),
        "payment_status": order.payment_status,
        "total": order.pricing.total if order.pricing else 0.0,
        "currency": order.pricing.currency if order.pricing else None,
        "items_count": len(items),
        "vendors": [store_names[vendor_id] for vendor_id in vendor_ids],
        "item_statuses": sorted({item.status for item in items}),
        "notes": order.notes,
        "created_at": order.created_at,
    }


def list_orders(
    page=1,
    per_page=DEFAULT_PER_PAGE,
    status=None,
    payment_status=None,
    search=None,
    date_from=None,
    date_to=None,
):
    """One page of all orders for the admin console, newest first.

    ``status`` matches orders with at least one item in that status;
    ``search`` is a case-insensitive match inside the order number.

    Returns:
        Dict with ``orders``, ``total``, ``page`` and ``per_page``.
    """
    if page < 1:
        raise ValidationError({"page": ["Page must be 1 or greater"]})
    if per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationError({"per_page": [f"Page size must be between 1 and {MAX_PER_PAGE}"]})
    if status and status not in {item_status.value for item_status in OrderItemStatus}:
        raise ValidationError({"status": [f"Unknown order item status {status!r}"]})
    if payment_status and payment_status not in {value.value for value in PaymentStatus}:
        raise ValidationError({"payment_status": [f"Unknown payment status {payment_status!r}"]})

    orders = fetch_all(Order, payment_status=payment_status) if payment_status else fetch_all(Order)
    if status:
        matching = {str(item.order_id) for item in fetch_all(OrderItem, status=status)}
        orders = [order for order in orders if str(order.id) in matching]
    if search:
        needle = search.lower()
        orders = [order for order in orders if needle in order.order_number.lower()]
    if date_from:
        orders = [order for order in orders if as_utc(order.created_at) >= as_utc(date_from)]
    if date_to:
        orders = [order for order in orders if as_utc(order.created_at) <= as_utc(date_to)]

    orders.sort(key=lambda order: as_utc(order.created_at), reverse=True)
    start = (page - 1) * per_page
    page_orders = orders[start : start + per_page]

    items_by_order = {str(order.id): items_for_order(order.id) for order in page_orders}
    store_names = _store_names(
        {str(item.vendor_id) for items in items_by_order.values() for item in items}
    )
    return {
        "orders": [_order_row(order, items_by_order[str(order.id)], store_names) for order in page_orders],
        "total": len(orders),
        "page": page,
        "per_page": per_page,
    }
