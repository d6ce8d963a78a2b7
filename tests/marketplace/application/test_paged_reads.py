"""Reads that must see more rows than one default query page holds."""

from protean import current_domain

from marketplace.catalogue.vendor import Vendor
from marketplace.order.order_item import OrderItem
from marketplace.order.queries import items_for_order
from marketplace.utils.paging import fetch_all


def test_fetch_all_walks_every_page():
    repo = current_domain.repository_for(Vendor)
    for number in range(130):
        repo.add(Vendor.register(f"Studio {number}"))

    assert len(repo._dao.query.all().items) == 100
    assert len(fetch_all(Vendor, page_size=50)) == 130


def test_items_for_order_sees_more_than_one_page():
    repo = current_domain.repository_for(OrderItem)
    for number in range(105):
        repo.add(
            OrderItem.create(
                order_id="order-1",
                order_number="BK-TEST-0001",
                buyer_id="buyer-1",
                vendor_id=f"vendor-{number % 3}",
                product_id=f"product-{number}",
                product_name=f"Print {number}",
                quantity=1,
                unit_price=5.0,
                commission_rate=10.0,
            )
        )

    assert len(items_for_order("order-1")) == 105
