"""Shared BDD fixtures and step definitions for the Marketplace domain."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from marketplace.exceptions import ConflictError
from marketplace.order.events import (
    OrderItemCancelled,
    OrderItemClaimedForPayout,
    OrderItemConfirmed,
    OrderItemDelivered,
    OrderItemProcessingStarted,
    OrderItemRefunded,
    OrderItemShipped,
    TrackingEntryAdded,
)
from marketplace.order.order_item import OrderItem

# Map event name strings to classes for dynamic lookup
_ORDER_ITEM_EVENT_CLASSES = {
    "OrderItemConfirmed": OrderItemConfirmed,
    "OrderItemProcessingStarted": OrderItemProcessingStarted,
    "OrderItemShipped": OrderItemShipped,
    "OrderItemDelivered": OrderItemDelivered,
    "OrderItemCancelled": OrderItemCancelled,
    "OrderItemRefunded": OrderItemRefunded,
    "OrderItemClaimedForPayout": OrderItemClaimedForPayout,
    "TrackingEntryAdded": TrackingEntryAdded,
}

DEFAULT_TRACKING = {"carrier": "UPS", "tracking_number": "1Z999AA10123456784"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


def _order_item(unit_price=25.0, quantity=2, commission_rate=15.0):
    return OrderItem.create(
        order_id="order-001",
        order_number="BK-TEST-0001",
        buyer_id="buyer-001",
        vendor_id="vendor-001",
        product_id="product-001",
        product_name="Ceramic Mug",
        quantity=quantity,
        unit_price=unit_price,
        commission_rate=commission_rate,
    )


# ---------------------------------------------------------------------------
# Given steps — Order item
# ---------------------------------------------------------------------------
@given("a pending order item", target_fixture="item")
def pending_item():
    item = _order_item()
    item._events.clear()
    return item


@given(
    parsers.cfparse("a pending order item of {quantity:d} at {unit_price:f} with {rate:f}% commission"),
    target_fixture="item",
)
def pending_item_with_terms(quantity, unit_price, rate):
    item = _order_item(unit_price=unit_price, quantity=quantity, commission_rate=rate)
    item._events.clear()
    return item


@given("the item is being processed", target_fixture="item")
def processing_item(item):
    item.start_processing()
    item._events.clear()
    return item


@given("the item was shipped", target_fixture="item")
def shipped_item(item):
    item.ship(tracking=DEFAULT_TRACKING)
    item._events.clear()
    return item


@given("the item was delivered", target_fixture="item")
def delivered_item(item):
    item.mark_delivered()
    item._events.clear()
    return item


@given("the item was cancelled", target_fixture="item")
def cancelled_item(item):
    item.cancel()
    item._events.clear()
    return item


# ---------------------------------------------------------------------------
# Then steps — shared
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the item status is "{status}"'))
def item_status_is(item, status):
    assert item.status == status


@then(parsers.cfparse("a {event_type} event is raised"))
def event_raised(item, event_type):
    event_cls = _ORDER_ITEM_EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in item._events)


@then("the request is rejected as a conflict")
def rejected_as_conflict(error):
    assert isinstance(error["exc"], ConflictError)


@then("the request is rejected")
def request_rejected(error):
    assert isinstance(error["exc"], ValidationError)


@then("no event is raised")
def no_event_raised(item):
    assert item._events == []
