"""BDD tests for the order item fulfillment lifecycle."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, then, when

from marketplace.order.order_item import Actor

scenarios("features/order_item_lifecycle.feature")


def _attempt(error, action, *args, **kwargs):
    try:
        action(*args, **kwargs)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the vendor moves the item to "{status}"'))
def vendor_moves_item(item, status, error):
    _attempt(error, item.transition_to, status, Actor.VENDOR)


@when(parsers.cfparse('the admin moves the item to "{status}"'))
def admin_moves_item(item, status, error):
    _attempt(error, item.transition_to, status, Actor.ADMIN)


@when(parsers.cfparse('the vendor ships the item with carrier "{carrier}" and tracking number "{number}"'))
def vendor_ships_item(item, carrier, number, error):
    tracking = {"carrier": carrier, "tracking_number": number}
    _attempt(error, item.transition_to, "shipped", Actor.VENDOR, tracking=tracking)


@when(parsers.cfparse('the item is claimed for payout "{payout_id}"'))
def item_claimed(item, payout_id, error):
    _attempt(error, item.claim_for_payout, payout_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the item subtotal is {amount:f}"))
def item_subtotal_is(item, amount):
    assert item.subtotal == amount


@then(parsers.cfparse("the item commission is {amount:f}"))
def item_commission_is(item, amount):
    assert item.commission_amount == amount


@then(parsers.cfparse("the vendor earns {amount:f}"))
def vendor_earns(item, amount):
    assert item.vendor_earnings == amount


@then(parsers.cfparse('the latest tracking carrier is "{carrier}"'))
def latest_tracking_carrier(item, carrier):
    assert item.latest_tracking().carrier == carrier


@then(parsers.cfparse('the item belongs to payout "{payout_id}"'))
def item_belongs_to_payout(item, payout_id):
    assert str(item.payout_id) == payout_id
