"""BDD tests for vendor payouts."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

from marketplace.config import MarketplaceSettings, set_settings
from marketplace.payout.aggregation import AggregatePayouts
from marketplace.payout.execution import ExecutePayout
from marketplace.payout.payout import Payout
from marketplace.payout.queries import payout_summary, vendor_earnings
from marketplace.utils.paging import fetch_all

scenarios("features/vendor_payouts.feature")


@pytest.fixture()
def ledger():
    return {"vendor_id": None, "cutoff": None}


def _payouts(vendor_id):
    return fetch_all(Payout, vendor_id=vendor_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a vendor with {rate:d}% commission who completed payout onboarding"))
def onboarded_vendor(storefront, ledger, rate):
    ledger["vendor_id"] = storefront.register_vendor(commission_rate=float(rate), onboarded=True)


@given(parsers.cfparse("the vendor delivered an order worth {amount:f}"))
def delivered_order(storefront, ledger, amount):
    vendor_id = ledger["vendor_id"]
    product_id = storefront.list_product(vendor_id, price=amount, stock_quantity=5)
    storefront.add_to_cart("buyer-001", product_id)
    result = storefront.checkout("buyer-001")
    storefront.deliver(result["order_item_ids"][0], vendor_id)


@given("the payout processor refuses transfers")
def processor_refuses(payout_processor):
    payout_processor.configure(should_succeed=False, failure_reason="Destination account closed")


@given(parsers.cfparse("the payout minimum is {amount:f}"))
def payout_minimum(amount):
    set_settings(MarketplaceSettings(payout_minimum=amount))


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("payouts are aggregated")
def aggregate(ledger):
    ledger["cutoff"] = datetime.now(UTC) + timedelta(seconds=1)
    current_domain.process(AggregatePayouts(cutoff=ledger["cutoff"]), asynchronous=False)


@when("payouts are aggregated again with the same cutoff")
def aggregate_again(ledger):
    current_domain.process(AggregatePayouts(cutoff=ledger["cutoff"]), asynchronous=False)


@when("the payout is executed")
def execute(ledger):
    [payout] = _payouts(ledger["vendor_id"])
    current_domain.process(ExecutePayout(payout_id=str(payout.id)), asynchronous=False)


@when("the payout processor accepts transfers")
def processor_accepts(payout_processor):
    payout_processor.configure(should_succeed=True)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the vendor has {count:d} payout in "{status}"'))
def payouts_in_status(ledger, count, status):
    payouts = _payouts(ledger["vendor_id"])
    assert len(payouts) == count
    assert all(payout.status == status for payout in payouts)


@then("the vendor has no payouts")
def no_payouts(ledger):
    assert _payouts(ledger["vendor_id"]) == []


@then(parsers.cfparse("the payout amount is {amount:f} with {commission:f} commission"))
def payout_amount(ledger, amount, commission):
    [payout] = _payouts(ledger["vendor_id"])
    assert payout.amount == amount
    assert payout.commission_amount == commission


@then(parsers.cfparse("the vendor has been paid {amount:f}"))
def vendor_paid(ledger, amount):
    assert payout_summary(ledger["vendor_id"])["total_paid"] == amount


@then(parsers.cfparse("the vendor has {amount:f} unpaid"))
def vendor_unpaid(ledger, amount):
    assert vendor_earnings(ledger["vendor_id"])["unpaid_amount"] == amount
