"""Payout aggregation — rolls delivered, unclaimed items into pending payouts.

Driven by an external scheduler. Each vendor's periods are contiguous and
immutable: a run picks up delivered items with no payout that were created
after the vendor's last ``period_end`` and no later than the cutoff, claims
them, and records the cutoff as the new ``period_end``. Running again with
the same cutoff finds nothing left to claim.

Refunds of items an earlier payout already paid are deducted from the next
payout the vendor gets. Delivered items created inside a period that had
already closed when they were delivered are never picked up; each run logs
them, and ``vendor_earnings`` reports them.
"""

from collections import defaultdict
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.order.order_item import OrderItem, OrderItemStatus
from marketplace.payout.payout import Payout, payout_totals
from marketplace.pricing.money import to_money
from marketplace.utils.paging import fetch_all
from marketplace.utils.timestamps import as_utc

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Payout")
class AggregatePayouts:
    cutoff = DateTime()  # defaults to now
    vendor_id = Identifier()  # all vendors when omitted


def last_period_end(vendor_id):
    """End of the vendor's most recent payout period, or None for a first payout."""
    payouts = fetch_all(Payout, vendor_id=str(vendor_id))
    ends = [as_utc(payout.period_end) for payout in payouts if payout.period_end]
    return max(ends) if ends else None


def _by_vendor(status, vendor_id=None):
    filters = {"status": status}
    if vendor_id:
        filters["vendor_id"] = str(vendor_id)

    grouped = defaultdict(list)
    for item in fetch_all(OrderItem, **filters):
        grouped[str(item.vendor_id)].append(item)
    return grouped


def unclaimed_delivered_items(vendor_id=None):
    """Delivered items not yet part of any payout, grouped by vendor."""
    grouped = _by_vendor(OrderItemStatus.DELIVERED.value, vendor_id)
    return {vendor: [item for item in items if not item.payout_id] for vendor, items in grouped.items()}


def outstanding_clawbacks(vendor_id=None):
    """Refunded items that a sent payout already paid, grouped by vendor."""
    grouped = _by_vendor(OrderItemStatus.REFUNDED.value, vendor_id)
    return {vendor: [item for item in items if item.owes_clawback] for vendor, items in grouped.items()}


def late_deliveries(items, period_end):
    """Items created on or before ``period_end``; no later period will cover them."""
    if period_end is None:
        return []
    return [item for item in items if as_utc(item.created_at) <= period_end]


@marketplace.command_handler(part_of=Payout)
class PayoutAggregationHandler:
    @handle(AggregatePayouts)
    def aggregate_payouts(self, command):
        cutoff = as_utc(command.cutoff) or datetime.now(UTC)
        settings = get_settings()

        payout_repo = current_domain.repository_for(Payout)
        item_repo = current_domain.repository_for(OrderItem)
        clawbacks_by_vendor = outstanding_clawbacks(command.vendor_id)

        created = 0
        for vendor_id, candidates in unclaimed_delivered_items(command.vendor_id).items():
            period_start = last_period_end(vendor_id)

            late = late_deliveries(candidates, period_start)
            if late:
                logger.warning(
                    "Delivered items predate the last payout period",
                    vendor_id=vendor_id,
                    order_item_ids=[str(item.id) for item in late],
                    amount=to_money(sum(item.vendor_earnings for item in late)),
                )

            if period_start is not None and cutoff <= period_start:
                continue

            items = [
                item
                for item in candidates
                if as_utc(item.created_at) <= cutoff
                and (period_start is None or as_utc(item.created_at) > period_start)
            ]
            if not items:
                continue

            clawbacks = clawbacks_by_vendor.get(vendor_id, [])
            gross, commission = payout_totals(items, clawbacks)
            net = to_money(gross - commission)
            if net < settings.payout_minimum or gross < 0 or commission < 0:
                logger.info(
                    "Payout below minimum, balance carried over",
                    vendor_id=vendor_id,
                    amount=net,
                    clawback_count=len(clawbacks),
                    payout_minimum=settings.payout_minimum,
                )
                continue

            if period_start is None:
                period_start = min(as_utc(item.created_at) for item in items)

            payout = Payout.open(
                vendor_id=vendor_id,
                order_items=items,
                period_start=period_start,
                period_end=cutoff,
                currency=settings.currency,
                clawbacks=clawbacks,
            )
            for item in items:
                item.claim_for_payout(payout.id)
                item_repo.add(item)
            for item in clawbacks:
                item.record_clawback(payout.id)
                item_repo.add(item)
            payout_repo.add(payout)
            created += 1

            logger.info(
                "Payout created",
                payout_id=str(payout.id),
                vendor_id=vendor_id,
                amount=payout.amount,
                commission_amount=payout.commission_amount,
                items_count=payout.items_count,
                clawback_amount=payout.clawback_amount,
                period_end=str(cutoff),
            )

        return created
