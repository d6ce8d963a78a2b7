"""Read side of the payout ledger: history, summary and unpaid earnings."""

from datetime import UTC, datetime

from protean.exceptions import ValidationError

from marketplace.order.order_item import OrderItemStatus
from marketplace.order.queries import items_for_vendor
from marketplace.payout.aggregation import last_period_end, late_deliveries
from marketplace.payout.payout import Payout, PayoutStatus
from marketplace.pricing.money import to_money
from marketplace.utils.paging import fetch_all
from marketplace.utils.timestamps import as_utc

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def payouts_for_vendor(vendor_id) -> list[Payout]:
    payouts = fetch_all(Payout, vendor_id=str(vendor_id))
    return sorted(payouts, key=lambda payout: as_utc(payout.created_at), reverse=True)


def _as_dict(payout):
    return {
        "id": str(payout.id),
        "vendor_id": str(payout.vendor_id),
        "amount": payout.amount,
        "commission_amount": payout.commission_amount,
        "gross_amount": payout.gross_amount,
        "currency": payout.currency,
        "status": payout.status,
        "period_start": payout.period_start,
        "period_end": payout.period_end,
        "items_count": payout.items_count,
        "clawback_amount": payout.clawback_amount,
        "clawback_count": payout.clawback_count,
        "attempts": payout.attempts,
        "transfer_reference": payout.transfer_reference,
        "failure_reason": payout.failure_reason,
        "processed_at": payout.processed_at,
        "created_at": payout.created_at,
    }


def payout_history(vendor_id, status=None, page=1, per_page=DEFAULT_PER_PAGE):
    """One page of a vendor's payouts, newest first.

    Returns:
        Dict with ``payouts``, ``page``, ``per_page``, ``total`` and ``total_pages``.
    """
    if page < 1:
        raise ValidationError({"page": ["Page must be 1 or greater"]})
    if per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationError({"per_page": [f"Page size must be between 1 and {MAX_PER_PAGE}"]})
    if status and status != "all":
        try:
            PayoutStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown payout status {status!r}"]})

    payouts = payouts_for_vendor(vendor_id)
    if status and status != "all":
        payouts = [payout for payout in payouts if payout.status == status]

    total = len(payouts)
    start = (page - 1) * per_page
    return {
        "payouts": [_as_dict(payout) for payout in payouts[start : start + per_page]],
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": (total + per_page - 1) // per_page,
    }


def payout_summary(vendor_id, as_of=None):
    """Totals by status, computed from payout rows only."""
    as_of = as_utc(as_of) or datetime.now(UTC)
    month_start = as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    pending = processing = paid_this_month = total_paid = 0.0
    for payout in payouts_for_vendor(vendor_id):
        status = PayoutStatus(payout.status)
        if status == PayoutStatus.PENDING:
            pending += payout.amount
        elif status == PayoutStatus.PROCESSING:
            processing += payout.amount
        elif status == PayoutStatus.COMPLETED:
            total_paid += payout.amount
            if payout.processed_at and as_utc(payout.processed_at) >= month_start:
                paid_this_month += payout.amount

    return {
        "pending_amount": to_money(pending),
        "processing_amount": to_money(processing),
        "paid_this_month": to_money(paid_this_month),
        "total_paid": to_money(total_paid),
    }


def vendor_earnings(vendor_id):
    """Net earnings of delivered items that no payout has claimed yet.

    ``late_*`` covers the unclaimed items created inside a period that had
    already closed; aggregation never picks them up. ``clawback_*`` covers
    refunds of already paid items that the next payout will deduct.
    """
    items = [item for item in items_for_vendor(vendor_id, status=OrderItemStatus.DELIVERED.value) if not item.payout_id]
    late = late_deliveries(items, last_period_end(vendor_id))
    clawbacks = [
        item for item in items_for_vendor(vendor_id, status=OrderItemStatus.REFUNDED.value) if item.owes_clawback
    ]
    return {
        "unpaid_amount": to_money(sum(item.vendor_earnings for item in items)),
        "unpaid_commission": to_money(sum(item.commission_amount for item in items)),
        "unpaid_items": len(items),
        "late_amount": to_money(sum(item.vendor_earnings for item in late)),
        "late_items": len(late),
        "clawback_amount": to_money(sum(item.vendor_earnings for item in clawbacks)),
        "clawback_items": len(clawbacks),
    }
