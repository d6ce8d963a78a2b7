"""Payout execution — commands and handler.

A payout is only sent to the processor once the vendor finished payout
onboarding; until then it stays pending and the vendor's balance keeps
accumulating. A refused transfer marks the payout failed and is logged, it
does not raise. Executing a failed payout again retries the same transfer.

Before anything is sent, the items the payout claims are re-read: a payout
still holding a cancelled or refunded item is refused and left as it is.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.catalogue.vendor import Vendor
from marketplace.domain import marketplace
from marketplace.exceptions import PayoutBlockedError, PayoutIncludesReversedItemsError
from marketplace.order.queries import items_for_payout
from marketplace.payout.payout import Payout, PayoutStatus
from marketplace.payout.processor import get_payout_processor
from marketplace.utils.paging import fetch_all

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Payout")
class ExecutePayout:
    payout_id = Identifier(required=True)


@marketplace.command(part_of="Payout")
class ProcessPendingPayouts:
    vendor_id = Identifier()  # all vendors when omitted


def reversed_items(payout):
    return [item for item in items_for_payout(payout.id) if item.is_terminal]


def _assert_nothing_reversed(payout):
    reversed_ = reversed_items(payout)
    if reversed_:
        raise PayoutIncludesReversedItemsError(
            {
                "payout_id": [
                    f"Payout {payout.id} includes {item.status} order item {item.id}" for item in reversed_
                ]
            }
        )


def send_payout(payout, vendor):
    """Move the payout through processing to completed or failed."""
    payout.start_processing()

    if not payout.has_transfer:
        payout.complete(None)
        logger.info("Payout completed without a transfer", payout_id=str(payout.id), vendor_id=str(payout.vendor_id))
        return

    result = get_payout_processor().transfer(
        destination_account=vendor.payout_account_id,
        amount=payout.amount,
        currency=payout.currency,
        idempotency_key=str(payout.id),
    )

    if result.success:
        payout.complete(result.transfer_reference)
        logger.info(
            "Payout completed",
            payout_id=str(payout.id),
            vendor_id=str(payout.vendor_id),
            amount=payout.amount,
            transfer_reference=result.transfer_reference,
        )
    else:
        payout.fail(result.failure_reason)
        logger.error(
            "Payout transfer failed",
            payout_id=str(payout.id),
            vendor_id=str(payout.vendor_id),
            amount=payout.amount,
            attempt=payout.attempts,
            failure_reason=payout.failure_reason,
        )


@marketplace.command_handler(part_of=Payout)
class PayoutExecutionHandler:
    @handle(ExecutePayout)
    def execute_payout(self, command):
        repo = current_domain.repository_for(Payout)
        payout = repo.get(command.payout_id)
        vendor = current_domain.repository_for(Vendor).get(payout.vendor_id)

        if not vendor.payouts_enabled:
            raise PayoutBlockedError(
                {"vendor_id": [f"Vendor {vendor.id} has not completed payout onboarding"]}
            )
        if payout.is_executable:
            _assert_nothing_reversed(payout)

        send_payout(payout, vendor)
        repo.add(payout)
        return payout.status

    @handle(ProcessPendingPayouts)
    def process_pending_payouts(self, command):
        repo = current_domain.repository_for(Payout)
        vendor_repo = current_domain.repository_for(Vendor)
        filters = {"status": PayoutStatus.PENDING.value}
        if command.vendor_id:
            filters["vendor_id"] = str(command.vendor_id)
        pending = fetch_all(Payout, **filters)

        vendors = {}
        completed = 0
        for payout in pending:
            vendor_id = str(payout.vendor_id)
            if vendor_id not in vendors:
                vendors[vendor_id] = vendor_repo.get(vendor_id)
            vendor = vendors[vendor_id]

            if not vendor.payouts_enabled:
                logger.warning(
                    "Payout skipped, vendor onboarding incomplete",
                    payout_id=str(payout.id),
                    vendor_id=vendor_id,
                    amount=payout.amount,
                )
                continue

            reversed_ = reversed_items(payout)
            if reversed_:
                logger.error(
                    "Payout skipped, it includes reversed items",
                    payout_id=str(payout.id),
                    vendor_id=vendor_id,
                    order_item_ids=[str(item.id) for item in reversed_],
                )
                continue

            send_payout(payout, vendor)
            repo.add(payout)
            if payout.status == PayoutStatus.COMPLETED.value:
                completed += 1

        logger.info("Pending payouts processed", pending=len(pending), completed=completed)
        return completed
