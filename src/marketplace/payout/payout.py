"""Payout aggregate — one transfer of a vendor's net earnings for a period.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PROCESSING → FAILED → PROCESSING (retry)

A payout's period is fixed when it is created. Until it is sent, a refunded
item can still be taken back out of it (``release_item``); refunds of items
that were already paid are deducted as clawbacks when the vendor's next
payout is opened. Retries only ever change the status, the attempt count and
the processor's answer.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.exceptions import ConflictError, InvalidTransitionError
from marketplace.payout.events import (
    PayoutAdjusted,
    PayoutCompleted,
    PayoutCreated,
    PayoutFailed,
    PayoutProcessingStarted,
)
from marketplace.pricing.money import money_equal, to_money
from marketplace.utils.timestamps import as_utc


class PayoutStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    PayoutStatus.PENDING: {PayoutStatus.PROCESSING},
    PayoutStatus.PROCESSING: {PayoutStatus.COMPLETED, PayoutStatus.FAILED},
    PayoutStatus.FAILED: {PayoutStatus.PROCESSING},
    PayoutStatus.COMPLETED: set(),  # Terminal
}


def payout_totals(order_items, clawbacks=()):
    """Gross and commission of ``order_items`` less those of ``clawbacks``."""
    gross = sum(item.subtotal for item in order_items) - sum(item.subtotal for item in clawbacks)
    commission = sum(item.commission_amount for item in order_items) - sum(
        item.commission_amount for item in clawbacks
    )
    return to_money(gross), to_money(commission)


@marketplace.aggregate
class Payout:
    vendor_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)  # net of commission
    commission_amount = Float(default=0.0, min_value=0.0)
    gross_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(choices=PayoutStatus, default=PayoutStatus.PENDING.value)
    period_start = DateTime(required=True)
    period_end = DateTime(required=True)
    items_count = Integer(default=0)
    clawback_amount = Float(default=0.0, min_value=0.0)  # net already included in the totals above
    clawback_count = Integer(default=0)
    attempts = Integer(default=0)
    transfer_reference = String(max_length=255)
    failure_reason = String(max_length=500)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def net_and_commission_add_up_to_gross(self):
        if not money_equal(self.amount + self.commission_amount, self.gross_amount):
            raise ValidationError({"amount": ["Net amount and commission must add up to the gross amount"]})

    @invariant.post
    def period_must_not_be_inverted(self):
        if self.period_start and self.period_end and as_utc(self.period_start) > as_utc(self.period_end):
            raise ValidationError({"period_end": ["Payout period cannot end before it starts"]})

    @classmethod
    def open(cls, vendor_id, order_items, period_start, period_end, currency="USD", clawbacks=()):
        """Open a pending payout covering ``order_items``.

        Amounts are summed from the commission frozen on each item, never
        from the vendor's current rate. ``clawbacks`` are refunded items that
        an earlier payout already paid; their gross and commission are
        subtracted.
        """
        gross, commission = payout_totals(order_items, clawbacks)
        clawback_amount = to_money(sum(item.vendor_earnings for item in clawbacks))
        now = datetime.now(UTC)
        payout = cls(
            vendor_id=vendor_id,
            amount=to_money(gross - commission),
            commission_amount=commission,
            gross_amount=gross,
            currency=currency,
            status=PayoutStatus.PENDING.value,
            period_start=period_start,
            period_end=period_end,
            items_count=len(order_items),
            clawback_amount=clawback_amount,
            clawback_count=len(clawbacks),
            created_at=now,
            updated_at=now,
        )
        payout.raise_(
            PayoutCreated(
                payout_id=str(payout.id),
                vendor_id=str(vendor_id),
                amount=payout.amount,
                commission_amount=commission,
                currency=currency,
                items_count=len(order_items),
                clawback_amount=clawback_amount,
                period_start=period_start,
                period_end=period_end,
                created_at=now,
            )
        )
        return payout

    @property
    def current_status(self) -> PayoutStatus:
        return PayoutStatus(self.status)

    @property
    def is_executable(self):
        return self.current_status in (PayoutStatus.PENDING, PayoutStatus.FAILED)

    @property
    def has_transfer(self):
        return self.amount > 0

    def release_item(self, order_item):
        """Take a refunded item back out of a payout that was not sent yet."""
        if not self.is_executable:
            raise InvalidTransitionError(self.status, "adjusted")

        gross = to_money(self.gross_amount - order_item.subtotal)
        commission = to_money(self.commission_amount - order_item.commission_amount)
        if gross < 0 or commission < 0 or gross < commission:
            raise ConflictError(
                {"payout_id": [f"Payout {self.id} cannot absorb the refund of order item {order_item.id}"]}
            )

        with atomic_change(self):
            self.gross_amount = gross
            self.commission_amount = commission
            self.amount = to_money(gross - commission)
            self.items_count = max((self.items_count or 0) - 1, 0)
            self.updated_at = datetime.now(UTC)

        self.raise_(
            PayoutAdjusted(
                payout_id=str(self.id),
                vendor_id=str(self.vendor_id),
                order_item_id=str(order_item.id),
                amount=self.amount,
                commission_amount=self.commission_amount,
                items_count=self.items_count,
            )
        )

    def _transition_to(self, target: PayoutStatus):
        if target not in _VALID_TRANSITIONS[self.current_status]:
            raise InvalidTransitionError(self.status, target.value)
        self.status = target.value

    def start_processing(self):
        self._transition_to(PayoutStatus.PROCESSING)

        now = datetime.now(UTC)
        self.attempts = (self.attempts or 0) + 1
        self.failure_reason = None
        self.updated_at = now

        self.raise_(
            PayoutProcessingStarted(
                payout_id=str(self.id),
                vendor_id=str(self.vendor_id),
                attempt=self.attempts,
                started_at=now,
            )
        )

    def complete(self, transfer_reference):
        self._transition_to(PayoutStatus.COMPLETED)

        now = datetime.now(UTC)
        self.transfer_reference = transfer_reference
        self.processed_at = now
        self.updated_at = now

        self.raise_(
            PayoutCompleted(
                payout_id=str(self.id),
                vendor_id=str(self.vendor_id),
                amount=self.amount,
                currency=self.currency,
                transfer_reference=transfer_reference,
                processed_at=now,
            )
        )

    def fail(self, failure_reason):
        self._transition_to(PayoutStatus.FAILED)

        now = datetime.now(UTC)
        self.failure_reason = failure_reason or "Transfer failed"
        self.updated_at = now

        self.raise_(
            PayoutFailed(
                payout_id=str(self.id),
                vendor_id=str(self.vendor_id),
                amount=self.amount,
                failure_reason=self.failure_reason,
                attempt=self.attempts,
                failed_at=now,
            )
        )
