"""Domain events for the Payout aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payout")
class PayoutCreated:
    """Delivered items of one vendor were rolled into a pending payout."""

    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    commission_amount = Float(required=True)
    currency = String(required=True)
    items_count = Integer(required=True)
    clawback_amount = Float(default=0.0)
    period_start = DateTime(required=True)
    period_end = DateTime(required=True)
    created_at = DateTime(required=True)


@marketplace.event(part_of="Payout")
class PayoutProcessingStarted:
    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    attempt = Integer(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="Payout")
class PayoutCompleted:
    """Money reached the vendor's payout account."""

    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    transfer_reference = String()  # empty when refunds left nothing to transfer
    processed_at = DateTime(required=True)


@marketplace.event(part_of="Payout")
class PayoutFailed:
    """The transfer was refused. The payout can be executed again."""

    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    failure_reason = String(required=True)
    attempt = Integer(required=True)
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Payout")
class PayoutAdjusted:
    """A refunded item was taken out of a payout before it was sent."""

    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    amount = Float(required=True)
    commission_amount = Float(required=True)
    items_count = Integer(required=True)
