"""OrderItem aggregate — one vendor's line of an order and the unit of fulfillment.

Each item runs its own state machine so vendors fulfilling the same order in
parallel never write to a shared status:

    pending → confirmed → processing → shipped → delivered
    cancelled, refunded: alternate terminals, absorbing

Who may move an item is part of the machine. Vendors advance one step at a
time along the happy path; admins confirm, cancel before fulfillment starts
and refund after delivery; buyers cancel only before fulfillment starts (the
order-level cancel checks every item first).

Prices, names and the commission are frozen at creation. ``payout_id`` is
written by payout aggregation. A refund takes the item back out of a payout
that was not sent yet; a refund after the payout was sent leaves the claim in
place and the item owes a clawback until a later payout deducts it.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.exceptions import InvalidTransitionError, PayoutAlreadyClaimedError
from marketplace.order.events import (
    OrderItemCancelled,
    OrderItemClaimedForPayout,
    OrderItemClawedBack,
    OrderItemConfirmed,
    OrderItemDelivered,
    OrderItemProcessingStarted,
    OrderItemRefunded,
    OrderItemReleasedFromPayout,
    OrderItemShipped,
    TrackingEntryAdded,
)
from marketplace.pricing.money import to_money
from marketplace.utils.timestamps import as_utc


class OrderItemStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Actor(Enum):
    VENDOR = "vendor"
    ADMIN = "admin"
    BUYER = "buyer"


class TrackingStatus(Enum):
    LABEL_CREATED = "label_created"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"


# Capability sets over the same states
_VENDOR_TRANSITIONS = {
    OrderItemStatus.PENDING: {OrderItemStatus.PROCESSING},
    OrderItemStatus.CONFIRMED: {OrderItemStatus.PROCESSING},
    OrderItemStatus.PROCESSING: {OrderItemStatus.SHIPPED},
    OrderItemStatus.SHIPPED: {OrderItemStatus.DELIVERED},
}

_ADMIN_TRANSITIONS = {
    OrderItemStatus.PENDING: {OrderItemStatus.CONFIRMED, OrderItemStatus.CANCELLED},
    OrderItemStatus.CONFIRMED: {OrderItemStatus.CANCELLED},
    OrderItemStatus.DELIVERED: {OrderItemStatus.REFUNDED},
}

_BUYER_TRANSITIONS = {
    OrderItemStatus.PENDING: {OrderItemStatus.CANCELLED},
    OrderItemStatus.CONFIRMED: {OrderItemStatus.CANCELLED},
}

_TRANSITIONS_BY_ACTOR = {
    Actor.VENDOR: _VENDOR_TRANSITIONS,
    Actor.ADMIN: _ADMIN_TRANSITIONS,
    Actor.BUYER: _BUYER_TRANSITIONS,
}

TERMINAL_STATES = {OrderItemStatus.CANCELLED, OrderItemStatus.REFUNDED}
PRE_FULFILLMENT_STATES = {OrderItemStatus.PENDING, OrderItemStatus.CONFIRMED}


@marketplace.entity(part_of="OrderItem")
class TrackingEntry:
    """A carrier hand-off record. Entries are appended, never edited.

    Several entries may exist (a relabel, a carrier correction); only an
    entry carrying ``delivered_at`` is authoritative for delivery.
    """

    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    tracking_url = String(max_length=1000)
    status = String(choices=TrackingStatus, default=TrackingStatus.IN_TRANSIT.value)
    status_details = String(max_length=500)
    estimated_delivery = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()


@marketplace.aggregate
class OrderItem:
    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    subtotal = Float(required=True, min_value=0.0)
    commission_rate = Float(required=True, min_value=0.0)  # percent, frozen
    commission_amount = Float(required=True, min_value=0.0)
    status = String(choices=OrderItemStatus, default=OrderItemStatus.PENDING.value)
    status_reason = String(max_length=500)
    tracking_entries = HasMany(TrackingEntry)
    payout_id = Identifier()
    clawback_payout_id = Identifier()  # later payout that deducted a post-payout refund
    created_at = DateTime()
    updated_at = DateTime()
    confirmed_at = DateTime()
    processing_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id,
        order_number,
        buyer_id,
        vendor_id,
        product_id,
        product_name,
        quantity,
        unit_price,
        commission_rate,
        variant_id=None,
        variant_name=None,
        created_at=None,
    ):
        """Create a line with its subtotal and commission frozen."""
        subtotal = to_money(unit_price * quantity)
        now = created_at or datetime.now(UTC)
        return cls(
            order_id=order_id,
            order_number=order_number,
            buyer_id=buyer_id,
            vendor_id=vendor_id,
            product_id=product_id,
            variant_id=variant_id,
            product_name=product_name,
            variant_name=variant_name,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=subtotal,
            commission_rate=commission_rate,
            commission_amount=to_money(subtotal * commission_rate / 100),
            status=OrderItemStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def vendor_earnings(self):
        return to_money(self.subtotal - self.commission_amount)

    @property
    def current_status(self) -> OrderItemStatus:
        return OrderItemStatus(self.status)

    @property
    def is_terminal(self):
        return self.current_status in TERMINAL_STATES

    @property
    def is_payout_eligible(self):
        return self.current_status == OrderItemStatus.DELIVERED and not self.payout_id

    @property
    def owes_clawback(self):
        """Refunded after its payout was sent, and not yet deducted from a later one."""
        return self.current_status == OrderItemStatus.REFUNDED and bool(self.payout_id) and not self.clawback_payout_id

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def can_transition(self, target: OrderItemStatus, actor: Actor) -> bool:
        allowed = _TRANSITIONS_BY_ACTOR[actor].get(self.current_status, set())
        return target in allowed

    def _assert_can_transition(self, target: OrderItemStatus, actor: Actor):
        if not self.can_transition(target, actor):
            raise InvalidTransitionError(self.status, target.value)

    def transition_to(self, target, actor, reason=None, tracking=None, delivered_at=None):
        """Dispatch a requested target status to the matching transition."""
        try:
            target = OrderItemStatus(target)
        except ValueError:
            raise ValidationError({"target_status": [f"Unknown order item status {target!r}"]})
        actor = Actor(actor)

        if target == OrderItemStatus.CONFIRMED:
            self.confirm(actor=actor)
        elif target == OrderItemStatus.PROCESSING:
            self.start_processing(actor=actor)
        elif target == OrderItemStatus.SHIPPED:
            self.ship(tracking=tracking, actor=actor)
        elif target == OrderItemStatus.DELIVERED:
            self.mark_delivered(delivered_at=delivered_at, actor=actor)
        elif target == OrderItemStatus.CANCELLED:
            self.cancel(actor=actor, reason=reason)
        elif target == OrderItemStatus.REFUNDED:
            self.refund(reason=reason, actor=actor)
        else:
            raise InvalidTransitionError(self.status, target.value)

    def confirm(self, actor=Actor.ADMIN):
        self._assert_can_transition(OrderItemStatus.CONFIRMED, actor)

        now = datetime.now(UTC)
        self.status = OrderItemStatus.CONFIRMED.value
        self.confirmed_at = now
        self.updated_at = now

        self.raise_(
            OrderItemConfirmed(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                confirmed_at=now,
            )
        )

    def start_processing(self, actor=Actor.VENDOR):
        self._assert_can_transition(OrderItemStatus.PROCESSING, actor)

        now = datetime.now(UTC)
        self.status = OrderItemStatus.PROCESSING.value
        self.processing_at = now
        self.updated_at = now

        self.raise_(
            OrderItemProcessingStarted(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                started_at=now,
            )
        )

    def ship(self, tracking=None, actor=Actor.VENDOR):
        """Hand the item to a carrier.

        ``tracking`` is an optional dict (carrier, tracking_number, ...) added
        as a new entry; without it an entry must already be attached.
        """
        self._assert_can_transition(OrderItemStatus.SHIPPED, actor)
        if tracking:
            self.add_tracking(**tracking)
        if not self.tracking_entries:
            raise ValidationError({"tracking": ["Tracking information is required to mark an item as shipped"]})

        latest = self.latest_tracking()
        now = datetime.now(UTC)
        self.status = OrderItemStatus.SHIPPED.value
        self.shipped_at = now
        self.updated_at = now

        self.raise_(
            OrderItemShipped(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                buyer_id=str(self.buyer_id),
                carrier=latest.carrier,
                tracking_number=latest.tracking_number,
                tracking_url=latest.tracking_url,
                shipped_at=now,
            )
        )

    def mark_delivered(self, delivered_at=None, actor=Actor.VENDOR):
        """Record delivery from the authoritative tracking entry.

        When no entry carries ``delivered_at`` yet, the latest entry is stamped
        with ``delivered_at`` (or now) and becomes the authoritative one.
        """
        self._assert_can_transition(OrderItemStatus.DELIVERED, actor)

        entry = self.delivery_entry()
        if entry is None:
            entry = self.latest_tracking()
            entry.delivered_at = delivered_at or datetime.now(UTC)
            entry.status = TrackingStatus.DELIVERED.value

        now = datetime.now(UTC)
        self.status = OrderItemStatus.DELIVERED.value
        self.delivered_at = entry.delivered_at
        self.updated_at = now

        self.raise_(
            OrderItemDelivered(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                buyer_id=str(self.buyer_id),
                delivered_at=entry.delivered_at,
            )
        )

    def cancel(self, actor=Actor.ADMIN, reason=None):
        """Cancel before fulfillment started. The caller releases the stock."""
        self._assert_can_transition(OrderItemStatus.CANCELLED, actor)

        now = datetime.now(UTC)
        self.status = OrderItemStatus.CANCELLED.value
        self.status_reason = reason
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderItemCancelled(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                cancelled_by=Actor(actor).value,
                reason=reason,
                quantity_released=self.quantity,
                cancelled_at=now,
            )
        )

    def refund(self, reason=None, actor=Actor.ADMIN):
        """Reverse a delivered item. The caller releases the stock."""
        self._assert_can_transition(OrderItemStatus.REFUNDED, actor)

        now = datetime.now(UTC)
        self.status = OrderItemStatus.REFUNDED.value
        self.status_reason = reason
        self.refunded_at = now
        self.updated_at = now

        self.raise_(
            OrderItemRefunded(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                refund_amount=self.subtotal,
                reason=reason,
                quantity_released=self.quantity,
                refunded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def add_tracking(
        self,
        carrier,
        tracking_number,
        tracking_url=None,
        status=None,
        status_details=None,
        estimated_delivery=None,
        delivered_at=None,
    ):
        if self.is_terminal:
            raise ValidationError({"status": [f"Cannot add tracking to a {self.status} item"]})
        if not carrier or not tracking_number:
            raise ValidationError({"tracking": ["Carrier and tracking number are required"]})

        if status is None:
            status = TrackingStatus.DELIVERED.value if delivered_at else TrackingStatus.IN_TRANSIT.value

        now = datetime.now(UTC)
        entry = TrackingEntry(
            carrier=carrier,
            tracking_number=tracking_number,
            tracking_url=tracking_url,
            status=status,
            status_details=status_details,
            estimated_delivery=estimated_delivery,
            delivered_at=delivered_at,
            created_at=now,
        )
        self.add_tracking_entries(entry)
        self.updated_at = now

        self.raise_(
            TrackingEntryAdded(
                order_item_id=str(self.id),
                order_id=str(self.order_id),
                vendor_id=str(self.vendor_id),
                tracking_entry_id=str(entry.id),
                carrier=carrier,
                tracking_number=tracking_number,
                status=status,
            )
        )
        return entry

    def latest_tracking(self):
        if not self.tracking_entries:
            return None
        return sorted(self.tracking_entries, key=lambda e: as_utc(e.created_at))[-1]

    def delivery_entry(self):
        """The most recent entry carrying a delivery timestamp, if any."""
        delivered = [e for e in self.tracking_entries if e.delivered_at]
        if not delivered:
            return None
        return max(delivered, key=lambda e: as_utc(e.delivered_at))

    # -------------------------------------------------------------------
    # Payout
    # -------------------------------------------------------------------
    def claim_for_payout(self, payout_id):
        if self.payout_id:
            raise PayoutAlreadyClaimedError(
                {"payout_id": [f"Order item {self.id} is already part of payout {self.payout_id}"]}
            )
        if self.current_status != OrderItemStatus.DELIVERED:
            raise ValidationError({"status": [f"Only delivered items can be paid out, item is {self.status}"]})

        self.payout_id = payout_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemClaimedForPayout(
                order_item_id=str(self.id),
                vendor_id=str(self.vendor_id),
                payout_id=str(payout_id),
            )
        )

    def release_from_payout(self):
        """Drop the claim of a refunded item whose payout was not sent yet."""
        if self.current_status != OrderItemStatus.REFUNDED:
            raise ValidationError({"status": [f"Only refunded items leave a payout, item is {self.status}"]})
        if not self.payout_id:
            return

        payout_id = self.payout_id
        self.payout_id = None
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemReleasedFromPayout(
                order_item_id=str(self.id),
                vendor_id=str(self.vendor_id),
                payout_id=str(payout_id),
            )
        )

    def record_clawback(self, payout_id):
        if not self.owes_clawback:
            raise ValidationError({"payout_id": [f"Order item {self.id} owes no clawback"]})

        self.clawback_payout_id = payout_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderItemClawedBack(
                order_item_id=str(self.id),
                vendor_id=str(self.vendor_id),
                paid_in_payout_id=str(self.payout_id),
                deducted_in_payout_id=str(payout_id),
                amount=self.vendor_earnings,
            )
        )
