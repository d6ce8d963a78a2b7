"""Admin order overrides — command and handler.

An admin targets an order (optionally a subset of its items) with one status.
Every targeted item is checked before any is changed; one invalid item
rejects the whole request. Refunding an item that an unsent payout claims
takes it back out of that payout in the same unit of work.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.exceptions import InvalidTransitionError
from marketplace.order.order import Order
from marketplace.order.order_item import Actor, OrderItem, OrderItemStatus
from marketplace.order.queries import items_for_order
from marketplace.order.stock import release_reserved_stock, save_products
from marketplace.payout.payout import Payout

logger = structlog.get_logger(__name__)

_ADMIN_TARGETS = {OrderItemStatus.CONFIRMED, OrderItemStatus.CANCELLED, OrderItemStatus.REFUNDED}
_RELEASES_STOCK = {OrderItemStatus.CANCELLED, OrderItemStatus.REFUNDED}


@marketplace.command(part_of="Order")
class OverrideOrderStatus:
    order_id = Identifier(required=True)
    target_status = String(required=True, max_length=20)
    order_item_ids = Text()  # JSON: list of ids; all items of the order when omitted
    reason = String(max_length=500)


def _select_items(order_id, raw_item_ids):
    items = items_for_order(order_id)
    if not raw_item_ids:
        return items

    wanted = [str(i) for i in (json.loads(raw_item_ids) if isinstance(raw_item_ids, str) else raw_item_ids)]
    by_id = {str(item.id): item for item in items}
    unknown = [item_id for item_id in wanted if item_id not in by_id]
    if unknown:
        raise ValidationError({"order_item_ids": [f"Items not in order {order_id}: {', '.join(unknown)}"]})
    return [by_id[item_id] for item_id in wanted]


def _reconcile_payout(item, payouts):
    """Take a refunded item out of its payout, unless that payout was already sent."""
    payout_id = str(item.payout_id)
    if payout_id not in payouts:
        payouts[payout_id] = current_domain.repository_for(Payout).get(payout_id)
    payout = payouts[payout_id]

    if payout.is_executable:
        payout.release_item(item)
        item.release_from_payout()
    else:
        logger.warning(
            "Refunded item was already paid out, clawback due on next payout",
            order_item_id=str(item.id),
            payout_id=payout_id,
            amount=item.vendor_earnings,
        )


@marketplace.command_handler(part_of=Order)
class AdminOverrideHandler:
    @handle(OverrideOrderStatus)
    def override_order_status(self, command):
        try:
            target = OrderItemStatus(command.target_status)
        except ValueError:
            target = None
        if target not in _ADMIN_TARGETS:
            options = ", ".join(sorted(s.value for s in _ADMIN_TARGETS))
            raise ValidationError({"target_status": [f"Admins can set {options}; got {command.target_status!r}"]})

        order = current_domain.repository_for(Order).get(command.order_id)
        targeted = _select_items(command.order_id, command.order_item_ids)
        if not targeted:
            raise ValidationError({"order_id": ["Order has no items"]})

        # Validate everything first; nothing is applied on a partial match
        blocked = [item for item in targeted if not item.can_transition(target, Actor.ADMIN)]
        if blocked:
            first = blocked[0]
            error = InvalidTransitionError(first.status, target.value)
            error.messages["order_item_ids"] = [
                f"{item.id}: cannot transition from {item.status} to {target.value}" for item in blocked
            ]
            raise error

        products = {}
        payouts = {}
        item_repo = current_domain.repository_for(OrderItem)
        for item in targeted:
            item.transition_to(target, Actor.ADMIN, reason=command.reason)
            if target in _RELEASES_STOCK:
                release_reserved_stock(item, products)
            if target == OrderItemStatus.REFUNDED and item.payout_id:
                _reconcile_payout(item, payouts)
            item_repo.add(item)
        save_products(products)
        payout_repo = current_domain.repository_for(Payout)
        for payout in payouts.values():
            payout_repo.add(payout)

        if order.settle_if_fully_reversed(items_for_order(command.order_id, changed=targeted)):
            current_domain.repository_for(Order).add(order)

        logger.info(
            "Admin override applied",
            order_id=str(order.id),
            target_status=target.value,
            item_count=len(targeted),
            reason=command.reason,
        )
        return [{"order_item_id": str(item.id), "status": item.status} for item in targeted]
