"""Buyer order cancellation — command and handler.

A buyer cancels the whole order or nothing. Once any vendor has started
processing, the cancel is refused and the buyer is pointed to per-item
handling by support.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.exceptions import OrderNotCancellableError
from marketplace.order.order import Order
from marketplace.order.order_item import PRE_FULFILLMENT_STATES, Actor, OrderItem, OrderItemStatus
from marketplace.order.queries import items_for_order
from marketplace.order.stock import release_reserved_stock, save_products

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String(max_length=500)


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        if str(order.buyer_id) != str(command.buyer_id):
            raise ObjectNotFoundError({"order_id": [f"Order {command.order_id} not found"]})

        items = items_for_order(order.id)
        blocking = [item for item in items if OrderItemStatus(item.status) not in PRE_FULFILLMENT_STATES]
        if blocking:
            raise OrderNotCancellableError(
                {
                    "order_id": [
                        "Order can no longer be cancelled as a whole; "
                        "contact support to cancel or return individual items"
                    ],
                    "order_item_ids": [f"{item.id}: {item.status}" for item in blocking],
                }
            )

        products = {}
        item_repo = current_domain.repository_for(OrderItem)
        for item in items:
            item.cancel(actor=Actor.BUYER, reason=command.reason)
            release_reserved_stock(item, products)
            item_repo.add(item)
        save_products(products)

        order.record_cancellation(reason=command.reason)
        order.settle_if_fully_reversed(items)
        order_repo.add(order)

        logger.info(
            "Order cancelled by buyer",
            order_id=str(order.id),
            buyer_id=str(command.buyer_id),
            item_count=len(items),
            refund_amount=order.pricing.total,
        )
