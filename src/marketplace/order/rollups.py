"""Order rollups — keeps Order.shipped_at / delivered_at in step with its items.

Runs as an event handler, in its own unit of work after the item change
committed, so vendors moving their items in parallel never write the order
row inside their own transition.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.order.events import OrderItemCancelled, OrderItemDelivered, OrderItemRefunded, OrderItemShipped
from marketplace.order.order import Order
from marketplace.order.queries import items_for_order

logger = structlog.get_logger(__name__)


def refresh_order_rollups(order_id):
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    if order.refresh_fulfillment(items_for_order(order_id)):
        repo.add(order)
        logger.info(
            "Order rollups refreshed",
            order_id=str(order_id),
            shipped_at=str(order.shipped_at) if order.shipped_at else None,
            delivered_at=str(order.delivered_at) if order.delivered_at else None,
        )


@marketplace.event_handler(part_of=Order, stream_category="marketplace::order_item")
class OrderRollupEventHandler:
    """Recomputes order-level fulfillment stamps when an item moves."""

    @handle(OrderItemShipped)
    def on_item_shipped(self, event: OrderItemShipped) -> None:
        refresh_order_rollups(event.order_id)

    @handle(OrderItemDelivered)
    def on_item_delivered(self, event: OrderItemDelivered) -> None:
        refresh_order_rollups(event.order_id)

    @handle(OrderItemCancelled)
    def on_item_cancelled(self, event: OrderItemCancelled) -> None:
        refresh_order_rollups(event.order_id)

    @handle(OrderItemRefunded)
    def on_item_refunded(self, event: OrderItemRefunded) -> None:
        refresh_order_rollups(event.order_id)
