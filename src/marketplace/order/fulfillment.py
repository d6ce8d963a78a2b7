"""Vendor fulfillment — commands and handler.

Vendors move their own items one step at a time (processing, shipped,
delivered) and attach carrier tracking. Each command loads one item and is
validated against its current state, so two racing requests for the same
step cannot both succeed: the loser sees the item already moved and gets an
invalid-transition conflict.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order_item import Actor, OrderItem
from marketplace.order.queries import vendor_order_item

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="OrderItem")
class AdvanceOrderItem:
    order_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    target_status = String(required=True, max_length=20)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1000)
    delivered_at = DateTime()


@marketplace.command(part_of="OrderItem")
class AddTrackingEntry:
    order_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    tracking_url = String(max_length=1000)
    status = String(max_length=30)
    status_details = String(max_length=500)
    estimated_delivery = DateTime()
    delivered_at = DateTime()


@marketplace.command_handler(part_of=OrderItem)
class VendorFulfillmentHandler:
    @handle(AdvanceOrderItem)
    def advance_order_item(self, command):
        repo = current_domain.repository_for(OrderItem)
        item = vendor_order_item(command.order_item_id, command.vendor_id)
        previous_status = item.status

        tracking = None
        if command.carrier or command.tracking_number:
            tracking = {
                "carrier": command.carrier,
                "tracking_number": command.tracking_number,
                "tracking_url": command.tracking_url,
            }

        item.transition_to(
            command.target_status,
            Actor.VENDOR,
            tracking=tracking,
            delivered_at=command.delivered_at,
        )
        repo.add(item)

        logger.info(
            "Order item advanced by vendor",
            order_item_id=str(item.id),
            order_id=str(item.order_id),
            vendor_id=str(item.vendor_id),
            from_status=previous_status,
            to_status=item.status,
        )
        return item.status

    @handle(AddTrackingEntry)
    def add_tracking_entry(self, command):
        repo = current_domain.repository_for(OrderItem)
        item = vendor_order_item(command.order_item_id, command.vendor_id)
        entry = item.add_tracking(
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            tracking_url=command.tracking_url,
            status=command.status,
            status_details=command.status_details,
            estimated_delivery=command.estimated_delivery,
            delivered_at=command.delivered_at,
        )
        repo.add(item)
        return str(entry.id)
