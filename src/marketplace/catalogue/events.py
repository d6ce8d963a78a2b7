"""Domain events for the Vendor and Product aggregates."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Vendor")
class VendorRegistered:
    """A seller opened a store on the marketplace."""

    __version__ = 1

    vendor_id = Identifier(required=True)
    store_name = String(required=True)
    commission_rate = Float(required=True)
    registered_at = DateTime(required=True)


@marketplace.event(part_of="Vendor")
class CommissionRateChanged:
    """The platform's cut for a vendor changed. Applies to orders placed afterwards."""

    __version__ = 1

    vendor_id = Identifier(required=True)
    previous_rate = Float(required=True)
    new_rate = Float(required=True)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Vendor")
class PayoutOnboardingCompleted:
    """The vendor connected a payout account; pending payouts may now execute."""

    __version__ = 1

    vendor_id = Identifier(required=True)
    payout_account_id = String(required=True)
    completed_at = DateTime(required=True)


@marketplace.event(part_of="Product")
class ProductListed:
    __version__ = 1

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock_quantity = Integer(required=True)


@marketplace.event(part_of="Product")
class StockReserved:
    """Units were taken out of stock for a placed order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@marketplace.event(part_of="Product")
class StockReleased:
    """Units went back into stock after a cancellation or refund."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    available = Integer(required=True)
