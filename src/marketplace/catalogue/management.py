"""Vendor and product registration — commands and handlers.

These are the seams through which the catalog collaborator feeds the engine:
who sells what, at which price, with how much stock, and at which
commission rate.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.catalogue.vendor import Vendor
from marketplace.domain import marketplace


@marketplace.command(part_of="Vendor")
class RegisterVendor:
    store_name = String(required=True, max_length=255)
    email = String(max_length=254)
    commission_rate = Float()  # Optional: defaults to the platform rate


@marketplace.command(part_of="Vendor")
class ChangeCommissionRate:
    vendor_id = Identifier(required=True)
    commission_rate = Float(required=True)


@marketplace.command(part_of="Vendor")
class CompletePayoutOnboarding:
    vendor_id = Identifier(required=True)
    payout_account_id = String(required=True, max_length=255)


@marketplace.command(part_of="Product")
class ListProduct:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)


@marketplace.command(part_of="Product")
class AddProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)


@marketplace.command_handler(part_of=Vendor)
class VendorManagementHandler:
    @handle(RegisterVendor)
    def register_vendor(self, command):
        vendor = Vendor.register(
            store_name=command.store_name,
            email=command.email,
            commission_rate=command.commission_rate,
        )
        current_domain.repository_for(Vendor).add(vendor)
        return str(vendor.id)

    @handle(ChangeCommissionRate)
    def change_commission_rate(self, command):
        repo = current_domain.repository_for(Vendor)
        vendor = repo.get(command.vendor_id)
        vendor.change_commission_rate(command.commission_rate)
        repo.add(vendor)

    @handle(CompletePayoutOnboarding)
    def complete_payout_onboarding(self, command):
        repo = current_domain.repository_for(Vendor)
        vendor = repo.get(command.vendor_id)
        vendor.complete_payout_onboarding(command.payout_account_id)
        repo.add(vendor)


@marketplace.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(ListProduct)
    def list_product(self, command):
        # Fails with ObjectNotFoundError for unknown vendors
        current_domain.repository_for(Vendor).get(command.vendor_id)

        product = Product.list_product(
            vendor_id=command.vendor_id,
            name=command.name,
            price=command.price,
            stock_quantity=command.stock_quantity or 0,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(AddProductVariant)
    def add_product_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        variant = product.add_variant(
            name=command.name,
            price=command.price,
            stock_quantity=command.stock_quantity or 0,
        )
        repo.add(product)
        return str(variant.id)
