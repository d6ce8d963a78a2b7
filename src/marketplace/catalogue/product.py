"""Product aggregate — price, stock and vendor ownership for cart lines.

Catalog browsing lives elsewhere; this aggregate is the row the checkout
reserves stock against. A line targets either the product itself or one of
its variants; a variant without its own price sells at the product price.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.catalogue.events import ProductListed, StockReleased, StockReserved
from marketplace.domain import marketplace
from marketplace.exceptions import StockChangedError


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@marketplace.entity(part_of="Product")
class ProductVariant:
    name = String(required=True, max_length=255)
    price = Float(min_value=0.0)  # None: sells at the product price
    stock_quantity = Integer(default=0, min_value=0)


@marketplace.aggregate
class Product:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def list_product(cls, vendor_id, name, price, stock_quantity=0):
        now = datetime.now(UTC)
        product = cls(
            vendor_id=vendor_id,
            name=name,
            price=price,
            stock_quantity=stock_quantity,
            status=ProductStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductListed(
                product_id=str(product.id),
                vendor_id=str(vendor_id),
                name=name,
                price=price,
                stock_quantity=stock_quantity,
            )
        )
        return product

    def add_variant(self, name, stock_quantity=0, price=None):
        variant = ProductVariant(name=name, price=price, stock_quantity=stock_quantity)
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    @property
    def is_active(self):
        return self.status == ProductStatus.ACTIVE.value

    def variant(self, variant_id):
        """Return the variant, or raise when it does not belong to this product."""
        found = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if found is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} does not exist for {self.name}"]})
        return found

    def price_for(self, variant_id=None):
        if variant_id:
            variant = self.variant(variant_id)
            if variant.price is not None:
                return variant.price
        return self.price

    def available_stock(self, variant_id=None):
        if variant_id:
            return self.variant(variant_id).stock_quantity
        return self.stock_quantity

    def display_name(self, variant_id=None):
        if variant_id:
            return self.variant(variant_id).name
        return None

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def reserve_stock(self, quantity, variant_id=None):
        """Check-and-decrement stock for a placed order line."""
        available = self.available_stock(variant_id)
        if quantity > available:
            raise StockChangedError(
                {"stock": [f"Insufficient stock for {self.name}: {available} available, {quantity} requested"]}
            )

        remaining = available - quantity
        if variant_id:
            self.variant(variant_id).stock_quantity = remaining
        else:
            self.stock_quantity = remaining
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=remaining,
            )
        )

    def release_stock(self, quantity, variant_id=None):
        """Put units back after the order line was cancelled or refunded."""
        available = self.available_stock(variant_id) + quantity
        if variant_id:
            self.variant(variant_id).stock_quantity = available
        else:
            self.stock_quantity = available
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                available=available,
            )
        )
