"""Shopping Cart aggregate — server-owned, one per buyer.

The cart id is derived from the buyer id, so there is never more than one
cart row per buyer, and a cart holds at most ``MAX_CART_LINES`` lines.

The cart is the source of truth for what the buyer intends to purchase; a
client keeps a read-through copy and reconciles against the cart returned by
every mutation. Each line remembers the unit price seen when it was added so
checkout can detect a price change before charging.
"""

import uuid
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartLineAdded,
    CartLineQuantityChanged,
    CartLineRemoved,
)
from marketplace.coupon.coupon import normalize_code
from marketplace.domain import marketplace
from marketplace.exceptions import InsufficientStockError

MAX_CART_LINES = 100
CART_ID_NAMESPACE = uuid.UUID("6f1c2b7e-4f0a-4d59-9a53-2f0c7e1d8b41")


def cart_id_for(buyer_id) -> str:
    """Carts are keyed by buyer: two first adds for one buyer target the same row."""
    return str(uuid.uuid5(CART_ID_NAMESPACE, str(buyer_id)))


@marketplace.entity(part_of="ShoppingCart")
class CartLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    vendor_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)  # snapshot at add time
    added_at = DateTime()


@marketplace.aggregate
class ShoppingCart:
    buyer_id = Identifier(required=True)
    lines = HasMany(CartLine)
    coupon_code = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, buyer_id):
        now = datetime.now(UTC)
        return cls(id=cart_id_for(buyer_id), buyer_id=buyer_id, created_at=now, updated_at=now)

    def _find_line(self, line_id):
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Line not found in cart"]})
        return line

    def line_for(self, product_id, variant_id=None):
        return next(
            (
                line
                for line in self.lines
                if str(line.product_id) == str(product_id) and str(line.variant_id or "") == str(variant_id or "")
            ),
            None,
        )

    @property
    def is_empty(self):
        return not self.lines

    # -------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------
    def add_line(
        self,
        product_id,
        vendor_id,
        product_name,
        unit_price,
        quantity,
        variant_id=None,
        variant_name=None,
        available_stock=None,
    ):
        """Add a line, or grow the existing line for the same product/variant.

        ``available_stock`` is the live stock level; the merged quantity may
        not exceed it.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.line_for(product_id, variant_id)
        if existing is None and len(self.lines) >= MAX_CART_LINES:
            raise ValidationError({"lines": [f"A cart holds at most {MAX_CART_LINES} lines"]})

        new_quantity = quantity + (existing.quantity if existing else 0)
        if available_stock is not None and new_quantity > available_stock:
            raise InsufficientStockError(
                {"quantity": [f"Only {available_stock} of {product_name} in stock, {new_quantity} requested"]}
            )

        now = datetime.now(UTC)
        if existing:
            existing.quantity = new_quantity
            existing.unit_price = unit_price
            line = existing
        else:
            line = CartLine(
                product_id=product_id,
                variant_id=variant_id,
                vendor_id=vendor_id,
                product_name=product_name,
                variant_name=variant_name,
                quantity=quantity,
                unit_price=unit_price,
                added_at=now,
            )
            self.add_lines(line)
        self.updated_at = now

        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                buyer_id=str(self.buyer_id),
                line_id=str(line.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return line

    def update_line_quantity(self, line_id, new_quantity, available_stock=None):
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1; remove the line instead"]})

        line = self._find_line(line_id)
        if available_stock is not None and new_quantity > available_stock:
            raise InsufficientStockError(
                {"quantity": [f"Only {available_stock} of {line.product_name} in stock, {new_quantity} requested"]}
            )

        previous_quantity = line.quantity
        line.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineQuantityChanged(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def reprice_line(self, line_id, unit_price):
        """Take a new price snapshot after the buyer saw the price change."""
        line = self._find_line(line_id)
        line.unit_price = unit_price
        self.updated_at = datetime.now(UTC)

    def remove_line(self, line_id):
        line = self._find_line(line_id)
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartLineRemoved(cart_id=str(self.id), line_id=str(line_id)))

    # -------------------------------------------------------------------
    # Coupon (by reference only)
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code):
        code = normalize_code(coupon_code)
        if not code:
            raise ValidationError({"coupon_code": ["Coupon code is required"]})
        if self.coupon_code == code:
            raise ValidationError({"coupon_code": ["Coupon already applied"]})

        self.coupon_code = code
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=code))

    def remove_coupon(self):
        if not self.coupon_code:
            raise ValidationError({"coupon_code": ["No coupon applied"]})

        code = self.coupon_code
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=code))

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def clear(self, order_id=None):
        """Empty the cart; ``order_id`` is set when checkout consumed it."""
        for line in list(self.lines):
            self.remove_lines(line)
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                buyer_id=str(self.buyer_id),
                order_id=str(order_id) if order_id else None,
            )
        )
