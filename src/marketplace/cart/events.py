"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="ShoppingCart")
class CartLineAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartLineQuantityChanged:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartLineRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartCouponApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartCleared:
    """The cart was emptied, by the buyer or because an order was placed from it."""

    __version__ = 1

    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    order_id = Identifier()
