"""Cart coupon application — commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.cart.quote import get_cart
from marketplace.coupon.resolver import require_coupon
from marketplace.domain import marketplace
from marketplace.pricing.money import to_money


@marketplace.command(part_of="ShoppingCart")
class ApplyCartCoupon:
    buyer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@marketplace.command(part_of="ShoppingCart")
class RemoveCartCoupon:
    buyer_id = Identifier(required=True)


@marketplace.command_handler(part_of=ShoppingCart)
class CartCouponHandler:
    @handle(ApplyCartCoupon)
    def apply_cart_coupon(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)

        # Reject up front with the specific reason; checkout re-validates
        subtotal = to_money(sum(line.unit_price * line.quantity for line in cart.lines))
        require_coupon(command.coupon_code, subtotal)

        cart.apply_coupon(command.coupon_code)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveCartCoupon)
    def remove_cart_coupon(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)
        cart.remove_coupon()
        repo.add(cart)
        return str(cart.id)
