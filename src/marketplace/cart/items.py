"""Cart line management — commands and handler.

Every handler returns the cart id; the API answers with the re-read cart so
an optimistic client update is either confirmed or rolled back.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.cart.quote import find_cart, get_cart, load_live_lines
from marketplace.catalogue.product import Product
from marketplace.domain import marketplace

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="ShoppingCart")
class AddCartLine:
    buyer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="ShoppingCart")
class UpdateCartLineQuantity:
    buyer_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="ShoppingCart")
class RemoveCartLine:
    buyer_id = Identifier(required=True)
    line_id = Identifier(required=True)


@marketplace.command(part_of="ShoppingCart")
class ClearCart:
    buyer_id = Identifier(required=True)


@marketplace.command(part_of="ShoppingCart")
class RefreshCartPrices:
    """Accept current catalog prices for every line (after a price-changed rejection)."""

    buyer_id = Identifier(required=True)


@marketplace.command_handler(part_of=ShoppingCart)
class ManageCartLinesHandler:
    @handle(AddCartLine)
    def add_cart_line(self, command):
        product = current_domain.repository_for(Product).get(command.product_id)
        if not product.is_active:
            raise ValidationError({"product_id": [f"{product.name} is not available for purchase"]})

        repo = current_domain.repository_for(ShoppingCart)
        cart = find_cart(command.buyer_id) or ShoppingCart.create(buyer_id=command.buyer_id)
        cart.add_line(
            product_id=command.product_id,
            variant_id=command.variant_id,
            vendor_id=product.vendor_id,
            product_name=product.name,
            variant_name=product.display_name(command.variant_id),
            unit_price=product.price_for(command.variant_id),
            quantity=command.quantity,
            available_stock=product.available_stock(command.variant_id),
        )
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartLineQuantity)
    def update_cart_line_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)
        line = next((line for line in cart.lines if str(line.id) == str(command.line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Line not found in cart"]})

        product = current_domain.repository_for(Product).get(line.product_id)
        cart.update_line_quantity(
            command.line_id,
            command.quantity,
            available_stock=product.available_stock(line.variant_id),
        )
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveCartLine)
    def remove_cart_line(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)
        cart.remove_line(command.line_id)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)
        cart.clear()
        repo.add(cart)
        return str(cart.id)

    @handle(RefreshCartPrices)
    def refresh_cart_prices(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = get_cart(command.buyer_id)

        repriced = 0
        for live in load_live_lines(cart):
            if live.price_changed:
                cart.reprice_line(live.line.id, live.live_price)
                repriced += 1

        if repriced:
            repo.add(cart)
            logger.info("Cart repriced", buyer_id=str(command.buyer_id), lines_repriced=repriced)
        return str(cart.id)
