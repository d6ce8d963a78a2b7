"""Cart pricing read side — live stock and price checks plus the order summary.

Nothing here writes. Checkout runs the same checks again inside its unit of
work; the quote is what the buyer authorizes payment against.
"""

from dataclasses import dataclass, field

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart, cart_id_for
from marketplace.catalogue.product import Product
from marketplace.coupon.resolver import require_coupon
from marketplace.pricing.engine import OrderSummary, PricedLine, price_lines
from marketplace.pricing.money import money_equal, to_money


@dataclass(frozen=True)
class LiveLine:
    """A cart line joined with the product row it points at right now."""

    line: object
    product: Product | None
    live_price: float | None
    available_stock: int

    @property
    def unavailable(self):
        return self.product is None or not self.product.is_active

    @property
    def price_changed(self):
        return self.live_price is not None and not money_equal(self.live_price, self.line.unit_price)


@dataclass(frozen=True)
class CartQuote:
    cart: ShoppingCart
    summary: OrderSummary
    live_lines: list = field(default_factory=list)

    @property
    def price_changes(self):
        return {str(ll.line.id): ll.live_price for ll in self.live_lines if ll.price_changed}


def find_cart(buyer_id) -> ShoppingCart | None:
    try:
        return current_domain.repository_for(ShoppingCart).get(cart_id_for(buyer_id))
    except ObjectNotFoundError:
        return None


def get_cart(buyer_id) -> ShoppingCart:
    cart = find_cart(buyer_id)
    if cart is None:
        raise ObjectNotFoundError({"buyer_id": [f"No cart for buyer {buyer_id}"]})
    return cart


def load_live_lines(cart: ShoppingCart, products=None) -> list[LiveLine]:
    """Join every cart line with its product; ``products`` caches rows by id."""
    products = {} if products is None else products
    repo = current_domain.repository_for(Product)
    live_lines = []
    for line in cart.lines:
        product_id = str(line.product_id)
        if product_id not in products:
            try:
                products[product_id] = repo.get(product_id)
            except ObjectNotFoundError:
                products[product_id] = None
        product = products[product_id]

        if product is None or not product.is_active:
            live_lines.append(LiveLine(line=line, product=product, live_price=None, available_stock=0))
            continue
        live_lines.append(
            LiveLine(
                line=line,
                product=product,
                live_price=product.price_for(line.variant_id),
                available_stock=product.available_stock(line.variant_id),
            )
        )
    return live_lines


def quote_cart(cart: ShoppingCart, shipping_method="standard", as_of=None, products=None) -> CartQuote:
    """Price the cart at its snapshot prices after checking live stock.

    Raises ``InsufficientStockError`` with one message per short line and the
    coupon resolver's typed errors when the applied coupon does not qualify.
    """
    if cart.is_empty:
        raise ValidationError({"cart": ["Cart is empty"]})

    live_lines = load_live_lines(cart, products)
    priced = [
        PricedLine(
            key=str(ll.line.id),
            name=ll.line.product_name,
            unit_price=ll.line.unit_price,
            quantity=ll.line.quantity,
            available_stock=ll.available_stock,
        )
        for ll in live_lines
    ]

    terms = None
    if cart.coupon_code:
        subtotal = to_money(sum(p.unit_price * p.quantity for p in priced))
        terms = require_coupon(cart.coupon_code, subtotal, as_of).terms

    summary = price_lines(priced, discount=terms, shipping_method=shipping_method)
    return CartQuote(cart=cart, summary=summary, live_lines=live_lines)
