"""Stock release for cancelled and refunded order items.

Handlers that touch several items load each product once through a shared
``products`` cache and persist them together with ``save_products``, so two
lines of the same product adjust one in-memory row instead of two stale
copies.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product

logger = structlog.get_logger(__name__)


def load_product(product_id, products):
    key = str(product_id)
    if key not in products:
        products[key] = current_domain.repository_for(Product).get(key)
    return products[key]


def release_reserved_stock(order_item, products):
    """Put the item's quantity back on its product (or variant)."""
    try:
        product = load_product(order_item.product_id, products)
    except ObjectNotFoundError:
        logger.warning(
            "Product gone, stock not released",
            order_item_id=str(order_item.id),
            product_id=str(order_item.product_id),
            quantity=order_item.quantity,
        )
        return
    product.release_stock(order_item.quantity, order_item.variant_id)


def save_products(products):
    repo = current_domain.repository_for(Product)
    for product in products.values():
        if product is not None:
            repo.add(product)
