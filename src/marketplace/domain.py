"""Marketplace bounded context — carts, checkout, vendor order items and payouts.

A single domain owns every aggregate involved in turning a cart into paid,
per-vendor order items, so checkout can reserve stock, create the order and
its items, and clear the cart inside one unit of work.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
