"""Marketplace domain API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import (
    analytics_router,
    cart_router,
    catalogue_router,
    checkout_router,
    order_router,
    payout_router,
    vendor_router,
)

routers = [
    cart_router,
    checkout_router,
    order_router,
    vendor_router,
    payout_router,
    analytics_router,
    catalogue_router,
]

__all__ = [
    "routers",
    "register_error_handlers",
    "cart_router",
    "checkout_router",
    "order_router",
    "vendor_router",
    "payout_router",
    "analytics_router",
    "catalogue_router",
]
