"""Business settings for pricing and payouts.

Tax rate, free-shipping threshold, default commission and the minimum payout
are tenant decisions, so they are read from the environment instead of being
baked into the pricing path. `set_settings()` swaps them at runtime (tests,
multi-tenant hosts) the same way adapters are swapped.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class MarketplaceSettings:
    tax_rate: float = 0.08
    free_shipping_threshold: float = 100.0
    currency: str = "USD"
    default_commission_rate: float = 15.0  # percent
    payout_minimum: float = 0.0
    low_stock_threshold: int = 10  # units; at or below reads as low stock in vendor analytics

    @classmethod
    def from_env(cls) -> "MarketplaceSettings":
        return cls(
            tax_rate=float(os.environ.get("MARKETPLACE_TAX_RATE", cls.tax_rate)),
            free_shipping_threshold=float(
                os.environ.get("MARKETPLACE_FREE_SHIPPING_THRESHOLD", cls.free_shipping_threshold)
            ),
            currency=os.environ.get("MARKETPLACE_CURRENCY", cls.currency),
            default_commission_rate=float(
                os.environ.get("MARKETPLACE_DEFAULT_COMMISSION_RATE", cls.default_commission_rate)
            ),
            payout_minimum=float(os.environ.get("MARKETPLACE_PAYOUT_MINIMUM", cls.payout_minimum)),
            low_stock_threshold=int(os.environ.get("MARKETPLACE_LOW_STOCK_THRESHOLD", cls.low_stock_threshold)),
        )


_current_settings: MarketplaceSettings | None = None


def get_settings() -> MarketplaceSettings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = MarketplaceSettings.from_env()
    return _current_settings


def set_settings(settings: MarketplaceSettings) -> None:
    """Override the active settings."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop overrides; the next read reloads from the environment."""
    global _current_settings
    _current_settings = None
