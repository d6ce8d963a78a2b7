"""Payment confirmation factory.

Provides get_payment_confirmations() / set_payment_confirmations() to swap
implementations. The adapter is selected by the PAYMENT_CONFIRMATIONS_ADAPTER
environment variable; only the in-memory "fake" adapter ships here.
"""

import os

from marketplace.payment.port import PaymentConfirmation, PaymentConfirmations

_current: PaymentConfirmations | None = None


def get_payment_confirmations() -> PaymentConfirmations:
    """Return the active adapter, building it from PAYMENT_CONFIRMATIONS_ADAPTER on first use."""
    global _current
    if _current is None:
        adapter = os.environ.get("PAYMENT_CONFIRMATIONS_ADAPTER", "fake")
        if adapter == "fake":
            from marketplace.payment.fake_adapter import FakePaymentConfirmations

            _current = FakePaymentConfirmations()
        else:
            raise ValueError(f"Unknown payment confirmations adapter: {adapter}")
    return _current


def set_payment_confirmations(adapter: PaymentConfirmations) -> None:
    """Override the active adapter (useful for tests)."""
    global _current
    _current = adapter


def reset_payment_confirmations() -> None:
    """Reset to the default adapter."""
    global _current
    _current = None


__all__ = [
    "PaymentConfirmation",
    "PaymentConfirmations",
    "get_payment_confirmations",
    "set_payment_confirmations",
    "reset_payment_confirmations",
]
