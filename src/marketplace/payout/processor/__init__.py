"""Payout processor factory.

Provides get_payout_processor() / set_payout_processor() to swap
implementations. The adapter is selected by the PAYOUT_PROCESSOR_ADAPTER
environment variable; only the in-memory "fake" adapter ships here.
"""

import os

from marketplace.payout.processor.port import PayoutProcessor, TransferResult

_current_processor: PayoutProcessor | None = None


def get_payout_processor() -> PayoutProcessor:
    """Return the active processor, building it from PAYOUT_PROCESSOR_ADAPTER on first use."""
    global _current_processor
    if _current_processor is None:
        adapter = os.environ.get("PAYOUT_PROCESSOR_ADAPTER", "fake")
        if adapter == "fake":
            from marketplace.payout.processor.fake_adapter import FakePayoutProcessor

            _current_processor = FakePayoutProcessor()
        else:
            raise ValueError(f"Unknown payout processor adapter: {adapter}")
    return _current_processor


def set_payout_processor(processor: PayoutProcessor) -> None:
    """Override the active processor (useful for tests)."""
    global _current_processor
    _current_processor = processor


def reset_payout_processor() -> None:
    """Reset to the default processor."""
    global _current_processor
    _current_processor = None


__all__ = [
    "PayoutProcessor",
    "TransferResult",
    "get_payout_processor",
    "set_payout_processor",
    "reset_payout_processor",
]
