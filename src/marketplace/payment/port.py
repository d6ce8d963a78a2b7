"""Payment confirmation port.

Payment capture happens outside the marketplace. Before checkout creates an
order it asks the processor what was actually captured under the buyer's
payment reference; the order is only created when that amount matches the
priced cart.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentConfirmation:
    """What the processor reports for a payment reference."""

    reference: str
    confirmed: bool
    amount: float | None = None
    currency: str | None = None
    failure_reason: str | None = None


class PaymentConfirmations(ABC):
    @abstractmethod
    def confirm(self, payment_reference: str) -> PaymentConfirmation:
        """Look up a captured payment by reference."""
        ...
