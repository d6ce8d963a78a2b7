"""Payout processor port (abstract interface).

Defines the contract a money-transfer provider must implement to pay a
vendor's connected account. The payout id is passed as the idempotency key,
so a retried transfer for the same payout can never move money twice.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class TransferResult:
    """Result of a transfer attempt."""

    success: bool
    transfer_reference: str | None = None
    failure_reason: str | None = None


class PayoutProcessor(ABC):
    """Abstract payout processor interface."""

    @abstractmethod
    def transfer(
        self,
        destination_account: str,
        amount: float,
        currency: str,
        idempotency_key: str,
    ) -> TransferResult:
        """Transfer ``amount`` to a vendor's payout account."""
        ...
