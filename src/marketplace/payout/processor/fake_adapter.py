"""Configurable fake payout processor for development and testing.

Simulates a transfer provider without external calls. It can be configured
at runtime to succeed or fail. Successful transfers are remembered by
idempotency key and replayed, the way a real provider answers a repeated
request.
"""

from uuid import uuid4

from marketplace.payout.processor.port import PayoutProcessor, TransferResult


class FakePayoutProcessor(PayoutProcessor):
    """Configurable fake payout processor."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Destination account unavailable"
        self.calls: list[dict] = []
        self.transfers: dict[str, TransferResult] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Destination account unavailable") -> None:
        """Configure processor behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def transfer(
        self,
        destination_account: str,
        amount: float,
        currency: str,
        idempotency_key: str,
    ) -> TransferResult:
        self.calls.append(
            {
                "method": "transfer",
                "destination_account": destination_account,
                "amount": amount,
                "currency": currency,
                "idempotency_key": idempotency_key,
            }
        )

        if idempotency_key in self.transfers:
            return self.transfers[idempotency_key]

        if self.should_succeed:
            result = TransferResult(success=True, transfer_reference=f"fake_tr_{uuid4().hex[:12]}")
            self.transfers[idempotency_key] = result
            return result
        return TransferResult(success=False, failure_reason=self.failure_reason)
