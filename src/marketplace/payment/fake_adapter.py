"""In-memory payment confirmations for development and tests.

Captures are registered explicitly with ``capture()``; any other reference
reads as unconfirmed, the same way an abandoned payment intent would.
"""

from marketplace.payment.port import PaymentConfirmation, PaymentConfirmations


class FakePaymentConfirmations(PaymentConfirmations):
    def __init__(self) -> None:
        self.captures: dict[str, PaymentConfirmation] = {}
        self.calls: list[dict] = []

    def capture(self, payment_reference: str, amount: float, currency: str = "USD") -> None:
        self.captures[payment_reference] = PaymentConfirmation(
            reference=payment_reference,
            confirmed=True,
            amount=amount,
            currency=currency,
        )

    def decline(self, payment_reference: str, failure_reason: str = "Card declined") -> None:
        self.captures[payment_reference] = PaymentConfirmation(
            reference=payment_reference,
            confirmed=False,
            failure_reason=failure_reason,
        )

    def confirm(self, payment_reference: str) -> PaymentConfirmation:
        self.calls.append({"method": "confirm", "payment_reference": payment_reference})

        confirmation = self.captures.get(payment_reference)
        if confirmation is None:
            return PaymentConfirmation(
                reference=payment_reference,
                confirmed=False,
                failure_reason="No captured payment for this reference",
            )
        return confirmation
