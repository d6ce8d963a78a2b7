"""Domain error taxonomy.

Every error is a Protean `ValidationError` carrying a ``{field: [messages]}``
dict, so handlers and the API treat them uniformly. Subclasses only add the
category the API maps to a status code:

- plain ``ValidationError``: bad input, nothing changed (400)
- ``ConflictError``: the request lost a race or targets a stale state; the
  caller must re-fetch before retrying (409)
- ``DependencyError``: an external precondition (payment confirmation) is
  missing or invalid; nothing was written (402)
"""

from protean.exceptions import ValidationError


class ConflictError(ValidationError):
    pass


class DependencyError(ValidationError):
    pass


# Pricing and coupons
class InsufficientStockError(ValidationError):
    """One or more lines ask for more units than are in stock; keyed per line."""


class CouponRejectedError(ValidationError):
    def __init__(self, messages, reason=None, **kwargs):
        super().__init__(messages, **kwargs)
        self.reason = reason


class CouponExhaustedError(ConflictError):
    def __init__(self, messages, reason=None, **kwargs):
        super().__init__(messages, **kwargs)
        self.reason = reason


# Checkout
class StockChangedError(ConflictError):
    pass


class PriceChangedError(ConflictError):
    pass


class PaymentMismatchError(ConflictError):
    pass


class DuplicatePaymentError(ConflictError):
    pass


class PaymentConfirmationError(DependencyError):
    pass


# Order item lifecycle
class InvalidTransitionError(ConflictError):
    def __init__(self, current, target, **kwargs):
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]}, **kwargs)
        self.current = current
        self.target = target


class OrderNotCancellableError(ConflictError):
    pass


# Payouts
class PayoutAlreadyClaimedError(ConflictError):
    pass


class PayoutBlockedError(ConflictError):
    pass


class PayoutIncludesReversedItemsError(ConflictError):
    pass
