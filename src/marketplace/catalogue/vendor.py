"""Vendor aggregate — the selling side of an order item and the payee of a payout.

Only the attributes the order and payout engine reads live here: the
commission rate in effect for new orders and whether the vendor finished
payout onboarding.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String

from marketplace.catalogue.events import CommissionRateChanged, PayoutOnboardingCompleted, VendorRegistered
from marketplace.config import get_settings
from marketplace.domain import marketplace


def _validate_rate(rate):
    if rate is None or rate < 0 or rate > 100:
        raise ValidationError({"commission_rate": ["Commission rate must be between 0 and 100 percent"]})


@marketplace.aggregate
class Vendor:
    store_name = String(required=True, max_length=255)
    email = String(max_length=254)
    commission_rate = Float(default=15.0)  # percent of item subtotal
    payout_account_id = String(max_length=255)
    payouts_enabled = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, store_name, email=None, commission_rate=None):
        rate = get_settings().default_commission_rate if commission_rate is None else commission_rate
        _validate_rate(rate)

        now = datetime.now(UTC)
        vendor = cls(
            store_name=store_name,
            email=email,
            commission_rate=rate,
            payouts_enabled=False,
            created_at=now,
            updated_at=now,
        )
        vendor.raise_(
            VendorRegistered(
                vendor_id=str(vendor.id),
                store_name=store_name,
                commission_rate=rate,
                registered_at=now,
            )
        )
        return vendor

    def change_commission_rate(self, new_rate):
        """Change the rate used for orders placed from now on.

        Order items already created keep the commission they were frozen with.
        """
        _validate_rate(new_rate)
        previous_rate = self.commission_rate
        now = datetime.now(UTC)
        self.commission_rate = new_rate
        self.updated_at = now

        self.raise_(
            CommissionRateChanged(
                vendor_id=str(self.id),
                previous_rate=previous_rate,
                new_rate=new_rate,
                changed_at=now,
            )
        )

    def complete_payout_onboarding(self, payout_account_id):
        if not payout_account_id:
            raise ValidationError({"payout_account_id": ["A payout account is required"]})
        if self.payouts_enabled:
            raise ValidationError({"payouts_enabled": ["Payout onboarding is already complete"]})

        now = datetime.now(UTC)
        self.payout_account_id = payout_account_id
        self.payouts_enabled = True
        self.updated_at = now

        self.raise_(
            PayoutOnboardingCompleted(
                vendor_id=str(self.id),
                payout_account_id=payout_account_id,
                completed_at=now,
            )
        )
