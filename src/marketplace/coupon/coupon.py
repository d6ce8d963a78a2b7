"""Coupon aggregate — promo codes and their redemption constraints.

A coupon's terms never change after it is issued; carts and orders refer to
it by code. The only mutations are counting redemptions and retiring it.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from marketplace.coupon.events import CouponDeactivated, CouponIssued, CouponRedeemed
from marketplace.domain import marketplace
from marketplace.pricing.engine import DiscountTerms, DiscountType
from marketplace.utils.timestamps import as_utc


class CouponRejection(Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    BELOW_MINIMUM = "BELOW_MINIMUM"


def normalize_code(code):
    return (code or "").strip().upper()


@marketplace.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    description = String(max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    min_order_value = Float(min_value=0.0)
    starts_at = DateTime()
    expires_at = DateTime()
    max_uses = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["A percentage discount cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.starts_at and self.expires_at and as_utc(self.expires_at) <= as_utc(self.starts_at):
            raise ValidationError({"expires_at": ["Expiry must be after the start of the validity window"]})

    @classmethod
    def issue(
        cls,
        code,
        discount_type,
        discount_value,
        description=None,
        max_discount_amount=None,
        min_order_value=None,
        starts_at=None,
        expires_at=None,
        max_uses=None,
    ):
        try:
            discount_type = DiscountType((discount_type or "").upper()).value
        except ValueError:
            raise ValidationError({"discount_type": [f"Unknown discount type {discount_type!r}"]})
        if not discount_value or discount_value <= 0:
            raise ValidationError({"discount_value": ["Discount value must be positive"]})

        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            max_discount_amount=max_discount_amount,
            min_order_value=min_order_value,
            starts_at=starts_at,
            expires_at=expires_at,
            max_uses=max_uses,
            used_count=0,
            is_active=True,
            created_at=now,
        )
        coupon.raise_(
            CouponIssued(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=discount_type,
                discount_value=discount_value,
                issued_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def rejection_for(self, amount, as_of=None):
        """Return why the coupon cannot apply to ``amount`` right now, or None."""
        as_of = as_utc(as_of) or datetime.now(UTC)

        if not self.is_active:
            return CouponRejection.INACTIVE
        if self.starts_at and as_of < as_utc(self.starts_at):
            return CouponRejection.NOT_STARTED
        if self.expires_at and as_of >= as_utc(self.expires_at):
            return CouponRejection.EXPIRED
        if self.max_uses is not None and (self.used_count or 0) >= self.max_uses:
            return CouponRejection.USAGE_LIMIT_REACHED
        if self.min_order_value is not None and amount < self.min_order_value:
            return CouponRejection.BELOW_MINIMUM
        return None

    def terms(self) -> DiscountTerms:
        return DiscountTerms(
            code=self.code,
            discount_type=DiscountType(self.discount_type),
            value=self.discount_value,
            max_discount_amount=self.max_discount_amount,
        )

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def record_redemption(self, order_id):
        if self.max_uses is not None and (self.used_count or 0) >= self.max_uses:
            raise ValidationError({"coupon_code": [f"Coupon {self.code} has no redemptions left"]})

        self.used_count = (self.used_count or 0) + 1
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Coupon is already inactive"]})

        self.is_active = False
        self.raise_(
            CouponDeactivated(
                coupon_id=str(self.id),
                code=self.code,
                deactivated_at=datetime.now(UTC),
            )
        )
