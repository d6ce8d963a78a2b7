"""Coupon resolver — looks a promo code up and says precisely why it can't apply.

Callers get a typed ``CouponRejection`` rather than a generic failure so the
storefront can tell "no such code" apart from "expired" or "spend $20 more".
"""

from dataclasses import dataclass

from protean.utils.globals import current_domain

from marketplace.coupon.coupon import Coupon, CouponRejection, normalize_code
from marketplace.exceptions import CouponExhaustedError, CouponRejectedError
from marketplace.pricing.engine import DiscountTerms


@dataclass(frozen=True)
class CouponResolution:
    code: str
    coupon: Coupon | None = None
    rejection: CouponRejection | None = None
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None

    @property
    def terms(self) -> DiscountTerms | None:
        return self.coupon.terms() if self.accepted else None


def rejection_message(rejection: CouponRejection, code: str, coupon: Coupon | None = None) -> str:
    if rejection == CouponRejection.NOT_FOUND:
        return f"Coupon {code} does not exist"
    if rejection == CouponRejection.INACTIVE:
        return f"Coupon {code} is no longer active"
    if rejection == CouponRejection.NOT_STARTED:
        return f"Coupon {code} is not valid until {coupon.starts_at.date().isoformat()}"
    if rejection == CouponRejection.EXPIRED:
        return f"Coupon {code} has expired"
    if rejection == CouponRejection.USAGE_LIMIT_REACHED:
        return f"Coupon {code} has reached its usage limit"
    return f"Coupon {code} requires a minimum order of {coupon.min_order_value:.2f}"


def find_coupon(code) -> Coupon | None:
    matches = current_domain.repository_for(Coupon)._dao.query.filter(code=normalize_code(code)).limit(1).all().items
    return matches[0] if matches else None


def resolve_coupon(code, amount, as_of=None) -> CouponResolution:
    """Validate ``code`` against ``amount`` (the pre-discount subtotal)."""
    code = normalize_code(code)
    coupon = find_coupon(code)
    if coupon is None:
        rejection = CouponRejection.NOT_FOUND
    else:
        rejection = coupon.rejection_for(amount, as_of)

    if rejection is None:
        return CouponResolution(code=code, coupon=coupon)
    return CouponResolution(
        code=code,
        coupon=coupon,
        rejection=rejection,
        message=rejection_message(rejection, code, coupon),
    )


def require_coupon(code, amount, as_of=None) -> CouponResolution:
    """Like ``resolve_coupon`` but raise on rejection.

    An exhausted coupon is a conflict (someone else took the last use); every
    other rejection is a validation error on ``coupon_code``.
    """
    resolution = resolve_coupon(code, amount, as_of)
    if resolution.accepted:
        return resolution

    messages = {"coupon_code": [resolution.message]}
    if resolution.rejection == CouponRejection.USAGE_LIMIT_REACHED:
        raise CouponExhaustedError(messages, reason=resolution.rejection)
    raise CouponRejectedError(messages, reason=resolution.rejection)
