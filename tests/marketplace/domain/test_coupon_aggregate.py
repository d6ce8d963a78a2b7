"""Tests for the Coupon aggregate: issuing, redemption constraints and typed rejections."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.coupon.coupon import Coupon, CouponRejection
from marketplace.coupon.events import CouponDeactivated, CouponIssued, CouponRedeemed
from marketplace.pricing.engine import DiscountType

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _issue(**overrides):
    defaults = {"code": "save15", "discount_type": "percentage", "discount_value": 15.0}
    defaults.update(overrides)
    return Coupon.issue(**defaults)


class TestIssue:
    def test_code_is_normalized(self):
        coupon = _issue(code="  spring10 ")
        assert coupon.code == "SPRING10"
        assert isinstance(coupon._events[0], CouponIssued)

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _issue(discount_type="bogo")
        assert "discount_type" in exc.value.messages

    def test_percentage_over_hundred_rejected(self):
        with pytest.raises(ValidationError):
            _issue(discount_value=150.0)

    def test_expiry_must_follow_start(self):
        with pytest.raises(ValidationError):
            _issue(starts_at=NOW, expires_at=NOW - timedelta(days=1))

    def test_terms_carry_type_and_cap(self):
        terms = _issue(max_discount_amount=20.0).terms()
        assert terms.discount_type == DiscountType.PERCENTAGE
        assert terms.value == 15.0
        assert terms.max_discount_amount == 20.0


class TestRejections:
    def test_valid_coupon_has_no_rejection(self):
        assert _issue().rejection_for(50.0, NOW) is None

    def test_inactive(self):
        coupon = _issue()
        coupon.deactivate()
        assert coupon.rejection_for(50.0, NOW) == CouponRejection.INACTIVE
        assert isinstance(coupon._events[-1], CouponDeactivated)

    def test_not_started(self):
        coupon = _issue(starts_at=NOW + timedelta(days=2))
        assert coupon.rejection_for(50.0, NOW) == CouponRejection.NOT_STARTED

    def test_expired(self):
        coupon = _issue(starts_at=NOW - timedelta(days=10), expires_at=NOW - timedelta(days=1))
        assert coupon.rejection_for(50.0, NOW) == CouponRejection.EXPIRED

    def test_below_minimum(self):
        coupon = _issue(min_order_value=75.0)
        assert coupon.rejection_for(50.0, NOW) == CouponRejection.BELOW_MINIMUM
        assert coupon.rejection_for(75.0, NOW) is None

    def test_usage_limit_reached(self):
        coupon = _issue(max_uses=1)
        coupon.record_redemption("order-1")

        assert coupon.used_count == 1
        assert isinstance(coupon._events[-1], CouponRedeemed)
        assert coupon.rejection_for(50.0, NOW) == CouponRejection.USAGE_LIMIT_REACHED

    def test_redemption_past_limit_rejected(self):
        coupon = _issue(max_uses=1)
        coupon.record_redemption("order-1")
        with pytest.raises(ValidationError):
            coupon.record_redemption("order-2")
