"""Domain events for the Coupon aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Coupon")
class CouponIssued:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    issued_at = DateTime(required=True)


@marketplace.event(part_of="Coupon")
class CouponRedeemed:
    """A placed order used the coupon."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)


@marketplace.event(part_of="Coupon")
class CouponDeactivated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    deactivated_at = DateTime(required=True)
