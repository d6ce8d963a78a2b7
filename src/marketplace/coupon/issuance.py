"""Coupon issuance and retirement — commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.coupon.coupon import Coupon
from marketplace.coupon.resolver import find_coupon
from marketplace.domain import marketplace


@marketplace.command(part_of="Coupon")
class IssueCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    discount_value = Float(required=True)
    description = String(max_length=500)
    max_discount_amount = Float()
    min_order_value = Float()
    starts_at = DateTime()
    expires_at = DateTime()
    max_uses = Integer()


@marketplace.command(part_of="Coupon")
class DeactivateCoupon:
    coupon_id = Identifier(required=True)


@marketplace.command_handler(part_of=Coupon)
class CouponIssuanceHandler:
    @handle(IssueCoupon)
    def issue_coupon(self, command):
        if find_coupon(command.code) is not None:
            raise ValidationError({"code": [f"Coupon code {command.code.upper()} is already in use"]})

        coupon = Coupon.issue(
            code=command.code,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            description=command.description,
            max_discount_amount=command.max_discount_amount,
            min_order_value=command.min_order_value,
            starts_at=command.starts_at,
            expires_at=command.expires_at,
            max_uses=command.max_uses,
        )
        current_domain.repository_for(Coupon).add(coupon)
        return str(coupon.id)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        coupon.deactivate()
        repo.add(coupon)
