"""Pydantic request/response schemas for the Marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartLineRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


class UpdateCartLineRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    coupon_code: str


class CartIdResponse(BaseModel):
    cart_id: str


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    variant_id: str | None = None
    vendor_id: str
    product_name: str
    variant_name: str | None = None
    quantity: int
    unit_price: float


class CartResponse(BaseModel):
    cart_id: str
    buyer_id: str
    coupon_code: str | None = None
    lines: list[CartLineResponse]


class OrderSummaryResponse(BaseModel):
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float
    item_count: int
    shipping_method: str
    coupon_code: str | None = None
    currency: str


class CartQuoteResponse(BaseModel):
    summary: OrderSummaryResponse
    price_changes: dict[str, float | None] = {}


# ---------------------------------------------------------------------------
# Checkout and orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    buyer_id: str
    payment_reference: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    shipping_method: str = "standard"
    notes: str | None = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "buyer_id": "buyer-001",
                    "payment_reference": "pi_3NqLd2",
                    "shipping_address": {
                        "recipient": "Ada Buyer",
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "shipping_method": "standard",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    order_item_ids: list[str]


class CancelOrderRequest(BaseModel):
    buyer_id: str
    reason: str | None = None


class AdminOrderUpdateRequest(BaseModel):
    status: str
    order_item_ids: list[str] | None = None
    reason: str | None = None


class ItemStatusResponse(BaseModel):
    order_item_id: str
    status: str


class AdminOrderUpdateResponse(BaseModel):
    order_id: str
    items: list[ItemStatusResponse]


# ---------------------------------------------------------------------------
# Vendor fulfillment
# ---------------------------------------------------------------------------
class VendorItemUpdateRequest(BaseModel):
    vendor_id: str
    status: str
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    delivered_at: datetime | None = None


class TrackingEntryRequest(BaseModel):
    vendor_id: str
    carrier: str
    tracking_number: str
    tracking_url: str | None = None
    status: str | None = None
    status_details: str | None = None
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None


class TrackingEntryResponse(BaseModel):
    order_item_id: str
    tracking_entry_id: str


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------
class AggregatePayoutsRequest(BaseModel):
    cutoff: datetime | None = None
    vendor_id: str | None = None


class PayoutsCreatedResponse(BaseModel):
    payouts_created: int


class PayoutExecutionResponse(BaseModel):
    payout_id: str
    status: str


class ProcessPendingPayoutsResponse(BaseModel):
    payouts_completed: int


# ---------------------------------------------------------------------------
# Catalogue seams
# ---------------------------------------------------------------------------
class RegisterVendorRequest(BaseModel):
    store_name: str
    email: str | None = None
    commission_rate: float | None = Field(default=None, ge=0, le=100)


class VendorIdResponse(BaseModel):
    vendor_id: str


class CommissionRateRequest(BaseModel):
    commission_rate: float = Field(ge=0, le=100)


class PayoutOnboardingRequest(BaseModel):
    payout_account_id: str


class ListProductRequest(BaseModel):
    vendor_id: str
    name: str
    price: float = Field(ge=0)
    stock_quantity: int = Field(ge=0, default=0)


class ProductIdResponse(BaseModel):
    product_id: str


class AddVariantRequest(BaseModel):
    name: str
    price: float | None = Field(default=None, ge=0)
    stock_quantity: int = Field(ge=0, default=0)


class VariantIdResponse(BaseModel):
    variant_id: str


class IssueCouponRequest(BaseModel):
    code: str
    discount_type: str
    discount_value: float = Field(gt=0)
    description: str | None = None
    max_discount_amount: float | None = None
    min_order_value: float | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    max_uses: int | None = Field(default=None, ge=1)


class CouponIdResponse(BaseModel):
    coupon_id: str
