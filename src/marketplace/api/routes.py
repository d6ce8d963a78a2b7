"""FastAPI routes for the Marketplace domain.

Commands are processed synchronously; each route translates its request
schema into a Protean command and maps the handler's return value back.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from marketplace.analytics.platform import platform_analytics
from marketplace.analytics.vendor import vendor_analytics
from marketplace.api.schemas import (
    AddCartLineRequest,
    AddVariantRequest,
    AdminOrderUpdateRequest,
    AdminOrderUpdateResponse,
    AggregatePayoutsRequest,
    ApplyCouponRequest,
    CancelOrderRequest,
    CartIdResponse,
    CartLineResponse,
    CartQuoteResponse,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    CommissionRateRequest,
    CouponIdResponse,
    IssueCouponRequest,
    ItemStatusResponse,
    ListProductRequest,
    OrderSummaryResponse,
    PayoutExecutionResponse,
    PayoutOnboardingRequest,
    PayoutsCreatedResponse,
    ProcessPendingPayoutsResponse,
    ProductIdResponse,
    RegisterVendorRequest,
    StatusResponse,
    TrackingEntryRequest,
    TrackingEntryResponse,
    UpdateCartLineRequest,
    VariantIdResponse,
    VendorIdResponse,
    VendorItemUpdateRequest,
)
from marketplace.cart.coupons import ApplyCartCoupon, RemoveCartCoupon
from marketplace.cart.items import AddCartLine, ClearCart, RefreshCartPrices, RemoveCartLine, UpdateCartLineQuantity
from marketplace.cart.quote import get_cart, quote_cart
from marketplace.catalogue.management import (
    AddProductVariant,
    ChangeCommissionRate,
    CompletePayoutOnboarding,
    ListProduct,
    RegisterVendor,
)
from marketplace.coupon.issuance import DeactivateCoupon, IssueCoupon
from marketplace.order.administration import OverrideOrderStatus
from marketplace.order.cancellation import CancelOrder
from marketplace.order.checkout import PlaceOrder
from marketplace.order.fulfillment import AddTrackingEntry, AdvanceOrderItem
from marketplace.order.order import Order
from marketplace.order.queries import items_for_order, items_for_vendor, list_orders
from marketplace.payout.aggregation import AggregatePayouts
from marketplace.payout.execution import ExecutePayout, ProcessPendingPayouts
from marketplace.payout.queries import payout_history, payout_summary, vendor_earnings


def _item_view(item):
    latest = item.latest_tracking()
    return {
        "order_item_id": str(item.id),
        "order_id": str(item.order_id),
        "order_number": item.order_number,
        "vendor_id": str(item.vendor_id),
        "product_id": str(item.product_id),
        "variant_id": str(item.variant_id) if item.variant_id else None,
        "product_name": item.product_name,
        "variant_name": item.variant_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "subtotal": item.subtotal,
        "commission_amount": item.commission_amount,
        "vendor_earnings": item.vendor_earnings,
        "status": item.status,
        "tracking": (
            {
                "carrier": latest.carrier,
                "tracking_number": latest.tracking_number,
                "tracking_url": latest.tracking_url,
                "status": latest.status,
            }
            if latest
            else None
        ),
        "payout_id": str(item.payout_id) if item.payout_id else None,
        "created_at": item.created_at,
    }


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{buyer_id}", response_model=CartResponse)
async def view_cart(buyer_id: str) -> CartResponse:
    cart = get_cart(buyer_id)
    return CartResponse(
        cart_id=str(cart.id),
        buyer_id=str(cart.buyer_id),
        coupon_code=cart.coupon_code,
        lines=[
            CartLineResponse(
                line_id=str(line.id),
                product_id=str(line.product_id),
                variant_id=str(line.variant_id) if line.variant_id else None,
                vendor_id=str(line.vendor_id),
                product_name=line.product_name,
                variant_name=line.variant_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in cart.lines
        ],
    )


@cart_router.post("/{buyer_id}/lines", status_code=201, response_model=CartIdResponse)
async def add_cart_line(buyer_id: str, body: AddCartLineRequest) -> CartIdResponse:
    command = AddCartLine(
        buyer_id=buyer_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.patch("/{buyer_id}/lines/{line_id}", response_model=CartIdResponse)
async def update_cart_line(buyer_id: str, line_id: str, body: UpdateCartLineRequest) -> CartIdResponse:
    command = UpdateCartLineQuantity(buyer_id=buyer_id, line_id=line_id, quantity=body.quantity)
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.delete("/{buyer_id}/lines/{line_id}", response_model=CartIdResponse)
async def remove_cart_line(buyer_id: str, line_id: str) -> CartIdResponse:
    result = current_domain.process(RemoveCartLine(buyer_id=buyer_id, line_id=line_id), asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.delete("/{buyer_id}", response_model=CartIdResponse)
async def clear_cart(buyer_id: str) -> CartIdResponse:
    result = current_domain.process(ClearCart(buyer_id=buyer_id), asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.post("/{buyer_id}/refresh", response_model=CartIdResponse)
async def refresh_cart_prices(buyer_id: str) -> CartIdResponse:
    result = current_domain.process(RefreshCartPrices(buyer_id=buyer_id), asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.post("/{buyer_id}/coupon", response_model=StatusResponse)
async def apply_cart_coupon(buyer_id: str, body: ApplyCouponRequest) -> StatusResponse:
    current_domain.process(ApplyCartCoupon(buyer_id=buyer_id, coupon_code=body.coupon_code), asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{buyer_id}/coupon", response_model=StatusResponse)
async def remove_cart_coupon(buyer_id: str) -> StatusResponse:
    current_domain.process(RemoveCartCoupon(buyer_id=buyer_id), asynchronous=False)
    return StatusResponse()


@cart_router.get("/{buyer_id}/quote", response_model=CartQuoteResponse)
async def quote(buyer_id: str, shipping_method: str = "standard") -> CartQuoteResponse:
    """Price the cart as checkout would, without writing anything."""
    cart_quote = quote_cart(get_cart(buyer_id), shipping_method=shipping_method)
    return CartQuoteResponse(
        summary=OrderSummaryResponse(**cart_quote.summary.as_dict()),
        price_changes=cart_quote.price_changes,
    )


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest) -> CheckoutResponse:
    command = PlaceOrder(
        buyer_id=body.buyer_id,
        payment_reference=body.payment_reference,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        shipping_method=body.shipping_method,
        notes=body.notes,
    )
    result = current_domain.process(command, asynchronous=False)
    return CheckoutResponse(**result)


# ---------------------------------------------------------------------------
# Order Router (buyer and admin)
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}")
async def view_order(order_id: str) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "buyer_id": str(order.buyer_id),
        "payment_status": order.payment_status,
        "pricing": order.pricing.to_dict(),
        "shipping_method": order.shipping_method,
        "coupon_code": order.coupon_code,
        "notes": order.notes,
        "vendor_count": order.vendor_count,
        "created_at": order.created_at,
        "shipped_at": order.shipped_at,
        "delivered_at": order.delivered_at,
        "cancelled_at": order.cancelled_at,
        "items": [_item_view(item) for item in items_for_order(order.id)],
    }


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    command = CancelOrder(order_id=order_id, buyer_id=body.buyer_id, reason=body.reason)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.patch("/{order_id}", response_model=AdminOrderUpdateResponse)
async def admin_update_order(order_id: str, body: AdminOrderUpdateRequest) -> AdminOrderUpdateResponse:
    command = OverrideOrderStatus(
        order_id=order_id,
        target_status=body.status,
        order_item_ids=json.dumps(body.order_item_ids) if body.order_item_ids else None,
        reason=body.reason,
    )
    result = current_domain.process(command, asynchronous=False)
    return AdminOrderUpdateResponse(order_id=order_id, items=[ItemStatusResponse(**row) for row in result])


# ---------------------------------------------------------------------------
# Vendor Router
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendor", tags=["vendor"])


@vendor_router.get("/orders")
async def vendor_orders(vendor_id: str, status: str | None = None) -> dict:
    items = items_for_vendor(vendor_id, status=status)
    return {"items": [_item_view(item) for item in items], "total": len(items)}


@vendor_router.patch("/orders/{order_item_id}", response_model=ItemStatusResponse)
async def vendor_update_item(order_item_id: str, body: VendorItemUpdateRequest) -> ItemStatusResponse:
    command = AdvanceOrderItem(
        order_item_id=order_item_id,
        vendor_id=body.vendor_id,
        target_status=body.status,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        tracking_url=body.tracking_url,
        delivered_at=body.delivered_at,
    )
    result = current_domain.process(command, asynchronous=False)
    return ItemStatusResponse(order_item_id=order_item_id, status=result)


@vendor_router.post("/orders/{order_item_id}/tracking", status_code=201, response_model=TrackingEntryResponse)
async def vendor_add_tracking(order_item_id: str, body: TrackingEntryRequest) -> TrackingEntryResponse:
    command = AddTrackingEntry(order_item_id=order_item_id, **body.model_dump())
    result = current_domain.process(command, asynchronous=False)
    return TrackingEntryResponse(order_item_id=order_item_id, tracking_entry_id=result)


@vendor_router.get("/analytics")
async def vendor_sales_analytics(vendor_id: str, period: str = "30d") -> dict:
    return vendor_analytics(vendor_id, period)


@vendor_router.get("/payouts")
async def vendor_payouts(
    vendor_id: str,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
) -> dict:
    history = payout_history(vendor_id, status=status, page=page, per_page=per_page)
    return {
        "payouts": history["payouts"],
        "summary": payout_summary(vendor_id),
        "earnings": vendor_earnings(vendor_id),
        "pagination": {
            "page": history["page"],
            "per_page": history["per_page"],
            "total": history["total"],
            "total_pages": history["total_pages"],
        },
    }


# ---------------------------------------------------------------------------
# Payout maintenance Router (driven by an external scheduler)
# ---------------------------------------------------------------------------
payout_router = APIRouter(prefix="/payouts", tags=["payouts"])


@payout_router.post("/aggregate", response_model=PayoutsCreatedResponse)
async def aggregate_payouts(body: AggregatePayoutsRequest) -> PayoutsCreatedResponse:
    command = AggregatePayouts(cutoff=body.cutoff, vendor_id=body.vendor_id)
    result = current_domain.process(command, asynchronous=False)
    return PayoutsCreatedResponse(payouts_created=result)


@payout_router.post("/process-pending", response_model=ProcessPendingPayoutsResponse)
async def process_pending_payouts() -> ProcessPendingPayoutsResponse:
    result = current_domain.process(ProcessPendingPayouts(), asynchronous=False)
    return ProcessPendingPayoutsResponse(payouts_completed=result)


@payout_router.post("/{payout_id}/execute", response_model=PayoutExecutionResponse)
async def execute_payout(payout_id: str) -> PayoutExecutionResponse:
    result = current_domain.process(ExecutePayout(payout_id=payout_id), asynchronous=False)
    return PayoutExecutionResponse(payout_id=payout_id, status=result)


# ---------------------------------------------------------------------------
# Admin Router (analytics, order list)
# ---------------------------------------------------------------------------
analytics_router = APIRouter(prefix="/admin", tags=["admin"])


@analytics_router.get("/analytics")
async def analytics(period: str = "30d") -> dict:
    return platform_analytics(period)


@analytics_router.get("/orders")
async def admin_orders(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    status: str | None = None,
    payment_status: str | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    return list_orders(
        page=page,
        per_page=per_page,
        status=status,
        payment_status=payment_status,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )


# ---------------------------------------------------------------------------
# Catalogue Routers (vendors, products, coupons)
# ---------------------------------------------------------------------------
catalogue_router = APIRouter(tags=["catalogue"])


@catalogue_router.post("/vendors", status_code=201, response_model=VendorIdResponse)
async def register_vendor(body: RegisterVendorRequest) -> VendorIdResponse:
    command = RegisterVendor(store_name=body.store_name, email=body.email, commission_rate=body.commission_rate)
    result = current_domain.process(command, asynchronous=False)
    return VendorIdResponse(vendor_id=result)


@catalogue_router.put("/vendors/{vendor_id}/commission-rate", response_model=StatusResponse)
async def change_commission_rate(vendor_id: str, body: CommissionRateRequest) -> StatusResponse:
    command = ChangeCommissionRate(vendor_id=vendor_id, commission_rate=body.commission_rate)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@catalogue_router.put("/vendors/{vendor_id}/payout-onboarding", response_model=StatusResponse)
async def complete_payout_onboarding(vendor_id: str, body: PayoutOnboardingRequest) -> StatusResponse:
    command = CompletePayoutOnboarding(vendor_id=vendor_id, payout_account_id=body.payout_account_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@catalogue_router.post("/products", status_code=201, response_model=ProductIdResponse)
async def list_product(body: ListProductRequest) -> ProductIdResponse:
    command = ListProduct(
        vendor_id=body.vendor_id,
        name=body.name,
        price=body.price,
        stock_quantity=body.stock_quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@catalogue_router.post("/products/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_product_variant(product_id: str, body: AddVariantRequest) -> VariantIdResponse:
    command = AddProductVariant(
        product_id=product_id,
        name=body.name,
        price=body.price,
        stock_quantity=body.stock_quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return VariantIdResponse(variant_id=result)


@catalogue_router.post("/coupons", status_code=201, response_model=CouponIdResponse)
async def issue_coupon(body: IssueCouponRequest) -> CouponIdResponse:
    result = current_domain.process(IssueCoupon(**body.model_dump()), asynchronous=False)
    return CouponIdResponse(coupon_id=result)


@catalogue_router.put("/coupons/{coupon_id}/deactivate", response_model=StatusResponse)
async def deactivate_coupon(coupon_id: str) -> StatusResponse:
    current_domain.process(DeactivateCoupon(coupon_id=coupon_id), asynchronous=False)
    return StatusResponse()
