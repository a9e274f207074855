"""FastAPI routes for the Storefront: products, cart, orders, loyalty and subscriptions."""

import json

from fastapi import APIRouter, Depends, Header, HTTPException
from protean.utils.globals import current_domain

from storefront.api.dependencies import authenticated, staff_only
from storefront.api.schemas import (
    AddToCartRequest,
    AdjustPointsRequest,
    CancelOrderRequest,
    CartItemAddedResponse,
    ChangePriceRequest,
    CreateSubscriptionRequest,
    LoyaltyAccountResponse,
    PaymentStatusResponse,
    PaymentWebhookRequest,
    PlaceOrderRequest,
    PlaceOrderResponse,
    PointsRequest,
    ProductIdResponse,
    QuoteSchema,
    ReceiveStockRequest,
    RegisterProductRequest,
    StatusResponse,
    SubscriptionIdResponse,
    UpdateCartQuantityRequest,
    UpdateFulfillmentRequest,
    UpdateOrderStatusRequest,
    UpdateSubscriptionItemsRequest,
)
from storefront.cart.cart import ShoppingCart
from storefront.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartQuantity, cart_for_customer
from storefront.cart.summary import cart_view, get_cart_summary
from storefront.catalogue.browsing import ProductFilter, ProductSort, browse_products
from storefront.catalogue.stock import ChangeProductPrice, ReceiveStock, RegisterProduct
from storefront.context import RequestContext
from storefront.errors import ForbiddenError
from storefront.loyalty.account import LoyaltyAccount
from storefront.loyalty.ledger import AdjustPoints, CreditPoints, OpenLoyaltyAccount, RedeemPoints
from storefront.loyalty.stats import find_by_qr_code, loyalty_stats, transaction_history
from storefront.order.cancellation import CancelOrder
from storefront.order.creation import PlaceOrder
from storefront.order.payment import ConfirmPayment, RequestPayment
from storefront.order.status import UpdateFulfillmentStatus, UpdateOrderStatus
from storefront.order.tracking import get_order, orders_for_customer, track_order
from storefront.payments.gateway import get_gateway
from storefront.pricing.engine import PriceQuote
from storefront.subscription.management import (
    CancelSubscription,
    CreateSubscription,
    PauseSubscription,
    ResumeSubscription,
    SkipNextDelivery,
    UpdateSubscriptionItems,
    subscriptions_for_customer,
)


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.get("")
async def list_products(
    category: str | None = None,
    search: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    in_stock_only: bool = False,
    subscribable_only: bool = False,
    sort: ProductSort = ProductSort.NEWEST,
    limit: int = 20,
    offset: int = 0,
) -> list[dict]:
    product_filter = ProductFilter(
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        in_stock_only=in_stock_only,
        subscribable_only=subscribable_only,
    )
    return browse_products(product_filter, sort=sort, limit=limit, offset=offset)


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(
    body: RegisterProductRequest, context: RequestContext = Depends(staff_only)
) -> ProductIdResponse:
    product_id = _process(RegisterProduct(**body.model_dump()))
    return ProductIdResponse(product_id=product_id)


@product_router.put("/{product_id}/price", response_model=StatusResponse)
async def change_price(
    product_id: str, body: ChangePriceRequest, context: RequestContext = Depends(staff_only)
) -> StatusResponse:
    _process(ChangeProductPrice(product_id=product_id, price=body.price))
    return StatusResponse()


@product_router.post("/{product_id}/stock", response_model=StatusResponse)
async def receive_stock(
    product_id: str, body: ReceiveStockRequest, context: RequestContext = Depends(staff_only)
) -> StatusResponse:
    _process(ReceiveStock(product_id=product_id, quantity=body.quantity))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("")
async def get_my_cart(context: RequestContext = Depends(authenticated)) -> dict:
    cart = cart_for_customer(context.user_id)
    if cart is None:
        return {
            "cart_id": None,
            "customer_id": context.user_id,
            "items": [],
            "summary": PriceQuote().as_floats(),
        }
    return cart_view(cart)


@cart_router.post("/items", status_code=201, response_model=CartItemAddedResponse)
async def add_to_cart(body: AddToCartRequest, context: RequestContext = Depends(authenticated)):
    result = _process(AddToCart(customer_id=context.user_id, product_id=body.product_id, quantity=body.quantity))
    return CartItemAddedResponse(**result)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item(
    cart_id: str,
    item_id: str,
    body: UpdateCartQuantityRequest,
    context: RequestContext = Depends(authenticated),
) -> StatusResponse:
    command = UpdateCartQuantity(
        cart_id=cart_id,
        item_id=item_id,
        quantity=body.quantity,
        customer_id=context.user_id,
    )
    _process(command)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(
    cart_id: str, item_id: str, context: RequestContext = Depends(authenticated)
) -> StatusResponse:
    _process(RemoveFromCart(cart_id=cart_id, item_id=item_id, customer_id=context.user_id))
    return StatusResponse()


@cart_router.delete("/{cart_id}", response_model=StatusResponse)
async def clear_cart(cart_id: str, context: RequestContext = Depends(authenticated)) -> StatusResponse:
    _process(ClearCart(cart_id=cart_id, customer_id=context.user_id))
    return StatusResponse()


@cart_router.get("/{cart_id}/summary", response_model=QuoteSchema)
async def cart_summary(cart_id: str, context: RequestContext = Depends(authenticated)) -> QuoteSchema:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    if not context.is_staff and str(cart.customer_id) != str(context.user_id):
        raise ForbiddenError({"cart_id": ["Cart belongs to another customer"]})
    return QuoteSchema(**get_cart_summary(cart_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
async def place_order(body: PlaceOrderRequest, context: RequestContext = Depends(authenticated)):
    command = PlaceOrder(
        cart_id=body.cart_id,
        customer_id=context.user_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        expected_total=body.expected_total,
    )
    return PlaceOrderResponse(**_process(command))


@order_router.get("")
async def list_my_orders(context: RequestContext = Depends(authenticated)) -> list[dict]:
    return orders_for_customer(context.user_id)


@order_router.get("/track/{order_number}")
async def track(order_number: str) -> dict:
    """Public order tracking by order number."""
    return track_order(order_number)


@order_router.get("/{order_id}")
async def get_order_detail(order_id: str, context: RequestContext = Depends(authenticated)) -> dict:
    return get_order(order_id, context)


@order_router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str, body: CancelOrderRequest, context: RequestContext = Depends(authenticated)
) -> dict:
    command = CancelOrder(
        order_id=order_id,
        actor_id=context.user_id,
        actor_role=context.role.value,
        reason=body.reason,
    )
    return _process(command)


@order_router.put("/{order_id}/status")
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, context: RequestContext = Depends(authenticated)
) -> dict:
    command = UpdateOrderStatus(
        order_id=order_id,
        new_status=body.status,
        actor_role=context.role.value,
        actor_id=context.user_id,
        reason=body.reason,
    )
    return _process(command)


@order_router.put("/{order_id}/fulfillment")
async def update_fulfillment(
    order_id: str, body: UpdateFulfillmentRequest, context: RequestContext = Depends(staff_only)
) -> dict:
    command = UpdateFulfillmentStatus(
        order_id=order_id,
        fulfillment_status=body.fulfillment_status,
        actor_role=context.role.value,
    )
    return _process(command)


@order_router.post("/{order_id}/payment", response_model=PaymentStatusResponse)
async def request_payment(order_id: str, context: RequestContext = Depends(authenticated)):
    get_order(order_id, context)  # ownership check
    result = _process(RequestPayment(order_id=order_id))
    return PaymentStatusResponse(order_id=result["order_id"], payment_status=result["payment_status"])


# ---------------------------------------------------------------------------
# Payment Webhook Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=PaymentStatusResponse)
async def payment_webhook(
    body: PaymentWebhookRequest,
    x_gateway_signature: str = Header(default=""),
) -> PaymentStatusResponse:
    """Asynchronous payment confirmation from the gateway. Safe to deliver twice."""
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(json.dumps(body.model_dump()), x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    result = _process(ConfirmPayment(**body.model_dump()))
    return PaymentStatusResponse(order_id=result["order_id"], payment_status=result["payment_status"])


# ---------------------------------------------------------------------------
# Loyalty Router
# ---------------------------------------------------------------------------
loyalty_router = APIRouter(prefix="/loyalty", tags=["loyalty"])


def _own_account(account_id: str, context: RequestContext) -> None:
    account = current_domain.repository_for(LoyaltyAccount).get(account_id)
    if not context.is_staff and str(account.customer_id) != str(context.user_id):
        raise ForbiddenError({"account_id": ["Loyalty account belongs to another customer"]})


@loyalty_router.post("/accounts", status_code=201, response_model=LoyaltyAccountResponse)
async def open_account(context: RequestContext = Depends(authenticated)):
    return LoyaltyAccountResponse(**_process(OpenLoyaltyAccount(customer_id=context.user_id)))


@loyalty_router.get("/me")
async def my_loyalty(context: RequestContext = Depends(authenticated)) -> dict:
    return loyalty_stats(context.user_id)


@loyalty_router.get("/me/transactions")
async def my_transactions(context: RequestContext = Depends(authenticated)) -> list[dict]:
    return transaction_history(context.user_id)


@loyalty_router.get("/qr/{qr_code}", response_model=LoyaltyAccountResponse)
async def lookup_by_qr_code(qr_code: str, context: RequestContext = Depends(staff_only)):
    return LoyaltyAccountResponse(**find_by_qr_code(qr_code))


@loyalty_router.post("/accounts/{account_id}/credit", response_model=LoyaltyAccountResponse)
async def credit_points(account_id: str, body: PointsRequest, context: RequestContext = Depends(staff_only)):
    command = CreditPoints(
        account_id=account_id,
        points=body.points,
        order_id=body.order_id,
        description=body.description,
    )
    return LoyaltyAccountResponse(**_process(command))


@loyalty_router.post("/accounts/{account_id}/redeem", response_model=LoyaltyAccountResponse)
async def redeem_points(account_id: str, body: PointsRequest, context: RequestContext = Depends(authenticated)):
    _own_account(account_id, context)
    command = RedeemPoints(
        account_id=account_id,
        points=body.points,
        description=body.description,
        order_id=body.order_id,
    )
    return LoyaltyAccountResponse(**_process(command))


@loyalty_router.post("/accounts/{account_id}/adjust", response_model=LoyaltyAccountResponse)
async def adjust_points(account_id: str, body: AdjustPointsRequest, context: RequestContext = Depends(staff_only)):
    command = AdjustPoints(account_id=account_id, points=body.points, description=body.description)
    return LoyaltyAccountResponse(**_process(command))


# ---------------------------------------------------------------------------
# Subscription Router
# ---------------------------------------------------------------------------
subscription_router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@subscription_router.post("", status_code=201, response_model=SubscriptionIdResponse)
async def create_subscription(body: CreateSubscriptionRequest, context: RequestContext = Depends(authenticated)):
    command = CreateSubscription(
        customer_id=context.user_id,
        interval=body.interval,
        items=json.dumps([line.model_dump() for line in body.items]),
    )
    return SubscriptionIdResponse(subscription_id=_process(command))


@subscription_router.get("")
async def list_subscriptions(context: RequestContext = Depends(authenticated)) -> list[dict]:
    return subscriptions_for_customer(context.user_id)


_LIFECYCLE = {
    "pause": PauseSubscription,
    "resume": ResumeSubscription,
    "cancel": CancelSubscription,
    "skip": SkipNextDelivery,
}


@subscription_router.post("/{subscription_id}/{action}", response_model=StatusResponse)
async def change_subscription(
    subscription_id: str, action: str, context: RequestContext = Depends(authenticated)
) -> StatusResponse:
    command_cls = _LIFECYCLE.get(action)
    if command_cls is None:
        raise HTTPException(status_code=404, detail=f"Unknown subscription action {action!r}")
    _process(command_cls(subscription_id=subscription_id, customer_id=context.user_id))
    return StatusResponse()


@subscription_router.put("/{subscription_id}/items", response_model=StatusResponse)
async def update_subscription_items(
    subscription_id: str,
    body: UpdateSubscriptionItemsRequest,
    context: RequestContext = Depends(authenticated),
) -> StatusResponse:
    command = UpdateSubscriptionItems(
        subscription_id=subscription_id,
        customer_id=context.user_id,
        items=json.dumps([line.model_dump() for line in body.items]),
    )
    _process(command)
    return StatusResponse()
