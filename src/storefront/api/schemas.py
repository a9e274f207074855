"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the internal Protean
commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class QuoteSchema(BaseModel):
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    sku: str
    price: float = Field(ge=0)
    stock: int = Field(ge=0, default=0)
    category: str | None = None
    track_inventory: bool = True
    is_subscribable: bool = False
    subscription_price: float | None = Field(ge=0, default=None)


class ChangePriceRequest(BaseModel):
    price: float = Field(ge=0)


class ReceiveStockRequest(BaseModel):
    quantity: int = Field(ge=1)


class ProductIdResponse(BaseModel):
    product_id: str


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartItemAddedResponse(BaseModel):
    cart_id: str
    item_id: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    cart_id: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    expected_total: float | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "cart-001",
                    "shipping_address": {
                        "full_name": "Ada Lovelace",
                        "street": "12 St James's Square",
                        "city": "London",
                        "postal_code": "SW1Y 4JH",
                        "country": "GB",
                    },
                    "expected_total": 57.60,
                }
            ]
        }
    }


class PlaceOrderResponse(BaseModel):
    order_id: str
    order_number: str
    total: float


class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = None


class UpdateFulfillmentRequest(BaseModel):
    fulfillment_status: str


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class PaymentWebhookRequest(BaseModel):
    order_id: str
    payment_id: str
    status: str
    amount: float
    reason: str | None = None


class PaymentStatusResponse(BaseModel):
    order_id: str
    payment_status: str


# ---------------------------------------------------------------------------
# Loyalty
# ---------------------------------------------------------------------------
class PointsRequest(BaseModel):
    points: int = Field(ge=1)
    description: str | None = None
    order_id: str | None = None


class AdjustPointsRequest(BaseModel):
    points: int
    description: str


class LoyaltyAccountResponse(BaseModel):
    account_id: str
    customer_id: str
    points: int
    lifetime_points: int
    completed_orders: int
    tier: str
    qr_code: str | None = None


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
class SubscriptionLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class CreateSubscriptionRequest(BaseModel):
    interval: str
    items: list[SubscriptionLineSchema] = Field(min_length=1)


class UpdateSubscriptionItemsRequest(BaseModel):
    items: list[SubscriptionLineSchema] = Field(min_length=1)


class SubscriptionIdResponse(BaseModel):
    subscription_id: str
