"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartItemSchema(BaseModel):
    product_id: str
    product_name: str | None = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)


class ShippingAddressSchema(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    items: list[CartItemSchema]
    shipping_address: ShippingAddressSchema
    discount: float = Field(default=0, ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"product_id": "prod-001", "product_name": "Linen Shirt", "quantity": 2, "unit_price": 10.0},
                        {"product_id": "prod-002", "product_name": "Canvas Tote", "quantity": 1, "unit_price": 25.0},
                    ],
                    "shipping_address": {
                        "full_name": "Dana Reyes",
                        "email": "dana@example.com",
                        "phone": "+1 555 0100",
                        "address": "12 Harbour Road",
                        "city": "Halifax",
                        "province": "NS",
                        "postal_code": "B3H 1A1",
                    },
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_number: str
    session_id: str
    session_url: str
    total: float


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
class WebhookAckResponse(BaseModel):
    received: bool = True
    outcome: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderSummarySchema(BaseModel):
    order_number: str
    status: str
    total: float
    currency: str
    item_count: int
    created_at: str | None = None


class ConfirmationResponse(BaseModel):
    order: dict
    order_items: list[dict]
    payment: dict | None = None
    shipping: dict | None = None


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
class ChangeStatusRequest(BaseModel):
    status: str
    reason: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    estimated_delivery: str | None = None  # ISO date string


class ChangeStatusResponse(BaseModel):
    order_number: str
    outcome: str
    status: str | None = None
