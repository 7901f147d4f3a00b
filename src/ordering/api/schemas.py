"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the repository models.
Field-level rules for custom orders live in ``ordering.custom`` so every
violation is reported at once; the request schema only fixes the shape.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ordering.custom import CustomBotOrder


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    item: str
    amount: float
    payment_method: str
    email: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "item": "grid-trader",
                    "amount": 25.0,
                    "payment_method": "mpesa_till",
                    "email": "buyer@example.com",
                }
            ]
        }
    }


class CreateBulkOrderRequest(BaseModel):
    items: list[str]
    payment_method: str
    email: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": ["grid-trader", "scalper"],
                    "payment_method": "crypto_nowpayments",
                    "email": "buyer@example.com",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    ref_code: str
    item: str
    status: str


class OrderResponse(BaseModel):
    id: int | None = None
    item: str
    ref_code: str
    amount: float
    status: str
    bucket: str
    payment_method: str
    downloaded: bool
    receipt_ref: str | None = None
    email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BulkOrderResponse(BaseModel):
    ref_code: str
    orders: list[OrderResponse]
    total_amount: float
    payment_method: str


class OrderLookupResponse(BaseModel):
    ref_code: str
    item: str
    status: str
    bucket: str
    payment_state: str
    downloaded: bool
    download_eligible: bool
    message: str


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Custom bot orders
# ---------------------------------------------------------------------------
class CreateCustomOrderRequest(BaseModel):
    client_email: str | None = None
    bot_description: str | None = None
    bot_features: str | None = None
    budget_amount: float | None = None
    payment_method: str | None = None
    refund_method: str | None = None
    refund_mpesa_number: str | None = None
    refund_mpesa_name: str | None = None
    refund_crypto_wallet: str | None = None
    refund_crypto_network: str | None = None
    terms_accepted: bool = False


class CustomOrderCreatedResponse(BaseModel):
    id: int
    ref_code: str
    tracking_number: str
    status: str
    payment_status: str
    budget_amount: float
    payment_method: str


class PaymentStatusResponse(BaseModel):
    ref_code: str
    tracking_number: str
    payment_status: str
    status: str
    budget_amount: float
    payment_method: str
    created_at: str | None = None
    updated_at: str | None = None


class CustomOrderListResponse(BaseModel):
    orders: list[CustomBotOrder]
    total: int
    page: int
    limit: int


class RefundRequest(BaseModel):
    reason: str
    message: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
class TransitionResponse(BaseModel):
    changed: bool
    state: str
    message: str


class CustomOrderTransitionResponse(TransitionResponse):
    order: CustomBotOrder
