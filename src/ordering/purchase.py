"""Direct purchase orders.

``status`` is a closed set of variants. Each variant belongs to a payment
rail and maps down to a reporting bucket (no_payment / pending / confirmed)
and to the canonical payment state used to decide which transitions are
legal. Variants tagged with the ``admin`` rail are the coarse statuses an
operator sets by hand; they are valid on every rail.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from ordering.payment_state import PaymentState


class PaymentMethod(Enum):
    MPESA_TILL = "mpesa_till"
    MPESA_PAYHERO = "mpesa_payhero"
    CRYPTO_NOWPAYMENTS = "crypto_nowpayments"


class StatusBucket(Enum):
    NO_PAYMENT = "no_payment"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class OrderStatus(Enum):
    # Operator-facing
    NO_PAYMENT = "no_payment"
    PENDING = "pending"
    PARTIAL_PAYMENT = "partial_payment"
    CONFIRMED = "confirmed"
    # M-Pesa till (manual reference)
    PENDING_VERIFICATION = "pending_verification"
    # M-Pesa push payment
    PENDING_STK_PUSH = "pending_stk_push"
    CONFIRMED_SERVER_STK = "confirmed_server_stk"
    FAILED_SERVER_STK = "failed_server_stk"
    # Crypto invoices
    PENDING_NOWPAYMENTS = "pending_nowpayments"
    PARTIALLY_PAID_NOWPAYMENTS = "partially_paid_nowpayments"
    CONFIRMED_NOWPAYMENTS = "confirmed_nowpayments"
    FAILED_NOWPAYMENTS_FAILED = "failed_nowpayments_failed"
    FAILED_NOWPAYMENTS_REFUNDED = "failed_nowpayments_refunded"
    FAILED_NOWPAYMENTS_EXPIRED = "failed_nowpayments_expired"


ADMIN_RAIL = "admin"


@dataclass(frozen=True)
class StatusInfo:
    rail: str
    bucket: StatusBucket
    payment_state: PaymentState


_TILL = PaymentMethod.MPESA_TILL.value
_PAYHERO = PaymentMethod.MPESA_PAYHERO.value
_CRYPTO = PaymentMethod.CRYPTO_NOWPAYMENTS.value

STATUS_INFO: dict[OrderStatus, StatusInfo] = {
    OrderStatus.NO_PAYMENT: StatusInfo(ADMIN_RAIL, StatusBucket.NO_PAYMENT, PaymentState.FAILED),
    OrderStatus.PENDING: StatusInfo(ADMIN_RAIL, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.PARTIAL_PAYMENT: StatusInfo(ADMIN_RAIL, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.CONFIRMED: StatusInfo(ADMIN_RAIL, StatusBucket.CONFIRMED, PaymentState.PAID),
    OrderStatus.PENDING_VERIFICATION: StatusInfo(_TILL, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.PENDING_STK_PUSH: StatusInfo(_PAYHERO, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.CONFIRMED_SERVER_STK: StatusInfo(_PAYHERO, StatusBucket.CONFIRMED, PaymentState.PAID),
    OrderStatus.FAILED_SERVER_STK: StatusInfo(_PAYHERO, StatusBucket.NO_PAYMENT, PaymentState.FAILED),
    OrderStatus.PENDING_NOWPAYMENTS: StatusInfo(_CRYPTO, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.PARTIALLY_PAID_NOWPAYMENTS: StatusInfo(_CRYPTO, StatusBucket.PENDING, PaymentState.PENDING),
    OrderStatus.CONFIRMED_NOWPAYMENTS: StatusInfo(_CRYPTO, StatusBucket.CONFIRMED, PaymentState.PAID),
    OrderStatus.FAILED_NOWPAYMENTS_FAILED: StatusInfo(_CRYPTO, StatusBucket.NO_PAYMENT, PaymentState.FAILED),
    OrderStatus.FAILED_NOWPAYMENTS_REFUNDED: StatusInfo(_CRYPTO, StatusBucket.NO_PAYMENT, PaymentState.FAILED),
    OrderStatus.FAILED_NOWPAYMENTS_EXPIRED: StatusInfo(_CRYPTO, StatusBucket.NO_PAYMENT, PaymentState.FAILED),
}

INITIAL_STATUS = {
    PaymentMethod.MPESA_TILL: OrderStatus.PENDING,
    PaymentMethod.MPESA_PAYHERO: OrderStatus.PENDING,
    PaymentMethod.CRYPTO_NOWPAYMENTS: OrderStatus.PENDING_NOWPAYMENTS,
}

# Variant written by evidence, per rail and canonical target state
RAIL_STATUS = {
    PaymentMethod.MPESA_TILL: {
        PaymentState.PENDING: OrderStatus.PENDING_VERIFICATION,
        PaymentState.PAID: OrderStatus.CONFIRMED,
        PaymentState.FAILED: OrderStatus.NO_PAYMENT,
    },
    PaymentMethod.MPESA_PAYHERO: {
        PaymentState.PENDING: OrderStatus.PENDING_STK_PUSH,
        PaymentState.PAID: OrderStatus.CONFIRMED_SERVER_STK,
        PaymentState.FAILED: OrderStatus.FAILED_SERVER_STK,
    },
    PaymentMethod.CRYPTO_NOWPAYMENTS: {
        PaymentState.PENDING: OrderStatus.PENDING_NOWPAYMENTS,
        PaymentState.PAID: OrderStatus.CONFIRMED_NOWPAYMENTS,
        PaymentState.FAILED: OrderStatus.FAILED_NOWPAYMENTS_FAILED,
    },
}

STATUS_MESSAGES = {
    StatusBucket.CONFIRMED: "Payment confirmed! Your download is ready.",
    StatusBucket.NO_PAYMENT: "No payment received. Please try again or contact support.",
}
PENDING_MESSAGES = {
    OrderStatus.PENDING_STK_PUSH: "STK push sent to your phone. Enter your M-PESA PIN to complete the payment.",
    OrderStatus.PARTIAL_PAYMENT: "Partial payment received. Please contact support to resolve.",
    OrderStatus.PARTIALLY_PAID_NOWPAYMENTS: "Partial payment received. Please contact support to resolve.",
}


def rail_status(method: PaymentMethod, state: PaymentState) -> OrderStatus:
    return RAIL_STATUS[method][state]


def is_status_allowed(method: PaymentMethod, status: OrderStatus) -> bool:
    """Whether ``status`` makes sense for an order paid through ``method``."""
    return STATUS_INFO[status].rail in (ADMIN_RAIL, method.value)


class Order(BaseModel):
    id: int | None = None
    item: str
    ref_code: str
    amount: float
    status: OrderStatus
    payment_method: PaymentMethod
    downloaded: bool = False
    receipt_ref: str | None = None
    email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def info(self) -> StatusInfo:
        return STATUS_INFO[self.status]

    @property
    def bucket(self) -> StatusBucket:
        return self.info.bucket

    @property
    def payment_state(self) -> PaymentState:
        return self.info.payment_state

    @property
    def download_eligible(self) -> bool:
        return self.bucket == StatusBucket.CONFIRMED and not self.downloaded

    def status_message(self) -> str:
        if self.downloaded:
            return "File already downloaded for this order."
        if self.bucket in STATUS_MESSAGES:
            return STATUS_MESSAGES[self.bucket]
        return PENDING_MESSAGES.get(self.status, "Payment is being processed. Please wait...")

    def to_event_snapshot(self) -> dict:
        data = self.model_dump(mode="json")
        data["bucket"] = self.bucket.value
        return data
