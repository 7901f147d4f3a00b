"""Custom bot orders: bespoke development requests with refund metadata.

Lifecycle::

    status:          pending --> completed | refunded     (both terminal)
    payment_status:  pending --> paid | failed,  paid --> failed

``completed`` and ``refunded`` are reachable only while ``status=pending``
and ``payment_status=paid``. ``completed_at``/``refunded_at`` are set exactly
when the matching terminal status is written.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from ordering.payment_state import PaymentState
from shared.errors import ValidationError

MIN_BUDGET = 10
MIN_DESCRIPTION_LENGTH = 50
MIN_FEATURES_LENGTH = 20

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MPESA_NUMBER_RE = re.compile(r"^254\d{9}$")


class CustomOrderStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


TERMINAL_STATUSES = {CustomOrderStatus.COMPLETED, CustomOrderStatus.REFUNDED}


class CustomPaymentMethod(Enum):
    MPESA = "mpesa"
    CRYPTO = "crypto"


class RefundReason(Enum):
    TECHNICALLY_IMPOSSIBLE = "technically_impossible"
    CLIENT_REQUEST = "client_request"
    BUDGET_INSUFFICIENT = "budget_insufficient"
    TIMELINE_UNFEASIBLE = "timeline_unfeasible"
    POLICY_VIOLATION = "policy_violation"
    DUPLICATE_ORDER = "duplicate_order"
    OTHER = "other"


class CustomBotOrder(BaseModel):
    id: int
    ref_code: str
    tracking_number: str
    client_email: str
    bot_description: str
    bot_features: str
    budget_amount: float
    payment_method: CustomPaymentMethod
    refund_method: CustomPaymentMethod
    refund_mpesa_number: str | None = None
    refund_mpesa_name: str | None = None
    refund_crypto_wallet: str | None = None
    refund_crypto_network: str | None = None
    status: CustomOrderStatus = CustomOrderStatus.PENDING
    payment_status: PaymentState = PaymentState.PENDING
    payment_id: str | None = None
    mpesa_receipt_number: str | None = None
    refund_reason: RefundReason | None = None
    custom_refund_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    refunded_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def notification_payload(self) -> dict:
        return self.model_dump(mode="json")

    def payment_view(self) -> dict:
        """What the public payment-status endpoint and poll client see."""
        return {
            "ref_code": self.ref_code,
            "tracking_number": self.tracking_number,
            "payment_status": self.payment_status.value,
            "status": self.status.value,
            "budget_amount": self.budget_amount,
            "payment_method": self.payment_method.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class CustomOrderRequest:
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


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_request(request: CustomOrderRequest) -> dict:
    """Check every rule and return the normalized insert values.

    Raises:
        ValidationError: listing every violated field, not just the first.
    """
    errors: dict[str, list[str]] = {}

    def fail(field_name: str, message: str) -> None:
        errors.setdefault(field_name, []).append(message)

    email = (request.client_email or "").strip().lower()
    if not email:
        fail("client_email", "is required")
    elif not _EMAIL_RE.match(email):
        fail("client_email", "must be a valid email address")

    description = (request.bot_description or "").strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        fail("bot_description", f"must be at least {MIN_DESCRIPTION_LENGTH} characters")

    features = (request.bot_features or "").strip()
    if len(features) < MIN_FEATURES_LENGTH:
        fail("bot_features", f"must be at least {MIN_FEATURES_LENGTH} characters")

    budget = request.budget_amount
    if budget is None:
        fail("budget_amount", "is required")
    else:
        try:
            budget = float(budget)
        except (TypeError, ValueError):
            fail("budget_amount", "must be a number")
            budget = None
        else:
            if budget < MIN_BUDGET:
                fail("budget_amount", f"must be >= {MIN_BUDGET}")

    methods = {method.value for method in CustomPaymentMethod}
    if request.payment_method not in methods:
        fail("payment_method", "must be one of: crypto, mpesa")
    if request.refund_method not in methods:
        fail("refund_method", "must be one of: crypto, mpesa")

    mpesa_number = re.sub(r"\s+", "", request.refund_mpesa_number or "") or None
    mpesa_name = (request.refund_mpesa_name or "").strip() or None
    wallet = (request.refund_crypto_wallet or "").strip() or None
    network = (request.refund_crypto_network or "").strip() or None

    if request.refund_method == CustomPaymentMethod.MPESA.value:
        if mpesa_number is None:
            fail("refund_mpesa_number", "is required for mpesa refunds")
        elif not _MPESA_NUMBER_RE.match(mpesa_number):
            fail("refund_mpesa_number", "must be in the format 254XXXXXXXXX")
        if mpesa_name is None:
            fail("refund_mpesa_name", "is required for mpesa refunds")
        if not _blank(wallet):
            fail("refund_crypto_wallet", "must be empty for mpesa refunds")
        if not _blank(network):
            fail("refund_crypto_network", "must be empty for mpesa refunds")
    elif request.refund_method == CustomPaymentMethod.CRYPTO.value:
        if wallet is None:
            fail("refund_crypto_wallet", "is required for crypto refunds")
        if network is None:
            fail("refund_crypto_network", "is required for crypto refunds")
        if not _blank(mpesa_number):
            fail("refund_mpesa_number", "must be empty for crypto refunds")
        if not _blank(mpesa_name):
            fail("refund_mpesa_name", "must be empty for crypto refunds")

    if not request.terms_accepted:
        fail("terms_accepted", "must be accepted")

    if errors:
        raise ValidationError(errors)

    return {
        "client_email": email,
        "bot_description": description,
        "bot_features": features,
        "budget_amount": budget,
        "payment_method": request.payment_method,
        "refund_method": request.refund_method,
        "refund_mpesa_number": mpesa_number,
        "refund_mpesa_name": mpesa_name,
        "refund_crypto_wallet": wallet,
        "refund_crypto_network": network,
    }


def validate_refund(reason: str | None, message: str | None) -> tuple[RefundReason, str | None]:
    try:
        refund_reason = RefundReason(reason)
    except ValueError:
        allowed = ", ".join(r.value for r in RefundReason)
        raise ValidationError({"reason": [f"must be one of: {allowed}"]}) from None
    message = (message or "").strip() or None
    if refund_reason == RefundReason.OTHER and message is None:
        raise ValidationError({"message": ["is required when reason is 'other'"]})
    return refund_reason, message
