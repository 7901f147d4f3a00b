"""Payment reconciliation engine.

Normalizes three kinds of payment evidence into one canonical transition
and hands the write to the owning repository, which stays the single write
authority. The engine keeps no state of its own.

1. Manual reference (M-Pesa till). Only the code's *format* is checked:
   8-12 alphanumerics. There is no lookup against the money-transfer ledger,
   so a well-formed code flips the order to paid and an audit event is
   published for an operator to follow up. This is an accepted risk.
2. Push-payment callback. Accepted only when the amount is within
   ``tolerance`` of the expected amount; otherwise a pending order is marked
   failed and ``AmountMismatchError`` is raised.
3. Crypto invoice webhook. The provider vocabulary maps onto
   pending / paid / failed. Anything unrecognized maps to pending, which
   never advances an order.

Replays are safe: the repository reports "already <state>" and no side
effect repeats. Transient store failures are retried by the retry policy.
"""

import re
from dataclasses import dataclass
from decimal import Decimal

import structlog

from ordering.custom import CustomPaymentMethod
from ordering.custom_repository import CustomOrderRepository
from ordering.order_repository import OrderRepository
from ordering.payment_state import PaymentState, TransitionResult
from ordering.purchase import OrderStatus, PaymentMethod
from payments.evidence import (
    CryptoWebhook,
    GatewayCallback,
    ManualReference,
    OrderKind,
    ReconciliationResult,
)
from payments.retry import RetryPolicy
from realtime.fanout import FanOutChannel, OrderEvent
from shared.errors import AmountMismatchError, ValidationError

logger = structlog.get_logger(__name__)

MANUAL_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{8,12}$")

MPESA_RAIL = "mpesa"
CRYPTO_RAIL = "crypto"

CRYPTO_STATUS_MAP = {
    "finished": PaymentState.PAID,
    "failed": PaymentState.FAILED,
    "refunded": PaymentState.FAILED,
    "expired": PaymentState.FAILED,
    "waiting": PaymentState.PENDING,
    "confirming": PaymentState.PENDING,
    "confirmed": PaymentState.PENDING,
    "sending": PaymentState.PENDING,
    "partially_paid": PaymentState.PENDING,
}

# Purchase-order status written for specific crypto invoice statuses
CRYPTO_VARIANTS = {
    "finished": OrderStatus.CONFIRMED_NOWPAYMENTS,
    "partially_paid": OrderStatus.PARTIALLY_PAID_NOWPAYMENTS,
    "failed": OrderStatus.FAILED_NOWPAYMENTS_FAILED,
    "refunded": OrderStatus.FAILED_NOWPAYMENTS_REFUNDED,
    "expired": OrderStatus.FAILED_NOWPAYMENTS_EXPIRED,
}


def map_crypto_status(invoice_status: str | None) -> PaymentState:
    state = CRYPTO_STATUS_MAP.get((invoice_status or "").strip().lower())
    if state is None:
        logger.warning("Unrecognized crypto invoice status, treating as pending", invoice_status=invoice_status)
        return PaymentState.PENDING
    return state


def amounts_match(expected: float, received: float, tolerance: float) -> bool:
    return abs(Decimal(str(received)) - Decimal(str(expected))) <= Decimal(str(tolerance))


@dataclass(frozen=True)
class _OrderView:
    """What the engine needs to know about either order kind."""

    kind: OrderKind
    ref_code: str
    rail: str
    payment_state: PaymentState
    expected_amount: float
    state_label: str


class ReconciliationEngine:
    def __init__(
        self,
        custom_orders: CustomOrderRepository,
        orders: OrderRepository,
        fanout: FanOutChannel,
        retry: RetryPolicy | None = None,
        tolerance: float = 0.01,
    ) -> None:
        self.custom_orders = custom_orders
        self.orders = orders
        self.fanout = fanout
        self.retry = retry or RetryPolicy()
        self.tolerance = tolerance

    # -----------------------------------------------------------------
    # Order access
    # -----------------------------------------------------------------
    def _view(self, kind: OrderKind, ref_code: str, item: str | None) -> _OrderView:
        if kind == OrderKind.CUSTOM:
            order = self.custom_orders.get_by_ref_code(ref_code)
            return _OrderView(
                kind=kind,
                ref_code=ref_code,
                rail=CRYPTO_RAIL if order.payment_method == CustomPaymentMethod.CRYPTO else MPESA_RAIL,
                payment_state=order.payment_status,
                expected_amount=order.budget_amount,
                state_label=order.payment_status.value,
            )
        order = self.orders.find_by_ref_code(ref_code, item)
        return _OrderView(
            kind=kind,
            ref_code=ref_code,
            rail=CRYPTO_RAIL if order.payment_method == PaymentMethod.CRYPTO_NOWPAYMENTS else MPESA_RAIL,
            payment_state=order.payment_state,
            expected_amount=order.amount,
            state_label=order.status.value,
        )

    def _load(self, kind: OrderKind, ref_code: str, item: str | None, rail: str, evidence: str) -> _OrderView:
        view = self.retry.run(lambda: self._view(kind, ref_code, item), ref_code=ref_code)
        if view.rail != rail:
            raise ValidationError({"ref_code": [f"{evidence} evidence does not apply to {view.rail} orders"]})
        return view

    def _transition(
        self,
        kind: OrderKind,
        ref_code: str,
        item: str | None,
        target: PaymentState,
        evidence_field: str,
        evidence_id: str | None,
        variant: OrderStatus | None = None,
    ) -> TransitionResult:
        if kind == OrderKind.CUSTOM:
            return self.retry.run(
                lambda: self.custom_orders.update_payment_status(ref_code, target, **{evidence_field: evidence_id}),
                ref_code=ref_code,
            )
        return self.retry.run(
            lambda: self.orders.apply_payment(ref_code, target, item=item, variant=variant, receipt_ref=evidence_id),
            ref_code=ref_code,
        )

    @staticmethod
    def _result(transition: TransitionResult) -> ReconciliationResult:
        return ReconciliationResult(
            accepted=True,
            order_state=transition.current,
            changed=transition.changed,
            message=transition.message,
        )

    # -----------------------------------------------------------------
    # Evidence
    # -----------------------------------------------------------------
    def submit_manual_reference(
        self,
        ref_code: str,
        claimed_code: str,
        declared_amount: float,
        kind: OrderKind = OrderKind.CUSTOM,
        item: str | None = None,
    ) -> ReconciliationResult:
        evidence = ManualReference(ref_code, (claimed_code or "").strip(), declared_amount, kind, item)
        if not MANUAL_CODE_PATTERN.match(evidence.claimed_code):
            raise ValidationError({"claimed_code": ["must be 8-12 letters or digits"]})
        logger.info("Payment evidence received", rail=MPESA_RAIL, ref_code=ref_code, evidence=evidence.evidence_id)

        view = self._load(kind, ref_code, item, MPESA_RAIL, "manual reference")
        field = "mpesa_receipt_number" if kind == OrderKind.CUSTOM else "receipt_ref"
        transition = self._transition(kind, ref_code, item, PaymentState.PAID, field, evidence.claimed_code)

        if transition.changed:
            logger.warning(
                "Manual payment reference accepted without ledger verification",
                ref_code=ref_code,
                claimed_code=evidence.claimed_code,
                declared_amount=declared_amount,
                expected_amount=view.expected_amount,
            )
            self.fanout.publish(
                OrderEvent(
                    entity_type="payment_audit",
                    ref_code=ref_code,
                    new_state=transition.current,
                    field="manual_reference",
                    snapshot={
                        "kind": kind.value,
                        "claimed_code": evidence.claimed_code,
                        "declared_amount": declared_amount,
                        "expected_amount": view.expected_amount,
                        "verified": False,
                    },
                )
            )
        return self._result(transition)

    def ingest_gateway_callback(self, payload: GatewayCallback) -> ReconciliationResult:
        logger.info(
            "Payment evidence received",
            rail=MPESA_RAIL,
            ref_code=payload.ref_code,
            evidence=payload.evidence_id,
            amount=payload.amount,
        )
        view = self._load(payload.kind, payload.ref_code, payload.item, MPESA_RAIL, "push-payment")
        field = "payment_id" if payload.kind == OrderKind.CUSTOM else "receipt_ref"

        if amounts_match(view.expected_amount, payload.amount, self.tolerance):
            transition = self._transition(
                payload.kind, payload.ref_code, payload.item, PaymentState.PAID, field, payload.provider_txn_id
            )
            return self._result(transition)

        logger.warning(
            "Callback amount outside tolerance",
            ref_code=payload.ref_code,
            expected=view.expected_amount,
            received=payload.amount,
            provider_txn_id=payload.provider_txn_id,
        )
        error = AmountMismatchError(
            f"Expected {view.expected_amount:.2f}, received {payload.amount:.2f}",
            expected=view.expected_amount,
            received=payload.amount,
            ref_code=payload.ref_code,
        )
        if view.payment_state == PaymentState.PENDING:
            transition = self._transition(
                payload.kind, payload.ref_code, payload.item, PaymentState.FAILED, field, payload.provider_txn_id
            )
            error.result = self._result(transition)
        raise error

    def ingest_crypto_webhook(self, payload: CryptoWebhook) -> ReconciliationResult:
        logger.info(
            "Payment evidence received",
            rail=CRYPTO_RAIL,
            ref_code=payload.ref_code,
            evidence=payload.evidence_id,
            actually_paid=payload.actually_paid,
        )
        target = map_crypto_status(payload.invoice_status)
        view = self._load(payload.kind, payload.ref_code, payload.item, CRYPTO_RAIL, "crypto")

        if target == PaymentState.PENDING and view.payment_state != PaymentState.PENDING:
            logger.info(
                "Stale pending crypto status ignored",
                ref_code=payload.ref_code,
                invoice_status=payload.invoice_status,
                current=view.state_label,
            )
            return ReconciliationResult(
                accepted=True,
                order_state=view.state_label,
                changed=False,
                message=f"already {view.state_label}",
            )

        variant = CRYPTO_VARIANTS.get((payload.invoice_status or "").strip().lower())
        transition = self._transition(
            payload.kind,
            payload.ref_code,
            payload.item,
            target,
            "payment_id" if payload.kind == OrderKind.CUSTOM else "receipt_ref",
            payload.payment_id,
            variant=variant,
        )
        return self._result(transition)
