"""FastAPI routes for payment evidence.

Three rails feed the reconciliation engine: manual till references typed by
the customer, push-payment gateway callbacks and signed crypto invoice
webhooks.
"""

import json

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from container import get_container
from payments.api.schemas import (
    GatewayCallbackRequest,
    ManualReferenceRequest,
    ReconciliationResponse,
)
from payments.evidence import CryptoWebhook, GatewayCallback, OrderKind
from payments.signature import verify_signature
from shared.errors import ValidationError

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/manual-reference", response_model=ReconciliationResponse)
def submit_manual_reference(body: ManualReferenceRequest) -> ReconciliationResponse:
    """Accept a customer-typed till confirmation code."""
    result = get_container().engine.submit_manual_reference(
        ref_code=body.ref_code,
        claimed_code=body.claimed_code,
        declared_amount=body.declared_amount,
        kind=body.kind,
        item=body.item,
    )
    return ReconciliationResponse(**result.to_dict())


@payment_router.post("/gateway/callback", response_model=ReconciliationResponse)
def gateway_callback(body: GatewayCallbackRequest) -> ReconciliationResponse:
    result = get_container().engine.ingest_gateway_callback(
        GatewayCallback(
            ref_code=body.ref_code,
            amount=body.amount,
            provider_txn_id=body.provider_txn_id,
            kind=body.kind,
            item=body.item,
        )
    )
    return ReconciliationResponse(**result.to_dict())


def _parse_ipn(raw_body: bytes, kind: OrderKind, item: str | None) -> CryptoWebhook:
    try:
        data = json.loads(raw_body)
    except ValueError:
        raise ValidationError({"body": ["must be valid JSON"]}) from None
    if not isinstance(data, dict):
        raise ValidationError({"body": ["must be a JSON object"]})

    errors = {}
    for field in ("order_id", "payment_status"):
        if not data.get(field):
            errors[field] = ["is required"]
    actually_paid = data.get("actually_paid")
    if actually_paid is not None:
        try:
            actually_paid = float(actually_paid)
        except (TypeError, ValueError):
            errors["actually_paid"] = ["must be a number"]
    if errors:
        raise ValidationError(errors)

    return CryptoWebhook(
        ref_code=str(data["order_id"]),
        invoice_status=str(data["payment_status"]),
        payment_id=str(data["payment_id"]) if data.get("payment_id") is not None else None,
        actually_paid=actually_paid,
        kind=kind,
        item=item,
    )


@payment_router.post("/crypto/ipn", response_model=ReconciliationResponse)
async def crypto_ipn(
    request: Request,
    kind: OrderKind = OrderKind.CUSTOM,
    item: str | None = None,
    x_nowpayments_sig: str = Header(default=""),
) -> ReconciliationResponse:
    """Crypto invoice status notification.

    The signature is an HMAC-SHA512 of the raw body. The invoice's callback
    URL carries ``kind`` (and ``item`` for purchase orders) as query
    parameters.
    """
    raw_body = await request.body()
    secret = get_container().settings.crypto_ipn_secret
    if not verify_signature(raw_body, x_nowpayments_sig, secret):
        logger.warning("Crypto webhook signature rejected", configured=secret is not None)
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payload = _parse_ipn(raw_body, kind, item)
    result = await run_in_threadpool(get_container().engine.ingest_crypto_webhook, payload)
    return ReconciliationResponse(**result.to_dict())
