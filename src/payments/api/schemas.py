"""Pydantic request schemas for payment evidence endpoints."""

from pydantic import BaseModel, Field

from payments.evidence import OrderKind


class ManualReferenceRequest(BaseModel):
    ref_code: str
    claimed_code: str
    declared_amount: float = Field(default=0, ge=0)
    kind: OrderKind = OrderKind.CUSTOM
    item: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ref_code": "REFLQ2X9K4ZT7P",
                    "claimed_code": "QGH7K2L9XP",
                    "declared_amount": 1300,
                }
            ]
        }
    }


class GatewayCallbackRequest(BaseModel):
    ref_code: str
    amount: float
    provider_txn_id: str
    kind: OrderKind = OrderKind.CUSTOM
    item: str | None = None


class ReconciliationResponse(BaseModel):
    accepted: bool
    order_state: str
    changed: bool
    message: str
