"""Payment evidence: the three shapes a rail can hand to the engine.

Each shape names the order kind it targets. Custom orders are the default;
purchase orders may carry an ``item`` to disambiguate a ref code.
"""

from dataclasses import dataclass
from enum import Enum


class OrderKind(Enum):
    CUSTOM = "custom"
    PURCHASE = "purchase"


@dataclass(frozen=True)
class ManualReference:
    """Mobile-money till payment, confirmed by the customer typing the code."""

    ref_code: str
    claimed_code: str
    declared_amount: float
    kind: OrderKind = OrderKind.CUSTOM
    item: str | None = None

    @property
    def evidence_id(self) -> str:
        return self.claimed_code


@dataclass(frozen=True)
class GatewayCallback:
    """Automated push-payment callback."""

    ref_code: str
    amount: float
    provider_txn_id: str
    kind: OrderKind = OrderKind.CUSTOM
    item: str | None = None

    @property
    def evidence_id(self) -> str:
        return self.provider_txn_id


@dataclass(frozen=True)
class CryptoWebhook:
    """Crypto invoice status notification."""

    ref_code: str
    invoice_status: str
    payment_id: str | None = None
    actually_paid: float | None = None
    kind: OrderKind = OrderKind.CUSTOM
    item: str | None = None

    @property
    def evidence_id(self) -> str:
        return f"{self.payment_id}:{self.invoice_status}"


@dataclass(frozen=True)
class ReconciliationResult:
    accepted: bool
    order_state: str
    changed: bool
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "order_state": self.order_state,
            "changed": self.changed,
            "message": self.message,
        }
