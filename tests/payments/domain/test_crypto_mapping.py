"""Tests for evidence vocabulary mapping and amount comparison."""

import pytest

from ordering.payment_state import PaymentState
from payments.engine import amounts_match, map_crypto_status
from payments.evidence import CryptoWebhook, GatewayCallback, ManualReference, ReconciliationResult


class TestCryptoStatusMap:
    @pytest.mark.parametrize(
        "invoice_status, state",
        [
            ("finished", PaymentState.PAID),
            ("failed", PaymentState.FAILED),
            ("refunded", PaymentState.FAILED),
            ("expired", PaymentState.FAILED),
            ("waiting", PaymentState.PENDING),
            ("confirming", PaymentState.PENDING),
            ("confirmed", PaymentState.PENDING),
            ("sending", PaymentState.PENDING),
            ("partially_paid", PaymentState.PENDING),
        ],
    )
    def test_known_statuses(self, invoice_status, state):
        assert map_crypto_status(invoice_status) == state

    def test_case_and_whitespace_ignored(self):
        assert map_crypto_status(" FINISHED ") == PaymentState.PAID

    @pytest.mark.parametrize("invoice_status", ["mystery", "", None])
    def test_unknown_maps_to_pending(self, invoice_status):
        assert map_crypto_status(invoice_status) == PaymentState.PENDING


class TestAmountsMatch:
    def test_exact(self):
        assert amounts_match(1300.0, 1300.0, 0.01)

    def test_within_tolerance(self):
        assert amounts_match(1300.0, 1300.01, 0.01)
        assert amounts_match(1300.0, 1299.99, 0.01)

    def test_outside_tolerance(self):
        assert not amounts_match(1300.0, 1299.98, 0.01)
        assert not amounts_match(1300.0, 1000.0, 0.01)


class TestEvidenceShapes:
    def test_evidence_ids(self):
        assert ManualReference("REF1", "QGH7K2L9XP", 100).evidence_id == "QGH7K2L9XP"
        assert GatewayCallback("REF1", 100, "TXN1").evidence_id == "TXN1"
        assert CryptoWebhook("REF1", "finished", payment_id="555").evidence_id == "555:finished"

    def test_result_to_dict(self):
        result = ReconciliationResult(accepted=True, order_state="paid", changed=False, message="already paid")
        assert result.to_dict() == {
            "accepted": True,
            "order_state": "paid",
            "changed": False,
            "message": "already paid",
        }
