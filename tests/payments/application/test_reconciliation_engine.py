"""Tests for the payment reconciliation engine across the three evidence rails."""

import pytest
from support import crypto_order_request, custom_order_request

from container import build_container
from ordering.payment_state import PaymentState
from ordering.purchase import OrderStatus
from payments.evidence import CryptoWebhook, GatewayCallback, OrderKind
from shared.errors import AmountMismatchError, TransientError, ValidationError
from store import InMemoryStore


@pytest.fixture()
def engine(container):
    return container.engine


@pytest.fixture()
def events(container):
    subscription = container.fanout.subscribe()
    yield subscription
    subscription.close()


class FlakyStore(InMemoryStore):
    """Fails the next ``failures`` conditional updates with a transient error."""

    failures = 0

    def conditional_update(self, table, key, expected, values):
        if self.failures > 0:
            self.failures -= 1
            raise TransientError("database is locked")
        return super().conditional_update(table, key, expected, values)


class TestManualReference:
    def test_well_formed_code_marks_paid_and_is_audited(self, engine, container, custom_order, events, fake_email):
        events.drain()
        fake_email.reset()

        result = engine.submit_manual_reference(custom_order.ref_code, "QGH7K2L9XP", 1300)
        assert result.accepted and result.changed
        assert result.order_state == "paid"

        order = container.custom_orders.get(custom_order.id)
        assert order.mpesa_receipt_number == "QGH7K2L9XP"

        kinds = [(e.entity_type, e.field) for e in events.drain()]
        assert kinds == [("custom_order", "payment_status"), ("payment_audit", "manual_reference")]
        assert len(fake_email.sent) == 2

    def test_replay_is_idempotent(self, engine, custom_order, fake_email):
        engine.submit_manual_reference(custom_order.ref_code, "QGH7K2L9XP", 1300)
        sent = len(fake_email.sent)

        replay = engine.submit_manual_reference(custom_order.ref_code, "QGH7K2L9XP", 1300)
        assert replay.changed is False
        assert replay.message == "already paid"
        assert len(fake_email.sent) == sent

    @pytest.mark.parametrize("claimed_code", ["", "SHORT", "WAYTOOLONGCODE1", "QGH7-K2L9X"])
    def test_malformed_code_rejected(self, engine, container, custom_order, claimed_code):
        with pytest.raises(ValidationError) as exc:
            engine.submit_manual_reference(custom_order.ref_code, claimed_code, 1300)
        assert "claimed_code" in exc.value.messages
        assert container.custom_orders.get(custom_order.id).payment_status == PaymentState.PENDING

    def test_crypto_order_rejects_manual_reference(self, engine, crypto_custom_order):
        with pytest.raises(ValidationError) as exc:
            engine.submit_manual_reference(crypto_custom_order.ref_code, "QGH7K2L9XP", 1300)
        assert "ref_code" in exc.value.messages

    def test_purchase_order(self, engine, container, product):
        order = container.orders.create("grid-trader", 25.0, "mpesa_till")
        result = engine.submit_manual_reference(order.ref_code, "QGH7K2L9XP", 25, kind=OrderKind.PURCHASE)
        assert result.order_state == "confirmed"
        assert container.orders.get(order.ref_code, "grid-trader").receipt_ref == "QGH7K2L9XP"


class TestGatewayCallback:
    def test_matching_amount_marks_paid(self, engine, container, custom_order):
        result = engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1300.0, "TXN-1"))
        assert result.order_state == "paid"
        assert container.custom_orders.get(custom_order.id).payment_id == "TXN-1"

    def test_amount_within_tolerance(self, engine, custom_order):
        result = engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1299.99, "TXN-1"))
        assert result.order_state == "paid"

    def test_mismatch_fails_pending_order(self, engine, container, custom_order):
        with pytest.raises(AmountMismatchError) as exc:
            engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1000.0, "TXN-1"))
        assert exc.value.expected == 1300.0
        assert exc.value.received == 1000.0
        assert exc.value.result.order_state == "failed"
        assert container.custom_orders.get(custom_order.id).payment_status == PaymentState.FAILED

    def test_mismatch_never_reverses_paid_order(self, engine, container, custom_order):
        engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1300.0, "TXN-1"))
        with pytest.raises(AmountMismatchError) as exc:
            engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1.0, "TXN-2"))
        assert exc.value.result is None
        assert container.custom_orders.get(custom_order.id).payment_status == PaymentState.PAID

    def test_duplicate_callback(self, engine, custom_order, fake_email):
        engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1300.0, "TXN-1"))
        sent = len(fake_email.sent)
        replay = engine.ingest_gateway_callback(GatewayCallback(custom_order.ref_code, 1300.0, "TXN-1"))
        assert replay.message == "already paid"
        assert len(fake_email.sent) == sent

    def test_purchase_push_payment(self, engine, container, product):
        order = container.orders.create("grid-trader", 25.0, "mpesa_payhero")
        result = engine.ingest_gateway_callback(
            GatewayCallback(order.ref_code, 25.0, "SFX123", kind=OrderKind.PURCHASE, item="grid-trader")
        )
        assert result.order_state == OrderStatus.CONFIRMED_SERVER_STK.value

    def test_crypto_order_rejects_push_callback(self, engine, crypto_custom_order):
        with pytest.raises(ValidationError):
            engine.ingest_gateway_callback(GatewayCallback(crypto_custom_order.ref_code, 1300.0, "TXN-1"))


class TestCryptoWebhook:
    def test_finished_marks_paid(self, engine, container, crypto_custom_order):
        result = engine.ingest_crypto_webhook(CryptoWebhook(crypto_custom_order.ref_code, "finished", "555"))
        assert result.order_state == "paid"
        assert container.custom_orders.get(crypto_custom_order.id).payment_id == "555"

    def test_late_pending_signal_is_stale(self, engine, container, crypto_custom_order):
        engine.ingest_crypto_webhook(CryptoWebhook(crypto_custom_order.ref_code, "finished", "555"))
        result = engine.ingest_crypto_webhook(CryptoWebhook(crypto_custom_order.ref_code, "confirming", "555"))
        assert result.accepted is True
        assert result.changed is False
        assert result.message == "already paid"

    @pytest.mark.parametrize("invoice_status", ["failed", "refunded", "expired"])
    def test_failure_statuses(self, engine, crypto_custom_order, invoice_status):
        result = engine.ingest_crypto_webhook(CryptoWebhook(crypto_custom_order.ref_code, invoice_status, "555"))
        assert result.order_state == "failed"

    def test_unknown_status_never_advances(self, engine, container, crypto_custom_order):
        result = engine.ingest_crypto_webhook(CryptoWebhook(crypto_custom_order.ref_code, "mystery", "555"))
        assert result.changed is False
        assert container.custom_orders.get(crypto_custom_order.id).payment_status == PaymentState.PENDING

    def test_mpesa_order_rejects_crypto_webhook(self, engine, custom_order):
        with pytest.raises(ValidationError):
            engine.ingest_crypto_webhook(CryptoWebhook(custom_order.ref_code, "finished", "555"))

    def test_purchase_confirmation_notifies_admin_once(self, engine, container, product, fake_email):
        order = container.orders.create("grid-trader", 25.0, "crypto_nowpayments")
        fake_email.reset()
        webhook = CryptoWebhook(
            order.ref_code, "finished", "777", actually_paid=25.0, kind=OrderKind.PURCHASE, item="grid-trader"
        )

        assert engine.ingest_crypto_webhook(webhook).changed is True
        assert engine.ingest_crypto_webhook(webhook).message == "already confirmed_nowpayments"
        assert [m.subject for m in fake_email.sent_to("admin@botstore.test")] == [
            "Payment Confirmed - grid-trader - $25.00"
        ]

    def test_purchase_invoice_lifecycle(self, engine, container, product):
        order = container.orders.create("grid-trader", 25.0, "crypto_nowpayments")

        def webhook(status):
            return engine.ingest_crypto_webhook(
                CryptoWebhook(order.ref_code, status, "777", kind=OrderKind.PURCHASE, item="grid-trader")
            )

        assert webhook("partially_paid").order_state == "partially_paid_nowpayments"
        assert webhook("waiting").changed is False
        assert webhook("finished").order_state == "confirmed_nowpayments"
        assert webhook("sending").message == "already confirmed_nowpayments"
        assert webhook("refunded").order_state == "failed_nowpayments_refunded"


class TestTransientFailures:
    @pytest.fixture()
    def flaky(self, settings, fake_redis, fake_email, clock):
        store = FlakyStore()
        container = build_container(
            settings, store=store, redis_client=fake_redis, email=fake_email, clock=clock, sleep=lambda _: None
        )
        return container, store

    def test_transient_failures_are_retried(self, flaky):
        container, store = flaky
        order = container.custom_orders.create(custom_order_request())
        store.failures = 2

        result = container.engine.submit_manual_reference(order.ref_code, "QGH7K2L9XP", 1300)
        assert result.order_state == "paid"

    def test_persistent_failure_surfaces_generic_error(self, flaky):
        container, store = flaky
        order = container.custom_orders.create(crypto_order_request())
        store.failures = 100

        with pytest.raises(TransientError) as exc:
            container.engine.ingest_crypto_webhook(CryptoWebhook(order.ref_code, "finished", "555"))
        assert exc.value.message == "Temporary problem, please try again"
        assert container.custom_orders.get(order.id).payment_status == PaymentState.PENDING
