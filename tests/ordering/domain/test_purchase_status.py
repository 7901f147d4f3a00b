"""Tests for purchase order status variants, buckets and rails."""

import pytest

from ordering.payment_state import PaymentState
from ordering.purchase import (
    ADMIN_RAIL,
    INITIAL_STATUS,
    STATUS_INFO,
    Order,
    OrderStatus,
    PaymentMethod,
    StatusBucket,
    is_status_allowed,
    rail_status,
)


def _order(status, method=PaymentMethod.MPESA_TILL, **overrides):
    values = {
        "id": 1,
        "item": "grid-trader",
        "ref_code": "REF1",
        "amount": 25.0,
        "status": status,
        "payment_method": method,
    }
    values.update(overrides)
    return Order(**values)


class TestStatusInfo:
    def test_every_variant_is_classified(self):
        assert set(STATUS_INFO) == set(OrderStatus)

    def test_bucket_agrees_with_payment_state(self):
        for info in STATUS_INFO.values():
            if info.bucket == StatusBucket.CONFIRMED:
                assert info.payment_state == PaymentState.PAID
            if info.bucket == StatusBucket.NO_PAYMENT:
                assert info.payment_state == PaymentState.FAILED

    def test_initial_statuses(self):
        assert INITIAL_STATUS[PaymentMethod.MPESA_TILL] == OrderStatus.PENDING
        assert INITIAL_STATUS[PaymentMethod.CRYPTO_NOWPAYMENTS] == OrderStatus.PENDING_NOWPAYMENTS

    @pytest.mark.parametrize("method", list(PaymentMethod))
    @pytest.mark.parametrize("state", list(PaymentState))
    def test_rail_status_matches_state(self, method, state):
        status = rail_status(method, state)
        assert STATUS_INFO[status].payment_state == state
        assert is_status_allowed(method, status)


class TestStatusAllowed:
    def test_admin_statuses_valid_on_every_rail(self):
        admin_statuses = [s for s, info in STATUS_INFO.items() if info.rail == ADMIN_RAIL]
        for method in PaymentMethod:
            assert all(is_status_allowed(method, status) for status in admin_statuses)

    def test_other_rail_status_rejected(self):
        assert not is_status_allowed(PaymentMethod.MPESA_TILL, OrderStatus.CONFIRMED_NOWPAYMENTS)
        assert not is_status_allowed(PaymentMethod.CRYPTO_NOWPAYMENTS, OrderStatus.PENDING_STK_PUSH)


class TestOrderView:
    def test_confirmed_order_is_download_eligible(self):
        order = _order(OrderStatus.CONFIRMED_SERVER_STK, PaymentMethod.MPESA_PAYHERO)
        assert order.bucket == StatusBucket.CONFIRMED
        assert order.download_eligible is True
        assert order.status_message() == "Payment confirmed! Your download is ready."

    def test_downloaded_order_not_eligible_again(self):
        order = _order(OrderStatus.CONFIRMED, downloaded=True)
        assert order.download_eligible is False
        assert order.status_message() == "File already downloaded for this order."

    def test_pending_push_message(self):
        order = _order(OrderStatus.PENDING_STK_PUSH, PaymentMethod.MPESA_PAYHERO)
        assert order.download_eligible is False
        assert "STK push" in order.status_message()

    def test_event_snapshot_carries_bucket(self):
        snapshot = _order(OrderStatus.NO_PAYMENT).to_event_snapshot()
        assert snapshot["status"] == "no_payment"
        assert snapshot["bucket"] == "no_payment"
