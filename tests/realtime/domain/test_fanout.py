"""Tests for the fan-out channel: non-blocking publish, per-subscriber lag."""

import pytest

from realtime.fanout import FanOutChannel, OrderEvent


def event(ref_code="REF1", new_state="paid"):
    return OrderEvent(entity_type="custom_order", ref_code=ref_code, new_state=new_state, field="payment_status")


@pytest.fixture()
def channel():
    return FanOutChannel(queue_size=2)


class TestOrderEvent:
    def test_to_dict(self):
        data = event().to_dict()
        assert data == {
            "type": "order_event",
            "entity_type": "custom_order",
            "ref_code": "REF1",
            "new_state": "paid",
            "field": "payment_status",
            "snapshot": {},
        }

    def test_defaults(self):
        first = OrderEvent(entity_type="order", ref_code="REF1", new_state="confirmed")
        second = OrderEvent(entity_type="order", ref_code="REF2", new_state="confirmed")
        assert first.field == "status"
        assert first.snapshot == {}
        assert first.snapshot is not second.snapshot


class TestFanOutChannel:
    def test_publish_without_subscribers(self, channel):
        assert channel.publish(event()) == 0

    def test_every_subscriber_receives(self, channel):
        first, second = channel.subscribe(), channel.subscribe()
        assert channel.publish(event()) == 2
        assert first.get() == event()
        assert second.get() == event()

    def test_subscriber_count(self, channel):
        subscription = channel.subscribe()
        assert channel.subscriber_count == 1
        subscription.close()
        assert channel.subscriber_count == 0

    def test_closed_subscription_gets_nothing(self, channel):
        subscription = channel.subscribe()
        subscription.close()
        channel.publish(event())
        assert subscription.get() is None

    def test_get_times_out(self, channel):
        assert channel.subscribe().get(timeout=0.01) is None


class TestSlowSubscriber:
    def test_full_queue_drops_for_that_subscriber_only(self, channel):
        slow, fast = channel.subscribe(), channel.subscribe()
        for n in range(2):
            channel.publish(event(ref_code=f"REF{n}"))
        fast.drain()

        assert channel.publish(event(ref_code="REF9")) == 1
        assert slow.lagged
        assert slow.dropped == 1
        assert not fast.lagged
        assert [e.ref_code for e in fast.drain()] == ["REF9"]

    def test_publish_never_blocks(self, channel):
        subscription = channel.subscribe()
        for n in range(100):
            channel.publish(event(ref_code=f"REF{n}"))
        assert subscription.dropped == 98
        assert len(subscription.drain()) == 2

    def test_clear_lag(self, channel):
        subscription = channel.subscribe()
        for _ in range(3):
            channel.publish(event())
        assert subscription.clear_lag() is True
        assert subscription.clear_lag() is False
