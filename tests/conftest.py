from pathlib import Path

import fakeredis
import pytest
from support import ADMIN_TOKEN, IPN_SECRET, crypto_order_request, custom_order_request

from catalog.models import Product
from container import build_container, reset_container, set_container
from notifications.channel.fake_email import FakeEmailAdapter
from shared.clock import ManualClock
from shared.config import Settings
from store import MEMORY_URL, InMemoryStore


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


# ---------------------------------------------------------------
# Infrastructure doubles
# ---------------------------------------------------------------
@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def fake_email():
    return FakeEmailAdapter()


@pytest.fixture()
def settings():
    return Settings(
        env="test",
        database_url=MEMORY_URL,
        notifications_async=False,
        crypto_ipn_secret=IPN_SECRET,
        admin_session_token=ADMIN_TOKEN,
        admin_email="admin@botstore.test",
        support_email="support@botstore.test",
    )


# ---------------------------------------------------------------
# Wired components
# ---------------------------------------------------------------
@pytest.fixture()
def container(settings, store, fake_redis, fake_email, clock):
    container = build_container(
        settings,
        store=store,
        redis_client=fake_redis,
        email=fake_email,
        clock=clock,
        sleep=lambda _: None,
    )
    set_container(container)
    yield container
    reset_container()


@pytest.fixture()
def product(container):
    return container.catalog.save_product(Product(item="grid-trader", name="Grid Trader Bot", price=25.0))


@pytest.fixture()
def custom_order(container):
    return container.custom_orders.create(custom_order_request())


@pytest.fixture()
def crypto_custom_order(container):
    return container.custom_orders.create(crypto_order_request())


@pytest.fixture()
def admin_cookies(settings):
    return {settings.admin_session_cookie: ADMIN_TOKEN}
