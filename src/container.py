"""Component wiring.

``build_container()`` assembles every component from ``Settings``. Nothing
here is a hidden singleton: the API reaches components through
``get_container()``, and tests install their own container with
``set_container()``.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import redis
import structlog

from catalog.cache import CacheManager, DistributedTier, LocalTier, NullTier, RedisTier
from catalog.service import CatalogService
from notifications.channel import EmailPort, get_email_adapter
from notifications.dispatch import NotificationDispatcher
from ordering.custom_repository import CustomOrderRepository
from ordering.order_repository import OrderRepository
from payments.engine import ReconciliationEngine
from payments.retry import RetryPolicy
from realtime.fanout import FanOutChannel
from shared.clock import Clock, system_clock
from shared.config import Settings, get_settings
from store import build_store
from store.port import BackingStore

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    store: BackingStore
    cache: CacheManager
    catalog: CatalogService
    fanout: FanOutChannel
    email: EmailPort
    notifier: NotificationDispatcher
    orders: OrderRepository
    custom_orders: CustomOrderRepository
    engine: ReconciliationEngine
    clock: Clock

    def shutdown(self) -> None:
        self.notifier.stop()


def _distributed_tier(settings: Settings, redis_client: redis.Redis | None) -> DistributedTier:
    if redis_client is None and settings.redis_url:
        redis_client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
        )
    if redis_client is None:
        logger.info("No distributed cache configured, using process-local cache only")
        return NullTier()
    return RedisTier(redis_client, prefix=settings.cache_key_prefix)


def build_container(
    settings: Settings | None = None,
    store: BackingStore | None = None,
    redis_client: redis.Redis | None = None,
    email: EmailPort | None = None,
    clock: Clock | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Container:
    settings = settings or get_settings()
    clock = clock or system_clock
    store = store or build_store(settings.database_url)
    email = email or get_email_adapter()

    cache = CacheManager(
        local=LocalTier(),
        distributed=_distributed_tier(settings, redis_client),
        clock=clock,
        ttl=settings.cache_ttl_seconds,
    )
    catalog = CatalogService(store, cache, clock=clock)
    fanout = FanOutChannel(queue_size=settings.fanout_queue_size)
    notifier = NotificationDispatcher(
        email,
        asynchronous=settings.notifications_async,
        sender=settings.support_email,
        clock=clock,
    )
    orders = OrderRepository(
        store,
        catalog,
        fanout,
        notifier,
        admin_email=settings.admin_email,
        clock=clock,
        code_attempts=settings.code_generation_attempts,
        race_attempts=settings.transition_race_attempts,
    )
    custom_orders = CustomOrderRepository(
        store,
        fanout,
        notifier,
        admin_email=settings.admin_email,
        clock=clock,
        code_attempts=settings.code_generation_attempts,
        race_attempts=settings.transition_race_attempts,
    )
    retry = RetryPolicy(
        attempts=settings.store_retry_attempts,
        base_delay=settings.store_retry_base_delay,
        max_delay=settings.store_retry_max_delay,
        budget=settings.evidence_handler_budget_seconds,
        sleep=sleep or time.sleep,
        clock=clock,
    )
    engine = ReconciliationEngine(custom_orders, orders, fanout, retry=retry, tolerance=settings.amount_tolerance)

    return Container(
        settings=settings,
        store=store,
        cache=cache,
        catalog=catalog,
        fanout=fanout,
        email=email,
        notifier=notifier,
        orders=orders,
        custom_orders=custom_orders,
        engine=engine,
        clock=clock,
    )


_container: Container | None = None


def get_container() -> Container:
    """Return the active container, building one from settings on first use."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def set_container(container: Container) -> None:
    global _container
    _container = container


def reset_container() -> None:
    global _container
    if _container is not None:
        _container.shutdown()
    _container = None
