"""Two-tier read-through cache.

Reads consult the process-local tier first, then the distributed tier, then
the backing store through a registered loader. The distributed tier is best
effort: any failure there counts as a miss and is logged, never raised.

Writes always go to the backing store first; on success both tiers are
refreshed with the reloaded snapshot rather than merely dropped, so the next
readers do not all rush the store at once.

Cache-line states, as seen by the process-local tier::

    COLD         nothing cached for the key
    FRESH        age < ttl, served without touching other tiers
    STALE        age >= ttl, kept only until the next read replaces it
    INVALIDATED  explicitly dropped; the distributed copy is not trusted
                 until a load from the store repopulates the key
"""

import json
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import redis
import structlog

from shared.clock import Clock, system_clock
from shared.errors import NotFoundError

logger = structlog.get_logger(__name__)


class CacheLineState(Enum):
    COLD = "cold"
    FRESH = "fresh"
    STALE = "stale"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    cached_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.cached_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------
class LocalTier:
    """Process-local tier. Trusted only while an entry is fresh.

    Every key carries a generation that moves on each write or invalidation.
    A load captures the generation before it reads the store and only lands
    if nothing moved it in the meantime.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._invalidated: set[str] = set()
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def generation(self, key: str) -> int:
        with self._lock:
            return self._generations.get(key, 0)

    def bump(self, key: str) -> int:
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            return self._generations[key]

    def set(self, entry: CacheEntry, generation: int | None = None) -> bool:
        """Store ``entry``; refuse it when ``generation`` is no longer current."""
        with self._lock:
            if generation is not None and generation != self._generations.get(entry.key, 0):
                return False
            self._entries[entry.key] = entry
            self._invalidated.discard(entry.key)
            return True

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._invalidated.add(key)
            self._generations[key] = self._generations.get(key, 0) + 1

    def is_invalidated(self, key: str) -> bool:
        with self._lock:
            return key in self._invalidated

    def state(self, key: str, now: float) -> CacheLineState:
        with self._lock:
            if key in self._invalidated:
                return CacheLineState.INVALIDATED
            entry = self._entries.get(key)
        if entry is None:
            return CacheLineState.COLD
        return CacheLineState.FRESH if entry.is_fresh(now) else CacheLineState.STALE

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidated.clear()


class DistributedTier:
    """Shared tier interface. Implementations never raise on failure."""

    def get(self, key: str) -> CacheEntry | None:
        return None

    def set(self, entry: CacheEntry) -> None:
        return None

    def delete(self, key: str) -> None:
        return None


class NullTier(DistributedTier):
    """Used when no distributed cache is configured."""


class RedisTier(DistributedTier):
    """Distributed tier backed by Redis, one JSON document per key."""

    def __init__(self, client: redis.Redis, prefix: str = "botstore") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Distributed cache read failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            document = json.loads(raw)
            return CacheEntry(
                key=key,
                payload=document["payload"],
                cached_at=float(document["cached_at"]),
                ttl=float(document["ttl"]),
            )
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Distributed cache entry corrupt", key=key, error=str(exc))
            return None

    def set(self, entry: CacheEntry) -> None:
        document = json.dumps({"payload": entry.payload, "cached_at": entry.cached_at, "ttl": entry.ttl})
        try:
            self.client.setex(self._key(entry.key), max(1, math.ceil(entry.ttl)), document)
        except redis.RedisError as exc:
            logger.warning("Distributed cache write failed", key=entry.key, error=str(exc))

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Distributed cache delete failed", key=key, error=str(exc))


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------
class CacheManager:
    def __init__(
        self,
        local: LocalTier | None = None,
        distributed: DistributedTier | None = None,
        clock: Clock = system_clock,
        ttl: float = 15 * 60,
    ) -> None:
        self.local = local or LocalTier()
        self.distributed = distributed or NullTier()
        self.clock = clock
        self.ttl = ttl
        self._loaders: dict[str, Callable[[], Any]] = {}

    def register(self, key: str, loader: Callable[[], Any]) -> None:
        """Register the backing-store loader for ``key``.

        The loader must return a JSON-serializable payload.
        """
        self._loaders[key] = loader

    def _loader(self, key: str) -> Callable[[], Any]:
        try:
            return self._loaders[key]
        except KeyError:
            raise NotFoundError(f"No loader registered for cache key {key}", key=key) from None

    def state(self, key: str) -> CacheLineState:
        return self.local.state(key, self.clock())

    def get(self, key: str) -> Any:
        now = self.clock()

        entry = self.local.get(key)
        if entry is not None and entry.is_fresh(now):
            return entry.payload

        generation = self.local.generation(key)
        if not self.local.is_invalidated(key):
            remote = self.distributed.get(key)
            if remote is not None and remote.is_fresh(now):
                # Fresh local timestamp, but never outliving the shared copy
                adopted = CacheEntry(key, remote.payload, now, remote.ttl - remote.age(now))
                if self.local.set(adopted, generation):
                    logger.debug("Cache entry adopted from distributed tier", key=key)
                return remote.payload

        return self._load(key, generation)

    def _load(self, key: str, generation: int) -> Any:
        payload = self._loader(key)()
        if self._populate(key, payload, generation):
            logger.info("Cache entry loaded from store", key=key)
        else:
            logger.info("Cache entry superseded while loading, not stored", key=key)
        return payload

    def _populate(self, key: str, payload: Any, generation: int) -> bool:
        entry = CacheEntry(key=key, payload=payload, cached_at=self.clock(), ttl=self.ttl)
        if not self.local.set(entry, generation):
            return False
        self.distributed.set(entry)
        return True

    def write(self, key: str, mutation: Callable[[], Any]) -> Any:
        """Run ``mutation`` against the backing store, then refresh ``key``.

        If the mutation fails nothing is touched. If the refresh fails the key
        is invalidated so the next read reloads from the store, and the error
        propagates. Loads that started before the mutation committed can no
        longer land in either tier.
        """
        result = mutation()
        generation = self.local.bump(key)
        try:
            self._populate(key, self._loader(key)(), generation)
        except Exception:
            self.invalidate(key)
            logger.exception("Cache refresh after write failed", key=key)
            raise
        logger.info("Cache refreshed after write", key=key)
        return result

    def invalidate(self, key: str) -> None:
        self.local.invalidate(key)
        self.distributed.delete(key)
