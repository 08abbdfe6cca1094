"""
Read-through cache used by the API handlers.

Two tiers:
- a process-local store with absolute + sliding expiration (``get``/``set``)
- an optional remote store holding length-prefixed JSON bytes
  (``get_remote``/``set_remote``), Redis when ``REDIS_URL`` is configured.

A remote cache outage never breaks a read path: every remote failure is
logged and treated as a miss.
"""
import logging
import struct
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic_core import to_json
from redis.asyncio import Redis, from_url

from app.core.config import settings

logger = logging.getLogger(__name__)

_LENGTH_PREFIX = struct.Struct(">I")


class CacheStatistics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hits: int = 0
    misses: int = 0
    total: int = 0
    hit_rate_percent: float = Field(default=0.0, alias="hitRatePercent")


@dataclass
class _CacheEntry:
    value: Any
    absolute_expiry: float
    sliding: float
    last_access: float

    def expires_at(self) -> float:
        # Sliding is an idle timeout; it never extends past the absolute ceiling
        return min(self.absolute_expiry, self.last_access + self.sliding)


def encode_payload(value: Any) -> bytes:
    body = to_json(value)
    return _LENGTH_PREFIX.pack(len(body)) + body


def decode_payload(payload: bytes, value_type: Any = None) -> Any:
    if len(payload) < _LENGTH_PREFIX.size:
        raise ValueError("Cache payload is shorter than its length prefix")
    (length,) = _LENGTH_PREFIX.unpack_from(payload)
    body = payload[_LENGTH_PREFIX.size:]
    if len(body) != length:
        raise ValueError(f"Cache payload length mismatch: expected {length}, got {len(body)}")
    return TypeAdapter(value_type if value_type is not None else Any).validate_json(body)


class InProcessRemoteCache:
    """Byte store with the remote-cache interface, used when no Redis is configured."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            payload, expires_at = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return payload

    async def set(self, key: str, payload: bytes, ttl_seconds: float) -> None:
        with self._lock:
            self._items[key] = (payload, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisRemoteCache:
    """Redis-backed remote cache. Connects lazily on first use."""

    def __init__(self, url: str, key_prefix: str = "cargo:"):
        self._url = url
        self._key_prefix = key_prefix
        self._redis: Optional[Redis] = None

    async def connect(self) -> Redis:
        if self._redis is None:
            logger.info("Connecting to Redis cache...")
            self._redis = from_url(self._url)
        return self._redis

    async def get(self, key: str) -> Optional[bytes]:
        redis = await self.connect()
        return await redis.get(self._key_prefix + key)

    async def set(self, key: str, payload: bytes, ttl_seconds: float) -> None:
        redis = await self.connect()
        await redis.set(self._key_prefix + key, payload, px=max(1, int(ttl_seconds * 1000)))

    async def delete(self, key: str) -> None:
        redis = await self.connect()
        await redis.delete(self._key_prefix + key)

    async def ping(self) -> bool:
        redis = await self.connect()
        return bool(await redis.ping())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None


class CacheService:
    def __init__(
        self,
        remote=None,
        default_ttl: Optional[float] = None,
        sliding_expiration: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.remote = remote if remote is not None else InProcessRemoteCache(clock=clock)
        self.default_ttl = float(default_ttl if default_ttl is not None else settings.CACHE_DEFAULT_TTL_SECONDS)
        self.sliding_expiration = float(
            sliding_expiration if sliding_expiration is not None else settings.CACHE_SLIDING_EXPIRATION_SECONDS
        )
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    # --- LOCAL TIER ---

    def get(self, key: str) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now >= entry.expires_at():
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
                logger.debug(f"Cache MISS for key: {key}")
                return None

            entry.last_access = now
            self._hits += 1
            logger.debug(f"Cache HIT for key: {key}")
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else float(ttl)
        now = self._clock()
        with self._lock:
            self._entries[key] = _CacheEntry(
                value=value,
                absolute_expiry=now + ttl,
                sliding=self.sliding_expiration,
                last_access=now,
            )
        logger.debug(f"Cached value for key: {key}, expiration: {ttl}s")

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
        logger.debug(f"Removed cache key: {key}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cleared all local cache entries")

    # --- REMOTE TIER ---

    async def get_remote(self, key: str, value_type: Any = None) -> Any:
        try:
            payload = await self.remote.get(key)
            if payload:
                value = decode_payload(payload, value_type)
                with self._lock:
                    self._hits += 1
                logger.debug(f"Remote cache HIT for key: {key}")
                return value

            with self._lock:
                self._misses += 1
            logger.debug(f"Remote cache MISS for key: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Error reading from remote cache for key {key}: {e}", exc_info=True)
            return None

    async def set_remote(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else float(ttl)
        try:
            await self.remote.set(key, encode_payload(value), ttl)
            logger.debug(f"Remote cache set for key: {key}")
        except Exception as e:
            logger.error(f"❌ Error writing to remote cache for key {key}: {e}", exc_info=True)

    async def remove_remote(self, key: str) -> None:
        try:
            await self.remote.delete(key)
            logger.debug(f"Removed remote cache key: {key}")
        except Exception as e:
            logger.error(f"❌ Error removing from remote cache for key {key}: {e}", exc_info=True)

    async def invalidate(self, *keys: str) -> None:
        """Drop keys from both tiers."""
        for key in dict.fromkeys(keys):
            self.remove(key)
            await self.remove_remote(key)

    # --- STATISTICS ---

    def get_statistics(self) -> CacheStatistics:
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        hit_rate = round(hits * 100.0 / total, 2) if total > 0 else 0.0
        return CacheStatistics(hits=hits, misses=misses, total=total, hit_rate_percent=hit_rate)


def build_cache_service() -> CacheService:
    remote = RedisRemoteCache(settings.REDIS_URL) if settings.REDIS_URL else None
    return CacheService(remote=remote)
