import base64
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from redis.asyncio import Redis

from geoproxy.settings import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def dumps(self) -> str:
        return json.dumps(
            {
                "status": self.status,
                "headers": self.headers,
                "body": base64.b64encode(self.body).decode("ascii"),
            },
            separators=(",", ":"),
        )

    @classmethod
    def loads(cls, raw: str) -> "CachedResponse":
        obj = json.loads(raw)
        return cls(
            status=int(obj["status"]),
            headers={str(k): str(v) for k, v in (obj.get("headers") or {}).items()},
            body=base64.b64decode(obj.get("body") or ""),
        )


class CacheStore:
    """Shared response cache keyed by resolved upstream URL.

    Lookups never raise: backend failures and unreadable entries are misses.
    Stores swallow backend failures after logging them.
    """

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        raise NotImplementedError

    async def store(self, key: str, entry: CachedResponse, ttl_seconds: int) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        try:
            cached = await self.redis.get(key)
        except Exception as e:
            logger.warning("Cache lookup failed for %s: %s", key, e)
            return None
        if not cached:
            return None
        try:
            return CachedResponse.loads(cached)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            return None

    async def store(self, key: str, entry: CachedResponse, ttl_seconds: int) -> None:
        # Redis rejects EX=0 / negative
        if int(ttl_seconds) <= 0:
            return
        try:
            await self.redis.set(key, entry.dumps(), ex=int(ttl_seconds))
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def close(self) -> None:
        await self.redis.close()


class MemoryCacheStore(CacheStore):
    """Process-local store used when REDIS_URL is unset."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        hit = self._entries.get(key)
        if hit is None:
            return None
        expires_at, raw = hit
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return CachedResponse.loads(raw)

    async def store(self, key: str, entry: CachedResponse, ttl_seconds: int) -> None:
        if int(ttl_seconds) <= 0:
            return
        now = self._clock()
        self._sweep(now)
        self._entries[key] = (now + int(ttl_seconds), entry.dumps())

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)


cache_store: Optional[CacheStore] = None


async def init_cache(settings: Settings) -> None:
    global cache_store

    if not settings.redis_url:
        logger.info("REDIS_URL not set; using in-memory cache store")
        cache_store = MemoryCacheStore()
        return

    redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.ping()
    except Exception as e:
        raise RuntimeError(f"Redis not reachable at {settings.redis_url}: {e}")

    cache_store = RedisCacheStore(redis_client)


async def close_cache() -> None:
    if cache_store is not None:
        await cache_store.close()


def get_cache_store() -> CacheStore:
    if cache_store is None:
        raise RuntimeError("Cache store not initialized")
    return cache_store
