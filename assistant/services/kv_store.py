"""Key-value backends shared by the dedup gate and the response cache.

Redis is the shared backend. A bounded in-process backend takes over whenever
Redis is missing at startup or a Redis call fails at runtime.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional

import redis

from assistant.logging_config import get_logger

logger = get_logger("kv_store")


def _ttl_ms(ttl_seconds: float) -> int:
    return max(1, int(ttl_seconds * 1000))


class KeyValueBackend(ABC):
    """Minimal TTL key-value interface."""

    name = "abstract"

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        """Atomically store value unless key is live. True if stored."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    def ping(self) -> bool:
        return True


class RedisBackend(KeyValueBackend):
    name = "redis"

    def __init__(self, client, prefix: str = "assistant"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, socket_timeout_seconds: float, prefix: str = "assistant") -> "RedisBackend":
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=socket_timeout_seconds,
        )
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        return bool(self.client.set(self._key(key), value, px=_ttl_ms(ttl_seconds), nx=True))

    def get(self, key: str) -> Optional[str]:
        return self.client.get(self._key(key))

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self.client.set(self._key(key), value, px=_ttl_ms(ttl_seconds))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as exc:
            logger.warning(f"Redis ping failed: {exc}")
            return False


class LocalBackend(KeyValueBackend):
    """Bounded in-process store with explicit expiry and LRU eviction."""

    name = "memory"

    def __init__(self, capacity: int = 500, clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _live_entry(self, key: str, now: float) -> Optional[tuple[str, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, value: str, ttl_seconds: float, now: float) -> None:
        self._entries[key] = (value, now + ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Local store evicted least recently used key={evicted}")

    def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        with self._lock:
            now = self._clock()
            if self._live_entry(key, now) is not None:
                self._entries.move_to_end(key)
                return False
            self._store(key, value, ttl_seconds, now)
            return True

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry[0]

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._store(key, value, ttl_seconds, self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FallbackStore(KeyValueBackend):
    """Routes every call to the primary backend, and to the fallback when it fails."""

    def __init__(self, primary: Optional[KeyValueBackend], fallback: KeyValueBackend, label: str = "store"):
        self.primary = primary
        self.fallback = fallback
        self.label = label

    @property
    def name(self) -> str:
        return self.primary.name if self.primary is not None else self.fallback.name

    @property
    def using_shared_store(self) -> bool:
        return self.primary is not None

    def _call(self, operation: str, *args):
        if self.primary is not None:
            try:
                return getattr(self.primary, operation)(*args)
            except Exception as exc:
                logger.warning(
                    f"{self.label}: {self.primary.name} {operation} failed, using {self.fallback.name}",
                    extra={"context": {"key": args[0] if args else None, "error": str(exc)}},
                )
        return getattr(self.fallback, operation)(*args)

    def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        return self._call("set_if_absent", key, value, ttl_seconds)

    def get(self, key: str) -> Optional[str]:
        return self._call("get", key)

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self._call("set", key, value, ttl_seconds)

    def delete(self, key: str) -> None:
        self._call("delete", key)

    def ping(self) -> bool:
        if self.primary is not None:
            return self.primary.ping()
        return self.fallback.ping()


def build_store(
    *,
    label: str,
    redis_url: str | None,
    socket_timeout_seconds: float,
    local_capacity: int,
    prefix: str = "assistant",
) -> FallbackStore:
    """Build a store for one component. Redis is dropped if it does not answer at startup."""
    local = LocalBackend(capacity=local_capacity)
    if not redis_url:
        logger.warning(f"{label}: no REDIS_URL configured, using in-memory store (not shared across instances)")
        return FallbackStore(None, local, label=label)

    shared = RedisBackend.from_url(redis_url, socket_timeout_seconds, prefix=prefix)
    if not shared.ping():
        logger.warning(f"{label}: Redis unavailable at startup, using in-memory store (not shared across instances)")
        return FallbackStore(None, local, label=label)

    logger.info(f"{label}: using Redis store", extra={"context": {"redis_url": redis_url}})
    return FallbackStore(shared, local, label=label)
