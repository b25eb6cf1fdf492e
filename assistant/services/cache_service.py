from typing import Optional

from assistant.logging_config import get_logger
from assistant.services.kv_store import FallbackStore

logger = get_logger("cache_service")

CACHE_PREFIX = "cache"


class ResponseCache:
    """Cache-aside store for synthesized answers, keyed by subject and intent."""

    def __init__(self, store: FallbackStore, ttl_seconds: float = 600):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @property
    def using_shared_store(self) -> bool:
        return self.store.using_shared_store

    @staticmethod
    def build_key(subject_id: str, intent_key: str) -> str:
        return f"{subject_id}:{intent_key}"

    def get(self, key: str) -> Optional[str]:
        value = self.store.get(f"{CACHE_PREFIX}:{key}")
        logger.info(f"Cache {'HIT' if value is not None else 'MISS'}: key={key} ({self.store.name})")
        return value

    def put(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self.store.set(f"{CACHE_PREFIX}:{key}", value, ttl)
        logger.info(f"Cache STORED: key={key} ttl={ttl}s ({self.store.name})")

    def evict(self, key: str) -> None:
        self.store.delete(f"{CACHE_PREFIX}:{key}")
        logger.info(f"Cache EVICTED: key={key}")
