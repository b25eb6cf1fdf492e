from assistant.logging_config import get_logger
from assistant.services.kv_store import FallbackStore

logger = get_logger("dedup_service")

DEDUP_PREFIX = "dedup"


class Deduplicator:
    """Idempotency gate for inbound events (transports retry deliveries)."""

    def __init__(self, store: FallbackStore, ttl_seconds: float = 300):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @property
    def using_shared_store(self) -> bool:
        return self.store.using_shared_store

    def try_claim(self, event_id: str) -> bool:
        """Return True exactly once per event_id within the TTL window."""
        is_new = self.store.set_if_absent(f"{DEDUP_PREFIX}:{event_id}", "1", self.ttl_seconds)
        if is_new:
            logger.debug(f"Dedup: new event {event_id} ({self.store.name})")
        else:
            logger.info(
                "Duplicate event ignored",
                extra={"context": {"event_id": event_id, "backend": self.store.name}},
            )
        return is_new
