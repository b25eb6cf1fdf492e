import threading
import time
from collections import deque
from typing import Callable, Optional

from assistant.logging_config import get_logger

logger = get_logger("conversation_service")


class _Conversation:
    def __init__(self, max_turns: int, now: float):
        self.turns: deque[dict[str, str]] = deque(maxlen=max_turns)
        self.last_activity = now


def generate_thread_key(channel_id: str, user_id: str, thread_ts: Optional[str] = None) -> str:
    """Thread replies share a key per thread; top-level messages share one per user."""
    if thread_ts:
        return f"{channel_id}:{thread_ts}"
    return f"{channel_id}:{user_id}"


class ConversationStore:
    """Sliding-window turn history per thread, with staleness eviction."""

    def __init__(
        self,
        max_turns: int = 10,
        stale_after_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.max_turns = max_turns
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._conversations: dict[str, _Conversation] = {}
        self._lock = threading.Lock()

    def add_message(self, thread_key: str, role: str, content: str) -> None:
        with self._lock:
            now = self._clock()
            conversation = self._conversations.get(thread_key)
            if conversation is None:
                conversation = _Conversation(self.max_turns, now)
                self._conversations[thread_key] = conversation
            conversation.turns.append({"role": role, "content": content})
            conversation.last_activity = now

    def get_history(self, thread_key: str) -> list[dict[str, str]]:
        with self._lock:
            conversation = self._conversations.get(thread_key)
            if conversation is None:
                return []
            return [dict(turn) for turn in conversation.turns]

    def close_conversation(self, thread_key: str) -> bool:
        with self._lock:
            removed = self._conversations.pop(thread_key, None)
        if removed is not None:
            logger.info(f"Conversation closed: thread_key={thread_key} turns={len(removed.turns)}")
        return removed is not None

    def sweep_stale(self, now: Optional[float] = None) -> int:
        """Remove threads idle longer than the staleness threshold. Returns count removed."""
        with self._lock:
            now = self._clock() if now is None else now
            stale = [
                key
                for key, conversation in self._conversations.items()
                if now - conversation.last_activity > self.stale_after_seconds
            ]
            for key in stale:
                del self._conversations[key]
        for key in stale:
            logger.info(f"Auto-closing stale conversation: thread_key={key}")
        return len(stale)

    def active_count(self) -> int:
        with self._lock:
            return len(self._conversations)
