"""Per-subject coalescing of rapid-fire messages.

A burst of messages from one subject is held until the subject has been quiet
for `delay_seconds`, then handed to the settle callback as one space-joined
text. Every new message restarts the delay.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from assistant.logging_config import get_logger

logger = get_logger("debounce_service")


@dataclass(frozen=True)
class SettleContext:
    subject_key: str
    channel_id: Optional[str]
    reply_target: Optional[str]
    message_count: int


SettleCallback = Callable[[str, SettleContext], None]


@dataclass
class DebounceBuffer:
    subject_key: str
    channel_id: Optional[str]
    reply_target: Optional[str]
    on_settle: SettleCallback
    messages: list[str] = field(default_factory=list)
    generation: int = 0
    timer: Optional[threading.Timer] = None


class MessageDebouncer:
    def __init__(self, delay_seconds: float = 1.0, timer_factory=threading.Timer):
        self.delay_seconds = delay_seconds
        self._timer_factory = timer_factory
        self._buffers: dict[str, DebounceBuffer] = {}
        self._lock = threading.Lock()

    def buffer_message(
        self,
        subject_key: str,
        text: str,
        reply_target: Optional[str],
        on_settle: SettleCallback,
        channel_id: Optional[str] = None,
    ) -> int:
        """Add text to the subject's buffer and (re)start its delay. Returns buffered count."""
        with self._lock:
            buffer = self._buffers.get(subject_key)
            if buffer is None:
                buffer = DebounceBuffer(
                    subject_key=subject_key,
                    channel_id=channel_id,
                    reply_target=reply_target,
                    on_settle=on_settle,
                )
                self._buffers[subject_key] = buffer
                logger.info(f"New buffer: subject={subject_key} reply_target={reply_target}")
            else:
                if buffer.timer is not None:
                    buffer.timer.cancel()
                buffer.on_settle = on_settle
                logger.info(
                    f"Buffering message: subject={subject_key} total={len(buffer.messages) + 1} "
                    f"reply_target={buffer.reply_target} (unchanged)"
                )

            buffer.messages.append(text)
            buffer.generation += 1
            timer = self._timer_factory(self.delay_seconds, self._settle, args=(subject_key, buffer.generation))
            timer.daemon = True
            buffer.timer = timer
            timer.start()
            return len(buffer.messages)

    def _settle(self, subject_key: str, generation: int) -> None:
        with self._lock:
            buffer = self._buffers.get(subject_key)
            if buffer is None or buffer.generation != generation:
                # A newer message restarted the delay after this timer fired.
                return
            del self._buffers[subject_key]

        combined = " ".join(buffer.messages)
        context = SettleContext(
            subject_key=subject_key,
            channel_id=buffer.channel_id,
            reply_target=buffer.reply_target,
            message_count=len(buffer.messages),
        )
        logger.info(
            "Debounce complete",
            extra={
                "context": {
                    "subject": subject_key,
                    "messages": context.message_count,
                    "reply_target": context.reply_target,
                }
            },
        )
        try:
            buffer.on_settle(combined, context)
        except Exception:
            logger.exception(f"Settle callback failed for subject={subject_key}")

    def pending_count(self) -> int:
        with self._lock:
            return len(self._buffers)

    def shutdown(self) -> None:
        with self._lock:
            buffers = list(self._buffers.values())
            self._buffers.clear()
        for buffer in buffers:
            if buffer.timer is not None:
                buffer.timer.cancel()
        if buffers:
            logger.warning(f"Debouncer stopped with {len(buffers)} unsettled buffer(s)")
