"""Inbound event ingestion: dedup -> activity -> debounce -> worker pool.

`ingest` returns as soon as the event is buffered; the pipeline runs later on
a worker thread once the subject's burst has settled.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from assistant.logging_config import get_logger
from assistant.schemas.events import InboundEvent
from assistant.services.debounce_service import SettleContext
from assistant.services.pipeline_service import BUSY_TEXT, GENERIC_ERROR_TEXT, PipelineOutcome, PipelineRequest
from assistant.services.worker_pool import WorkerPoolSaturatedError

logger = get_logger("ingest_service")


class IngestStatus(str, Enum):
    BUFFERED = "buffered"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class IngestDecision:
    status: IngestStatus
    event_id: str
    buffered_count: int = 0


class EventIngestor:
    def __init__(self, dedup, activity, debouncer, conversations, pipeline, worker_pool, transport):
        self.dedup = dedup
        self.activity = activity
        self.debouncer = debouncer
        self.conversations = conversations
        self.pipeline = pipeline
        self.worker_pool = worker_pool
        self.transport = transport
        # subject_key -> thread keys marked processing while the burst is buffered
        self._pending_threads: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def ingest(self, event: InboundEvent) -> IngestDecision:
        if not event.text.strip():
            logger.debug(f"Ignoring empty message: event_id={event.event_id}")
            return IngestDecision(IngestStatus.IGNORED, event.event_id)

        if not self.dedup.try_claim(event.event_id):
            return IngestDecision(IngestStatus.DUPLICATE, event.event_id)

        self.activity.record_user_message(event.thread_key, event.channel_id, event.reply_target)
        with self._lock:
            self._pending_threads.setdefault(event.subject_key, set()).add(event.thread_key)

        count = self.debouncer.buffer_message(
            event.subject_key,
            event.text,
            event.reply_target,
            lambda combined, ctx: self._on_settle(event, combined, ctx),
            channel_id=event.channel_id,
        )
        logger.info(
            "Message accepted",
            extra={
                "context": {
                    "event_id": event.event_id,
                    "thread_key": event.thread_key,
                    "subject": event.subject_key,
                    "buffered": count,
                }
            },
        )
        return IngestDecision(IngestStatus.BUFFERED, event.event_id, count)

    def _on_settle(self, event: InboundEvent, combined_text: str, context: SettleContext) -> None:
        with self._lock:
            thread_keys = self._pending_threads.pop(context.subject_key, set())
        # The burst is answered on the latest event's thread; others only need their flag cleared.
        for thread_key in thread_keys - {event.thread_key}:
            self.activity.record_bot_error(thread_key)

        try:
            self.conversations.add_message(event.thread_key, "user", combined_text)
            request = PipelineRequest(
                thread_key=event.thread_key,
                subject_id=event.subject_id,
                channel_id=event.channel_id,
                text=combined_text,
                reply_target=context.reply_target,
                channel_name=event.channel_name,
            )
            self.worker_pool.submit(self._process, request)
        except WorkerPoolSaturatedError as e:
            logger.warning(f"Rejecting request, {e}: thread_key={event.thread_key}")
            self._reject(event, context, BUSY_TEXT)
        except Exception:
            logger.exception(f"Failed to dispatch request: thread_key={event.thread_key}")
            self._reject(event, context, GENERIC_ERROR_TEXT)

    def _reject(self, event: InboundEvent, context: SettleContext, text: str) -> None:
        try:
            self.transport.deliver(event.channel_id, text, context.reply_target)
        except Exception as e:
            logger.error(f"Rejection reply failed: thread_key={event.thread_key}: {e}")
        finally:
            self.activity.record_bot_error(event.thread_key)

    def _process(self, request: PipelineRequest) -> Optional[PipelineOutcome]:
        succeeded = False
        try:
            outcome = self.pipeline.run(request)
            succeeded = outcome.succeeded
            return outcome
        finally:
            if succeeded:
                self.activity.record_bot_response(request.thread_key)
            else:
                self.activity.record_bot_error(request.thread_key)
