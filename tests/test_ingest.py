from unittest.mock import Mock

import pytest

from assistant.schemas.events import InboundEvent
from assistant.services.conversation_service import ConversationStore
from assistant.services.debounce_service import MessageDebouncer
from assistant.services.dedup_service import Deduplicator
from assistant.services.ingest_service import EventIngestor, IngestStatus
from assistant.services.pipeline_service import BUSY_TEXT, GENERIC_ERROR_TEXT, PipelineOutcome, PipelineStatus
from assistant.services.reminder_service import ActivityMonitor
from assistant.services.worker_pool import WorkerPoolSaturatedError


class InlinePool:
    """Runs submitted work on the calling thread."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append(args)
        return fn(*args, **kwargs)


@pytest.fixture
def pipeline():
    mock = Mock()
    mock.run.return_value = PipelineOutcome(status=PipelineStatus.ANSWERED, text="answer", delivered=True)
    return mock


@pytest.fixture
def ingestor(local_store, dt_clock, timers, clock, pipeline, transport):
    return EventIngestor(
        dedup=Deduplicator(local_store, ttl_seconds=300),
        activity=ActivityMonitor(clock=dt_clock),
        debouncer=MessageDebouncer(delay_seconds=1.0, timer_factory=timers),
        conversations=ConversationStore(clock=clock),
        pipeline=pipeline,
        worker_pool=InlinePool(),
        transport=transport,
    )


def _event(event_id="1700.0001", text="my account is inactive", **kwargs) -> InboundEvent:
    kwargs.setdefault("channel_name", "artemishelp")
    return InboundEvent(event_id=event_id, subject_id="U1", channel_id="C1", text=text, **kwargs)


class TestIngest:
    def test_buffers_and_marks_processing(self, ingestor):
        decision = ingestor.ingest(_event())

        assert decision.status == IngestStatus.BUFFERED
        assert decision.buffered_count == 1
        assert ingestor.activity.get_thread_info("C1:U1").processing is True
        ingestor.pipeline.run.assert_not_called()

    def test_duplicate_event_dropped(self, ingestor):
        ingestor.ingest(_event())
        decision = ingestor.ingest(_event())

        assert decision.status == IngestStatus.DUPLICATE
        assert ingestor.debouncer.pending_count() == 1

    def test_blank_text_ignored(self, ingestor):
        decision = ingestor.ingest(_event(text="   "))

        assert decision.status == IngestStatus.IGNORED
        assert ingestor.activity.active_thread_count() == 0
        assert ingestor.dedup.try_claim("1700.0001") is True


class TestSettle:
    def test_burst_runs_pipeline_once_and_clears_processing(self, ingestor, timers):
        ingestor.ingest(_event("1700.0001", "my report"))
        ingestor.ingest(_event("1700.0002", "is failing"))
        timers.created[-1].fire()

        ingestor.pipeline.run.assert_called_once()
        request = ingestor.pipeline.run.call_args[0][0]
        assert request.text == "my report is failing"
        assert request.thread_key == "C1:U1"
        assert request.channel_name == "artemishelp"

        info = ingestor.activity.get_thread_info("C1:U1")
        assert info.processing is False
        assert info.last_bot_time is not None
        assert ingestor.conversations.get_history("C1:U1") == [{"role": "user", "content": "my report is failing"}]

    def test_pipeline_failure_records_bot_error(self, ingestor, timers, pipeline):
        pipeline.run.return_value = PipelineOutcome(status=PipelineStatus.ERROR, text="err", delivered=True)

        ingestor.ingest(_event())
        timers.created[-1].fire()

        info = ingestor.activity.get_thread_info("C1:U1")
        assert info.processing is False
        assert info.last_bot_time is None

    def test_pipeline_exception_still_clears_processing(self, ingestor, timers, pipeline):
        pipeline.run.side_effect = RuntimeError("boom")

        ingestor.ingest(_event())
        timers.created[-1].fire()

        assert ingestor.activity.get_thread_info("C1:U1").processing is False

    def test_saturated_pool_replies_busy(self, ingestor, timers, transport):
        ingestor.worker_pool = Mock(submit=Mock(side_effect=WorkerPoolSaturatedError("full")))

        ingestor.ingest(_event(reply_target="1700.0000"))
        timers.created[-1].fire()

        transport.deliver.assert_called_once_with("C1", BUSY_TEXT, "1700.0000")
        assert ingestor.activity.get_thread_info("C1:1700.0000").processing is False

    def test_submit_error_clears_processing(self, ingestor, timers, transport):
        ingestor.worker_pool = Mock(submit=Mock(side_effect=RuntimeError("executor shut down")))

        ingestor.ingest(_event())
        timers.created[-1].fire()

        transport.deliver.assert_called_once_with("C1", GENERIC_ERROR_TEXT, None)
        assert ingestor.activity.get_thread_info("C1:U1").processing is False

    def test_history_error_clears_processing(self, ingestor, timers, pipeline):
        ingestor.conversations = Mock(add_message=Mock(side_effect=RuntimeError("store down")))

        ingestor.ingest(_event())
        timers.created[-1].fire()

        pipeline.run.assert_not_called()
        assert ingestor.activity.get_thread_info("C1:U1").processing is False

    def test_failed_rejection_reply_still_clears_processing(self, ingestor, timers, transport):
        ingestor.worker_pool = Mock(submit=Mock(side_effect=WorkerPoolSaturatedError("full")))
        transport.deliver.side_effect = RuntimeError("slack down")

        ingestor.ingest(_event())
        timers.created[-1].fire()

        assert ingestor.activity.get_thread_info("C1:U1").processing is False

    def test_burst_across_threads_clears_every_flag(self, ingestor, timers):
        ingestor.ingest(_event("1700.0001", "first", reply_target="1699.0000"))
        ingestor.ingest(_event("1700.0002", "second"))
        timers.created[-1].fire()

        assert ingestor.activity.get_thread_info("C1:1699.0000").processing is False
        assert ingestor.activity.get_thread_info("C1:U1").processing is False
        assert ingestor.pipeline.run.call_args[0][0].thread_key == "C1:U1"
