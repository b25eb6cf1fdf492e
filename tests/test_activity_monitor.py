from datetime import timedelta
from unittest.mock import Mock

from assistant.services.reminder_service import ActivityMonitor


def _monitor(dt_clock, **kwargs) -> ActivityMonitor:
    kwargs.setdefault("on_reminder", Mock())
    kwargs.setdefault("on_close", Mock())
    return ActivityMonitor(
        reminder_threshold=timedelta(minutes=1),
        closure_threshold=timedelta(minutes=2),
        clock=dt_clock,
        **kwargs,
    )


class TestRecording:
    def test_user_message_sets_processing(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)

        info = monitor.get_thread_info("C1:U1")
        assert info.processing is True
        assert info.last_user_time == dt_clock.now
        assert info.session_id

    def test_bot_response_clears_processing(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)
        dt_clock.advance(seconds=3)
        monitor.record_bot_response("C1:U1")

        info = monitor.get_thread_info("C1:U1")
        assert info.processing is False
        assert info.last_bot_time == dt_clock.now

    def test_bot_error_clears_processing_only(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)
        monitor.record_bot_error("C1:U1")

        info = monitor.get_thread_info("C1:U1")
        assert info.processing is False
        assert info.last_bot_time is None

    def test_blank_thread_key_ignored(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("  ", "C1", None)
        assert monitor.active_thread_count() == 0

    def test_session_id_stable_across_messages(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)
        first = monitor.get_thread_info("C1:U1").session_id
        monitor.record_user_message("C1:U1", "C1", None)
        assert monitor.get_thread_info("C1:U1").session_id == first

    def test_thread_info_is_a_snapshot(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)
        monitor.get_thread_info("C1:U1").processing = False
        assert monitor.get_thread_info("C1:U1").processing is True


class TestSweep:
    def test_processing_thread_never_closed(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)

        report = monitor.sweep(dt_clock.now + timedelta(minutes=5))

        assert report.skipped == ["C1:U1"]
        assert monitor.active_thread_count() == 1
        monitor.on_close.assert_not_called()

    def test_reminder_sent_exactly_once(self, dt_clock):
        monitor = _monitor(dt_clock)
        start = dt_clock.now
        monitor.record_user_message("C1:U1", "C1", "1700.1")
        dt_clock.advance(seconds=5)
        monitor.record_bot_response("C1:U1")

        assert monitor.sweep(start + timedelta(seconds=30)).reminded == []
        assert monitor.sweep(start + timedelta(seconds=61)).reminded == ["C1:U1"]
        assert monitor.sweep(start + timedelta(seconds=90)).reminded == []

        monitor.on_reminder.assert_called_once_with("C1:U1", "C1", "1700.1")
        assert monitor.get_thread_info("C1:U1").reminder_count == 1

    def test_reminder_count_not_reset_by_new_user_message(self, dt_clock):
        monitor = _monitor(dt_clock)
        start = dt_clock.now
        monitor.record_user_message("C1:U1", "C1", None)
        dt_clock.advance(seconds=1)
        monitor.record_bot_response("C1:U1")
        monitor.sweep(start + timedelta(seconds=61))

        dt_clock.now = start + timedelta(seconds=70)
        monitor.record_user_message("C1:U1", "C1", None)
        dt_clock.advance(seconds=2)
        monitor.record_bot_response("C1:U1")
        monitor.sweep(start + timedelta(seconds=135))

        assert monitor.on_reminder.call_count == 1

    def test_closes_after_inactivity(self, dt_clock):
        monitor = _monitor(dt_clock)
        start = dt_clock.now
        monitor.record_user_message("C1:U1", "C1", "1700.1")
        monitor.record_bot_response("C1:U1")

        report = monitor.sweep(start + timedelta(minutes=2))

        assert report.closed == ["C1:U1"]
        assert monitor.active_thread_count() == 0
        monitor.on_close.assert_called_once_with("C1:U1", "C1", "1700.1")

    def test_closes_even_when_bot_failed(self, dt_clock):
        monitor = _monitor(dt_clock)
        start = dt_clock.now
        monitor.record_user_message("C1:U1", "C1", None)
        monitor.record_bot_error("C1:U1")

        assert monitor.sweep(start + timedelta(seconds=90)).reminded == []
        assert monitor.sweep(start + timedelta(minutes=2)).closed == ["C1:U1"]

    def test_callbacks_skipped_without_channel(self, dt_clock):
        monitor = _monitor(dt_clock)
        start = dt_clock.now
        monitor.record_user_message("C1:U1", None, None)
        dt_clock.advance(seconds=1)
        monitor.record_bot_response("C1:U1")

        monitor.sweep(start + timedelta(seconds=61))
        monitor.sweep(start + timedelta(minutes=3))

        monitor.on_reminder.assert_not_called()
        monitor.on_close.assert_not_called()
        assert monitor.active_thread_count() == 0

    def test_callback_failure_does_not_escape(self, dt_clock):
        monitor = _monitor(dt_clock, on_close=Mock(side_effect=RuntimeError("slack down")))
        start = dt_clock.now
        monitor.record_user_message("C1:U1", "C1", None)
        monitor.record_bot_response("C1:U1")

        report = monitor.sweep(start + timedelta(minutes=3))

        assert report.closed == ["C1:U1"]
        assert monitor.active_thread_count() == 0

    def test_new_message_after_close_starts_new_session(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)
        first = monitor.get_thread_info("C1:U1").session_id
        monitor.record_bot_response("C1:U1")
        monitor.sweep(dt_clock.advance(minutes=3))

        monitor.record_user_message("C1:U1", "C1", None)

        info = monitor.get_thread_info("C1:U1")
        assert info.session_id != first
        assert info.reminder_count == 0


class TestCloseThread:
    def test_explicit_close_invokes_callback(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)

        assert monitor.close_thread("C1:U1") is True
        assert monitor.close_thread("C1:U1") is False
        monitor.on_close.assert_called_once_with("C1:U1", "C1", None)

    def test_snapshot_includes_state(self, dt_clock):
        monitor = _monitor(dt_clock)
        monitor.record_user_message("C1:U1", "C1", None)

        snapshot = monitor.snapshot()

        assert snapshot[0]["thread_key"] == "C1:U1"
        assert snapshot[0]["state"] == "awaiting_bot"
