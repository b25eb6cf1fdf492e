from datetime import datetime, timedelta, timezone

import pytest

from assistant.services.reminder_service import ThreadActivity
from assistant.services.state_machine import (
    InvalidTransitionError,
    SweepAction,
    ThreadState,
    can_transition,
    current_state,
    evaluate,
    transition,
)

T0 = datetime(2025, 2, 23, 9, 0, tzinfo=timezone.utc)
REMIND = timedelta(minutes=1)
CLOSE = timedelta(minutes=2)


def _activity(**kwargs) -> ThreadActivity:
    return ThreadActivity(thread_key="C1:U1", last_user_time=T0, channel_id="C1", **kwargs)


class TestTransitions:
    def test_bot_reply_moves_to_awaiting_user(self):
        assert transition(ThreadState.AWAITING_BOT, ThreadState.AWAITING_USER) == ThreadState.AWAITING_USER

    def test_reminder_from_awaiting_user(self):
        assert transition(ThreadState.AWAITING_USER, ThreadState.REMINDED) == ThreadState.REMINDED

    def test_closed_thread_reopens_on_user_message(self):
        assert can_transition(ThreadState.CLOSED, ThreadState.AWAITING_BOT) is True

    def test_cannot_remind_twice(self):
        with pytest.raises(InvalidTransitionError):
            transition(ThreadState.REMINDED, ThreadState.REMINDED)

    def test_cannot_remind_while_awaiting_bot(self):
        assert can_transition(ThreadState.AWAITING_BOT, ThreadState.REMINDED) is False


class TestCurrentState:
    def test_missing_record_is_closed(self):
        assert current_state(None) == ThreadState.CLOSED

    def test_processing_is_awaiting_bot(self):
        assert current_state(_activity(processing=True)) == ThreadState.AWAITING_BOT

    def test_bot_replied_last(self):
        activity = _activity(last_bot_time=T0 + timedelta(seconds=5))
        assert current_state(activity) == ThreadState.AWAITING_USER

    def test_reminded(self):
        activity = _activity(last_bot_time=T0 + timedelta(seconds=5), reminder_count=1)
        assert current_state(activity) == ThreadState.REMINDED


class TestEvaluate:
    def test_processing_is_skipped_even_when_past_closure(self):
        activity = _activity(processing=True)
        assert evaluate(activity, T0 + timedelta(minutes=10), REMIND, CLOSE) == SweepAction.SKIP

    def test_closure_checked_before_reminder(self):
        activity = _activity(last_bot_time=T0 + timedelta(seconds=5))
        assert evaluate(activity, T0 + CLOSE, REMIND, CLOSE) == SweepAction.CLOSE

    def test_reminder_after_threshold(self):
        activity = _activity(last_bot_time=T0 + timedelta(seconds=5))
        assert evaluate(activity, T0 + timedelta(seconds=59), REMIND, CLOSE) == SweepAction.NONE
        assert evaluate(activity, T0 + REMIND, REMIND, CLOSE) == SweepAction.REMIND

    def test_no_reminder_once_reminded(self):
        activity = _activity(last_bot_time=T0 + timedelta(seconds=5), reminder_count=1)
        assert evaluate(activity, T0 + timedelta(seconds=90), REMIND, CLOSE) == SweepAction.NONE

    def test_no_reminder_when_bot_never_replied(self):
        assert evaluate(_activity(), T0 + timedelta(seconds=90), REMIND, CLOSE) == SweepAction.NONE

    def test_bot_time_equal_to_user_time_is_not_bot_last(self):
        activity = _activity(last_bot_time=T0)
        assert evaluate(activity, T0 + timedelta(seconds=90), REMIND, CLOSE) == SweepAction.NONE
