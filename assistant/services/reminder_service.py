"""Thread activity tracking with idle reminders and auto-closure.

Only timestamps are tracked, never message content. A periodic sweep applies
the closure rule first, then the reminder rule, to every thread that is not
currently being processed.
"""

import threading
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from assistant.logging_config import get_logger
from assistant.services.state_machine import SweepAction, ThreadState, current_state, evaluate

logger = get_logger("reminder_service")

# (thread_key, channel_id, reply_target)
ThreadCallback = Callable[[str, str, Optional[str]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ThreadActivity:
    thread_key: str
    last_user_time: datetime
    channel_id: Optional[str] = None
    reply_target: Optional[str] = None
    last_bot_time: Optional[datetime] = None
    reminder_count: int = 0
    processing: bool = False
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def state(self) -> ThreadState:
        return current_state(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass
class SweepReport:
    checked: int = 0
    skipped: list[str] = field(default_factory=list)
    reminded: list[str] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)


class ActivityMonitor:
    def __init__(
        self,
        reminder_threshold: timedelta = timedelta(minutes=1),
        closure_threshold: timedelta = timedelta(minutes=2),
        on_reminder: Optional[ThreadCallback] = None,
        on_close: Optional[ThreadCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.reminder_threshold = reminder_threshold
        self.closure_threshold = closure_threshold
        self.on_reminder = on_reminder
        self.on_close = on_close
        self._clock = clock
        self._threads: dict[str, ThreadActivity] = {}
        self._lock = threading.Lock()

    def record_user_message(self, thread_key: str, channel_id: Optional[str], reply_target: Optional[str]) -> None:
        if not thread_key or not thread_key.strip():
            logger.warning("record_user_message called with blank thread key, skipping")
            return
        with self._lock:
            now = self._clock()
            activity = self._threads.get(thread_key)
            if activity is None:
                activity = ThreadActivity(thread_key=thread_key, last_user_time=now)
                self._threads[thread_key] = activity
                logger.info(
                    "New thread tracked",
                    extra={"context": {"thread_key": thread_key, "session_id": activity.session_id}},
                )
            activity.last_user_time = now
            activity.channel_id = channel_id
            activity.reply_target = reply_target
            activity.processing = True
        logger.debug(f"User activity: thread_key={thread_key} processing=True")

    def record_bot_response(self, thread_key: str) -> None:
        with self._lock:
            activity = self._threads.get(thread_key)
            if activity is not None:
                activity.last_bot_time = self._clock()
                activity.processing = False
        if activity is None:
            logger.warning(f"No tracked thread for bot response: thread_key={thread_key}")
        else:
            logger.debug(f"Bot activity: thread_key={thread_key} processing=False")

    def record_bot_error(self, thread_key: str) -> None:
        with self._lock:
            activity = self._threads.get(thread_key)
            if activity is not None:
                activity.processing = False
        if activity is not None:
            logger.warning(f"Bot error, clearing processing flag: thread_key={thread_key}")

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        report = SweepReport()
        to_remind: list[ThreadActivity] = []
        to_close: list[ThreadActivity] = []

        with self._lock:
            now = self._clock() if now is None else now
            for thread_key, activity in list(self._threads.items()):
                report.checked += 1
                action = evaluate(activity, now, self.reminder_threshold, self.closure_threshold)
                if action == SweepAction.SKIP:
                    report.skipped.append(thread_key)
                elif action == SweepAction.CLOSE:
                    del self._threads[thread_key]
                    to_close.append(activity)
                    report.closed.append(thread_key)
                elif action == SweepAction.REMIND and activity.channel_id:
                    # Claimed before the callback runs so a slow callback cannot be re-triggered.
                    activity.reminder_count += 1
                    to_remind.append(replace(activity))
                    report.reminded.append(thread_key)

        for activity in to_close:
            inactivity = now - activity.last_user_time
            logger.info(
                "Closing inactive thread",
                extra={
                    "context": {
                        "thread_key": activity.thread_key,
                        "session_id": activity.session_id,
                        "inactive_seconds": int(inactivity.total_seconds()),
                    }
                },
            )
            self._invoke(self.on_close, activity, "close")
        for activity in to_remind:
            logger.info(f"Sending reminder: thread_key={activity.thread_key}")
            self._invoke(self.on_reminder, activity, "reminder")

        if report.checked:
            logger.debug(
                f"Activity sweep: checked={report.checked} skipped={len(report.skipped)} "
                f"reminded={len(report.reminded)} closed={len(report.closed)} remaining={self.active_thread_count()}"
            )
        return report

    def close_thread(self, thread_key: str) -> bool:
        with self._lock:
            activity = self._threads.pop(thread_key, None)
        if activity is None:
            return False
        logger.info(f"Thread closed: thread_key={thread_key} session_id={activity.session_id}")
        self._invoke(self.on_close, activity, "close")
        return True

    def _invoke(self, callback: Optional[ThreadCallback], activity: ThreadActivity, kind: str) -> None:
        if callback is None or not activity.channel_id:
            return
        try:
            callback(activity.thread_key, activity.channel_id, activity.reply_target)
        except Exception as e:
            logger.error(f"{kind} callback failed for thread {activity.thread_key}: {e}")

    def get_thread_info(self, thread_key: str) -> Optional[ThreadActivity]:
        with self._lock:
            activity = self._threads.get(thread_key)
            return replace(activity) if activity is not None else None

    def active_thread_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def snapshot(self) -> list[dict]:
        with self._lock:
            activities = [replace(activity) for activity in self._threads.values()]
        return [activity.to_dict() for activity in activities]
