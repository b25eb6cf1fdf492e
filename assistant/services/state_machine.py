from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from assistant.services.reminder_service import ThreadActivity


class ThreadState(str, Enum):
    AWAITING_BOT = "awaiting_bot"
    AWAITING_USER = "awaiting_user"
    REMINDED = "reminded"
    CLOSED = "closed"


class SweepAction(str, Enum):
    SKIP = "skip"
    CLOSE = "close"
    REMIND = "remind"
    NONE = "none"


VALID_TRANSITIONS = {
    ThreadState.AWAITING_BOT: [ThreadState.AWAITING_BOT, ThreadState.AWAITING_USER, ThreadState.CLOSED],
    ThreadState.AWAITING_USER: [ThreadState.AWAITING_BOT, ThreadState.REMINDED, ThreadState.CLOSED],
    ThreadState.REMINDED: [ThreadState.AWAITING_BOT, ThreadState.CLOSED],
    ThreadState.CLOSED: [ThreadState.AWAITING_BOT],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: ThreadState, to_state: ThreadState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: ThreadState, to_state: ThreadState) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: ThreadState, to_state: ThreadState) -> ThreadState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def bot_was_last(activity: "ThreadActivity") -> bool:
    return activity.last_bot_time is not None and activity.last_bot_time > activity.last_user_time


def current_state(activity: Optional["ThreadActivity"]) -> ThreadState:
    """Derive the lifecycle state from a thread's activity record (None means closed)."""
    if activity is None:
        return ThreadState.CLOSED
    if activity.processing or not bot_was_last(activity):
        return ThreadState.AWAITING_BOT
    if activity.reminder_count > 0:
        return ThreadState.REMINDED
    return ThreadState.AWAITING_USER


def evaluate(
    activity: "ThreadActivity",
    now: datetime,
    reminder_threshold: timedelta,
    closure_threshold: timedelta,
) -> SweepAction:
    """Decide what a sweep should do with one thread. Closure is checked before reminder."""
    if activity.processing:
        return SweepAction.SKIP

    inactivity = now - activity.last_user_time
    if inactivity >= closure_threshold:
        return SweepAction.CLOSE

    if bot_was_last(activity) and inactivity >= reminder_threshold and activity.reminder_count == 0:
        return SweepAction.REMIND
    return SweepAction.NONE
