from assistant.services.cache_service import ResponseCache
from assistant.services.conversation_service import ConversationStore, generate_thread_key
from assistant.services.debounce_service import MessageDebouncer, SettleContext
from assistant.services.dedup_service import Deduplicator
from assistant.services.reminder_service import ActivityMonitor, ThreadActivity
from assistant.services.state_machine import (
    InvalidTransitionError,
    SweepAction,
    ThreadState,
    can_transition,
    current_state,
    transition,
)
