"""Process-wide wiring of the assistant components and their background tasks."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from assistant.config import Settings, settings as default_settings
from assistant.logging_config import get_logger
from assistant.services.action_service import ActionGateway
from assistant.services.ai_service import LLMClient
from assistant.services.cache_service import ResponseCache
from assistant.services.circuit_breaker import CircuitBreaker
from assistant.services.conversation_service import ConversationStore
from assistant.services.debounce_service import MessageDebouncer
from assistant.services.dedup_service import Deduplicator
from assistant.services.ingest_service import EventIngestor
from assistant.services.intent_service import IntentDetector
from assistant.services.knowledge_service import KnowledgeBase
from assistant.services.kv_store import build_store
from assistant.services.llm import LLMProvider, OpenAIProvider
from assistant.services.pipeline_service import PipelineOrchestrator
from assistant.services.reminder_service import ActivityMonitor
from assistant.services.routing_service import ProductRouter
from assistant.services.scheduler import PeriodicTask
from assistant.services.slack_service import SlackService
from assistant.services.synthesis_service import AnswerSynthesizer
from assistant.services.worker_pool import BoundedExecutor

logger = get_logger("runtime")

REMINDER_TEXT = (
    ":wave: Just checking in. Is there anything else I can help you with? "
    "This conversation will close automatically if there's no reply."
)
CLOSURE_TEXT = (
    ":white_check_mark: Closing this conversation due to inactivity. "
    "Send a new message anytime if you need more help."
)


@dataclass
class Runtime:
    settings: Settings
    transport: SlackService
    dedup: Deduplicator
    cache: ResponseCache
    debouncer: MessageDebouncer
    conversations: ConversationStore
    activity: ActivityMonitor
    router: ProductRouter
    pipeline: PipelineOrchestrator
    ingestor: EventIngestor
    worker_pool: BoundedExecutor
    fanout_executor: ThreadPoolExecutor
    tasks: list[PeriodicTask] = field(default_factory=list)
    started: bool = False

    def start(self) -> None:
        if self.started:
            return
        if self.settings.background_tasks_enabled:
            for task in self.tasks:
                task.start()
        self.started = True
        logger.info(
            "Runtime started",
            extra={
                "context": {
                    "dedup_backend": self.dedup.store.name,
                    "cache_backend": self.cache.store.name,
                    "background_tasks": self.settings.background_tasks_enabled,
                }
            },
        )

    def stop(self) -> None:
        for task in self.tasks:
            task.stop()
        self.debouncer.shutdown()
        self.worker_pool.shutdown(wait=True)
        self.fanout_executor.shutdown(wait=True)
        self.started = False
        logger.info("Runtime stopped")


def build_runtime(
    config: Optional[Settings] = None,
    *,
    transport: Optional[SlackService] = None,
    llm_provider: Optional[LLMProvider] = None,
) -> Runtime:
    config = config or default_settings
    transport = transport or SlackService(config.slack_bot_token, max_message_chars=config.slack_max_message_chars)
    if llm_provider is None and config.openai_api_key:
        llm_provider = OpenAIProvider(api_key=config.openai_api_key, default_model=config.openai_model)

    dedup = Deduplicator(
        build_store(
            label="dedup",
            redis_url=config.redis_url,
            socket_timeout_seconds=config.redis_socket_timeout_seconds,
            local_capacity=config.dedup_local_capacity,
        ),
        ttl_seconds=config.dedup_ttl_seconds,
    )
    cache = ResponseCache(
        build_store(
            label="cache",
            redis_url=config.redis_url,
            socket_timeout_seconds=config.redis_socket_timeout_seconds,
            local_capacity=config.cache_local_capacity,
        ),
        ttl_seconds=config.cache_ttl_seconds,
    )
    conversations = ConversationStore(
        max_turns=config.history_max_turns,
        stale_after_seconds=config.conversation_stale_seconds,
    )

    def post_reminder(thread_key: str, channel_id: str, reply_target: Optional[str]) -> None:
        transport.deliver(channel_id, REMINDER_TEXT, reply_target)

    def post_closure(thread_key: str, channel_id: str, reply_target: Optional[str]) -> None:
        conversations.close_conversation(thread_key)
        transport.deliver(channel_id, CLOSURE_TEXT, reply_target)

    activity = ActivityMonitor(
        reminder_threshold=timedelta(minutes=config.reminder_threshold_minutes),
        closure_threshold=timedelta(minutes=config.closure_threshold_minutes),
        on_reminder=post_reminder,
        on_close=post_closure,
    )

    router = ProductRouter.from_file(config.products_file)
    llm = LLMClient(
        llm_provider,
        breaker=CircuitBreaker(config.llm_breaker_failures, config.llm_breaker_recovery_seconds),
        max_retries=config.llm_max_retries,
        backoff_seconds=config.llm_retry_backoff_seconds,
        timeout_seconds=config.llm_timeout_seconds,
        model=config.openai_model,
    )
    actions = ActionGateway(
        delay_ms=config.mock_api_delay_ms,
        delay_overrides={
            product_id: definition.mock_delay_ms
            for product_id, definition in router.products.items()
            if definition.mock_delay_ms is not None
        },
    )
    fanout_executor = ThreadPoolExecutor(max_workers=config.fanout_max_threads, thread_name_prefix="fanout")
    pipeline = PipelineOrchestrator(
        router=router,
        intent_detector=IntentDetector(llm, router),
        cache=cache,
        actions=actions,
        knowledge=KnowledgeBase.from_router(router),
        synthesizer=AnswerSynthesizer(llm),
        transport=transport,
        conversations=conversations,
        fanout_executor=fanout_executor,
    )
    worker_pool = BoundedExecutor(
        max_workers=config.worker_max_threads,
        max_pending=config.worker_max_pending,
        submit_timeout=config.worker_submit_timeout_seconds,
        name="pipeline",
    )
    debouncer = MessageDebouncer(delay_seconds=config.debounce_seconds)
    ingestor = EventIngestor(
        dedup=dedup,
        activity=activity,
        debouncer=debouncer,
        conversations=conversations,
        pipeline=pipeline,
        worker_pool=worker_pool,
        transport=transport,
    )
    tasks = [
        PeriodicTask("activity-sweep", config.activity_sweep_seconds, activity.sweep),
        PeriodicTask("conversation-sweep", config.conversation_sweep_seconds, conversations.sweep_stale),
    ]
    return Runtime(
        settings=config,
        transport=transport,
        dedup=dedup,
        cache=cache,
        debouncer=debouncer,
        conversations=conversations,
        activity=activity,
        router=router,
        pipeline=pipeline,
        ingestor=ingestor,
        worker_pool=worker_pool,
        fanout_executor=fanout_executor,
        tasks=tasks,
    )


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    """Get or create the process-wide runtime."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def current_runtime() -> Optional[Runtime]:
    return _runtime


def set_runtime(runtime: Optional[Runtime]) -> None:
    global _runtime
    _runtime = runtime
