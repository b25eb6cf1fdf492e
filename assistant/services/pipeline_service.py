"""Request resolution pipeline.

route -> intent -> cache check -> intent mapping -> parallel actions + retrieval
-> synthesis -> cache + deliver. Every terminal state delivers exactly one
(possibly split) message, and `run` never raises.
"""

import time
from concurrent.futures import Executor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from assistant.logging_config import LoggerAdapter, get_logger
from assistant.services.alert_service import alert_error
from assistant.services.result import ApiCallResult, IntentResult, RetrievalResult
from assistant.services.routing_service import IntentNotFoundError, RouteNotFoundError

logger = get_logger("pipeline_service")

ROUTE_NOT_FOUND_TEXT = (
    ":warning: This channel is not configured for any product. "
    "Please contact your administrator to set up the channel-to-product mapping."
)
INTENT_NOT_FOUND_TEXT = (
    ":thinking_face: I couldn't match your request to a known action for {route_id}. Could you provide more detail?"
)
GENERIC_ERROR_TEXT = (
    ":warning: I encountered an issue processing your request. "
    "Please try rephrasing, or contact your administrator."
)
BUSY_TEXT = ":hourglass_flowing_sand: I'm handling a lot of requests right now. Please try again in a moment."


class PipelineStatus(str, Enum):
    ROUTE_NOT_FOUND = "route_not_found"
    INTENT_NOT_FOUND = "intent_not_found"
    CACHE_HIT = "cache_hit"
    ANSWERED = "answered"
    ERROR = "error"


@dataclass(frozen=True)
class PipelineRequest:
    thread_key: str
    subject_id: str
    channel_id: str
    text: str
    reply_target: Optional[str] = None
    channel_name: Optional[str] = None


@dataclass
class PipelineOutcome:
    status: PipelineStatus
    text: str
    delivered: bool
    route_id: Optional[str] = None
    intent: Optional[IntentResult] = None
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.delivered and self.status != PipelineStatus.ERROR


class PipelineOrchestrator:
    def __init__(
        self,
        router,
        intent_detector,
        cache,
        actions,
        knowledge,
        synthesizer,
        transport,
        conversations,
        fanout_executor: Executor,
        alerter: Callable[[str, Optional[dict]], bool] = alert_error,
    ):
        self.router = router
        self.intent_detector = intent_detector
        self.cache = cache
        self.actions = actions
        self.knowledge = knowledge
        self.synthesizer = synthesizer
        self.transport = transport
        self.conversations = conversations
        self.fanout_executor = fanout_executor
        self.alerter = alerter

    def run(self, request: PipelineRequest) -> PipelineOutcome:
        log = LoggerAdapter(logger, {"thread_key": request.thread_key, "subject": request.subject_id})
        start = time.monotonic()
        try:
            outcome = self._run(request, log)
        except Exception as e:
            log.exception(f"Pipeline error: {e}", context={"channel_id": request.channel_id})
            try:
                self.alerter("Pipeline failed", {"thread_key": request.thread_key, "error": str(e)})
            except Exception as alert_exc:
                log.warning(f"Alert failed: {alert_exc}")
            try:
                outcome = self._finish(request, PipelineStatus.ERROR, GENERIC_ERROR_TEXT)
            except Exception as deliver_exc:
                log.error(f"Error fallback delivery failed: {deliver_exc}")
                outcome = PipelineOutcome(status=PipelineStatus.ERROR, text=GENERIC_ERROR_TEXT, delivered=False)
        outcome.elapsed_ms = round((time.monotonic() - start) * 1000, 2)
        log.info(
            f"Pipeline end: {outcome.status.value}",
            context={"elapsed_ms": outcome.elapsed_ms, "route_id": outcome.route_id, "delivered": outcome.delivered},
        )
        return outcome

    def _run(self, request: PipelineRequest, log: LoggerAdapter) -> PipelineOutcome:
        # 1. Route
        channel_name = request.channel_name or self.transport.resolve_channel_name(request.channel_id)
        try:
            route_id = self.router.resolve_route(channel_name)
        except RouteNotFoundError:
            log.warning(f"Route not found for channel={channel_name}")
            return self._finish(request, PipelineStatus.ROUTE_NOT_FOUND, ROUTE_NOT_FOUND_TEXT)
        log.info(f"Route resolved: channel={channel_name} -> {route_id}")

        # 2. Intent
        intent = self.intent_detector.detect(request.text, route_id)
        if intent.degraded:
            log.warning(f"Intent degraded: {intent.name}", context={"parameters": intent.parameters})

        # 3. Cache
        cache_key = self.cache.build_key(request.subject_id, f"{route_id}:{intent.name}")
        cached = self.cache.get(cache_key)
        if cached is not None:
            return self._finish(request, PipelineStatus.CACHE_HIT, cached, route_id, intent)

        # 4. Intent -> actions
        try:
            action_names = self.router.map_intent(route_id, intent.name)
        except IntentNotFoundError as e:
            log.warning(str(e))
            text = INTENT_NOT_FOUND_TEXT.format(route_id=route_id)
            return self._finish(request, PipelineStatus.INTENT_NOT_FOUND, text, route_id, intent)
        log.info(f"Intent mapped: {intent.name} -> {action_names}")

        # 5. Parallel fan-out
        action_results, snippets = self._fan_out(route_id, action_names, intent, request.text, log)

        # 6. Synthesis
        history = self.conversations.get_history(request.thread_key)
        answer = self.synthesizer.synthesize(request.text, action_results, snippets, history)

        # 7. Cache + deliver
        self.cache.put(cache_key, answer)
        return self._finish(request, PipelineStatus.ANSWERED, answer, route_id, intent)

    def _fan_out(
        self,
        route_id: str,
        action_names: List[str],
        intent: IntentResult,
        text: str,
        log: LoggerAdapter,
    ) -> tuple[List[ApiCallResult], List[RetrievalResult]]:
        start = time.monotonic()
        action_future = self.fanout_executor.submit(self.actions.invoke_all, route_id, action_names, intent.parameters)
        retrieval_future = self.fanout_executor.submit(self.knowledge.query, route_id, text)
        wait([action_future, retrieval_future])

        try:
            action_results = action_future.result()
        except Exception as e:
            log.warning(f"Action branch failed: {e}")
            action_results = [ApiCallResult.failed(name, f"Service temporarily unavailable: {e}") for name in action_names]

        try:
            snippets = retrieval_future.result()
        except Exception as e:
            log.warning(f"Retrieval branch failed: {e}")
            snippets = []

        log.info(
            "Fan-out complete",
            context={
                "actions": len(action_results),
                "snippets": len(snippets),
                "elapsed_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return action_results, snippets

    def _finish(
        self,
        request: PipelineRequest,
        status: PipelineStatus,
        text: str,
        route_id: Optional[str] = None,
        intent: Optional[IntentResult] = None,
    ) -> PipelineOutcome:
        delivered = self.transport.deliver(request.channel_id, text, request.reply_target)
        if delivered:
            self.conversations.add_message(request.thread_key, "assistant", text)
        return PipelineOutcome(status=status, text=text, delivered=delivered, route_id=route_id, intent=intent)
