import json
import re

from assistant.logging_config import get_logger
from assistant.services.ai_service import LLMClient
from assistant.services.result import IntentResult

logger = get_logger("intent_service")

UNKNOWN_INTENT = "unknown"
SERVICE_UNAVAILABLE_INTENT = "service_unavailable"

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")


def build_intent_prompt(route_id: str, description: str, known_intents: list[str]) -> str:
    intent_list = "\n".join(f"  - {intent}" for intent in known_intents)
    return (
        f"You are an enterprise support assistant for {route_id.upper()}.\n"
        f"{description}\n\n"
        "Classify the user's message into exactly one intent from:\n\n"
        f"{intent_list}\n\n"
        "Rules:\n"
        "1. Choose the single best-matching intent.\n"
        "2. Extract parameters (ticketId, userId, priority, etc.) if mentioned.\n"
        "3. Respond ONLY with valid JSON, no markdown, no explanation:\n"
        '   {"intentName": "<intent>", "parameters": {"<key>": "<value>"}}'
    )


def parse_intent_response(raw: str) -> IntentResult:
    """Parse the LLM's JSON answer. Anything unparsable is the unknown intent."""
    cleaned = (raw or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned, count=1)).strip()
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.warning(f"Failed to parse intent response: {raw[:200] if raw else 'EMPTY'}")
        return IntentResult(UNKNOWN_INTENT)
    if not isinstance(data, dict):
        return IntentResult(UNKNOWN_INTENT)

    name = data.get("intentName")
    if not isinstance(name, str) or not name.strip():
        return IntentResult(UNKNOWN_INTENT)
    params = data.get("parameters")
    parameters = {str(k): str(v) for k, v in params.items()} if isinstance(params, dict) else {}
    return IntentResult(name.strip(), parameters)


class IntentDetector:
    def __init__(self, llm: LLMClient, router):
        self.llm = llm
        self.router = router

    def detect(self, text: str, route_id: str) -> IntentResult:
        """Classify text against the route's known intents. Never raises."""
        intents = [name for name in self.router.known_intents(route_id) if name != SERVICE_UNAVAILABLE_INTENT]
        system_prompt = build_intent_prompt(route_id, self.router.describe(route_id), intents)
        result = self.llm.try_infer(system_prompt, f"User message: {text}", stage="intent")
        if not result.ok:
            logger.error(f"Intent detection unavailable: product={route_id} error={result.error}")
            return IntentResult(
                SERVICE_UNAVAILABLE_INTENT,
                {"reason": "LLM service temporarily unavailable", "fallback": "true"},
            )

        intent = parse_intent_response(result.value)
        logger.info(
            f"Intent detected: {intent.name}",
            extra={"context": {"product": route_id, "parameters": intent.parameters}},
        )
        return intent
