import json
from typing import List, Optional

from assistant.logging_config import get_logger
from assistant.services.ai_service import LLMClient
from assistant.services.knowledge_service import format_knowledge_context
from assistant.services.result import ApiCallResult, RetrievalResult

logger = get_logger("synthesis_service")

SYSTEM_PROMPT = """You are an expert enterprise support assistant.
You receive: a user's support query, live diagnostic data from product systems, and documentation.

Guidelines:
- Be concise but complete. Slack messages should be easy to read.
- Use numbered steps for remediation actions.
- Mention ticket IDs, user IDs, or status values from the live data.
- If the data shows a problem, explain what it means and how to fix it.
- Do NOT mention "RAG", "LLM", or "API call"; speak naturally.
- End with a friendly offer to help further.
- Use plain Slack Markdown: *bold*, _italic_, numbered lists.
- Maximum 400 words."""

MAX_HISTORY_TURNS = 6


def build_user_prompt(
    query: str,
    actions: List[ApiCallResult],
    snippets: List[RetrievalResult],
    history: Optional[List[dict]] = None,
) -> str:
    parts = []
    if history:
        lines = [f"{turn['role']}: {turn['content']}" for turn in history[-MAX_HISTORY_TURNS:]]
        parts.append("=== Conversation History ===\n" + "\n".join(lines) + "\n")

    parts.append(f"=== User Query ===\n{query}\n")

    if actions:
        lines = ["=== Live API Data ==="]
        for action in actions:
            lines.append(f"API: {action.source} | Success: {str(action.success).lower()}")
            if action.success:
                lines.append(f"Data: {json.dumps(action.payload, indent=2, ensure_ascii=False, default=str)}")
            else:
                lines.append(f"Error: {action.error_message}")
            lines.append("")
        parts.append("\n".join(lines))

    knowledge = format_knowledge_context(snippets)
    if knowledge:
        parts.append(knowledge)

    parts.append("=== Task ===\nWrite a helpful Slack response for the user.")
    return "\n".join(parts)


def build_fallback_text(actions: List[ApiCallResult], snippets: List[RetrievalResult]) -> str:
    """Deterministic answer assembled from raw data when the LLM is unavailable."""
    text = ":warning: *AI synthesis is temporarily unavailable.*\n\n"
    text += "Here's the raw data from our systems:\n\n"

    if actions:
        text += "*API Results:*\n"
        for action in actions:
            status = "✓ Data retrieved" if action.success else f"✗ {action.error_message}"
            text += f"• `{action.source}`: {status}\n"
        text += "\n"

    if snippets:
        text += "*Relevant Documentation:*\n"
        for snippet in snippets:
            text += f"• _{snippet.title}_\n"
        text += "\n"

    text += "Please try again in a few minutes, or contact support directly."
    return text


class AnswerSynthesizer:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def synthesize(
        self,
        query: str,
        actions: List[ApiCallResult],
        snippets: List[RetrievalResult],
        history: Optional[List[dict]] = None,
    ) -> str:
        """Never raises: an unavailable LLM yields the raw-data fallback text."""
        user_prompt = build_user_prompt(query, actions, snippets, history)
        result = self.llm.try_infer(SYSTEM_PROMPT, user_prompt, stage="synthesis")
        if not result.ok or not (result.value or "").strip():
            logger.error(f"Synthesis unavailable, using raw-data fallback: {result.error or 'empty response'}")
            return build_fallback_text(actions, snippets)
        logger.info(f"Synthesis complete: {len(result.value)} chars")
        return result.value.strip()
