from typing import List, Optional

import httpx

from assistant.logging_config import get_logger
from assistant.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")

DEFAULT_TIMEOUT_SECONDS = 60.0


class OpenAIProviderError(Exception):
    """Non-200 answer from the API. 429 and 5xx are worth retrying."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        super().__init__(f"OpenAI API error: {status_code} - {body[:300]}")


def _extract_content(data: dict) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


class OpenAIProvider(LLMProvider):
    """Chat completions endpoint, one short-lived httpx client per call."""

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini", base_url: str = "https://api.openai.com/v1"):
        self.api_key = api_key
        self.default_model = default_model
        self.completions_url = f"{base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        payload = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        timeout = timeout_seconds if timeout_seconds is not None else DEFAULT_TIMEOUT_SECONDS

        with httpx.Client(timeout=timeout) as client:
            response = client.post(self.completions_url, headers=self._headers(), json=payload)

        if response.status_code != 200:
            logger.error(
                "OpenAI request rejected",
                extra={"context": {"status": response.status_code, "model": payload["model"]}},
            )
            raise OpenAIProviderError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise OpenAIProviderError(502, f"invalid JSON body: {e}") from e

        content = _extract_content(data)
        if not content:
            logger.warning(f"OpenAI returned empty content: model={payload['model']}")
        return LLMResponse(content=content, model=data.get("model", payload["model"]), usage=data.get("usage"))
