from assistant.services.llm.base import LLMProvider, LLMResponse
from assistant.services.llm.openai_provider import OpenAIProvider, OpenAIProviderError

__all__ = ["LLMProvider", "LLMResponse", "OpenAIProvider", "OpenAIProviderError"]
