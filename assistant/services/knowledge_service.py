import json
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from assistant.logging_config import get_logger
from assistant.services.result import RetrievalResult

logger = get_logger("knowledge_service")

TOP_N = 3
_TOKEN_SPLIT = re.compile(r"[\s!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~]+")


class KnowledgeDocument(BaseModel):
    id: str
    title: str
    content: str
    keywords: list[str] = Field(default_factory=list)


def tokenize(text: str) -> set[str]:
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if token}


def score_document(document: KnowledgeDocument, query: str, query_tokens: Optional[set[str]] = None) -> float:
    """Matched keywords / query tokens, capped at 1.0.

    A keyword counts once for an exact token match; multi-word keywords also
    count when they appear as a substring of the query.
    """
    query_lower = query.lower()
    if query_tokens is None:
        query_tokens = tokenize(query_lower)
    token_matches = sum(1 for kw in document.keywords if kw.lower() in query_tokens)
    phrase_matches = sum(1 for kw in document.keywords if " " in kw and kw.lower() in query_lower)
    score = (token_matches + phrase_matches) / max(len(query_tokens), 1)
    return min(score, 1.0)


class KnowledgeBase:
    """Keyword scorer over per-product document lists."""

    def __init__(self, documents: Optional[dict[str, List[KnowledgeDocument]]] = None, top_n: int = TOP_N):
        self._documents = documents or {}
        self.top_n = top_n

    @classmethod
    def from_router(cls, router) -> "KnowledgeBase":
        documents: dict[str, List[KnowledgeDocument]] = {}
        for route_id in router.products:
            path = router.knowledge_path(route_id)
            if path is None:
                logger.warning(f"No knowledge file configured for product={route_id}")
                documents[route_id] = []
                continue
            documents[route_id] = load_documents(path)
        return cls(documents)

    def query(self, route_id: str, text: str) -> List[RetrievalResult]:
        documents = self._documents.get(route_id, [])
        if not documents:
            logger.info(f"No knowledge documents for product={route_id}")
            return []

        query_tokens = tokenize(text)
        scored = []
        for document in documents:
            relevance = score_document(document, text, query_tokens)
            if relevance > 0:
                scored.append(
                    RetrievalResult(
                        id=document.id,
                        title=document.title,
                        excerpt=document.content,
                        relevance=relevance,
                    )
                )
        scored.sort(key=lambda r: r.relevance, reverse=True)
        results = scored[: self.top_n]

        logger.info(
            f"Knowledge search: found {len(results)} results for '{text[:30]}...'",
            extra={"context": {"product": route_id, "scores": [round(r.relevance, 2) for r in results]}},
        )
        return results


def load_documents(path: Path) -> List[KnowledgeDocument]:
    try:
        with path.open(encoding="utf-8") as f:
            entries = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load knowledge documents from {path}: {e}")
        return []
    documents = [KnowledgeDocument.model_validate(entry) for entry in entries]
    logger.info(f"Loaded {len(documents)} knowledge documents from {path.name}")
    return documents


def format_knowledge_context(results: List[RetrievalResult]) -> str:
    """Format knowledge search results for LLM context."""
    if not results:
        return ""

    context_parts = ["=== Relevant Documentation ==="]
    for r in results:
        context_parts.append(f"Title: {r.title}\nContent: {r.excerpt}\n")

    return "\n".join(context_parts)
