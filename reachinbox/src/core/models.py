"""Domain models for the suggested-reply pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class KnowledgeSnippet:
    """A seeded product-knowledge entry as stored in the vector index."""

    id: int | str
    text: str
    category: str
    embedding: tuple[float, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class RetrievedContext:
    """A knowledge snippet paired with its cosine similarity to a query."""

    text: str
    category: str
    score: float


@dataclass(frozen=True)
class RAGResult:
    """Outcome of one suggested-reply run."""

    suggested_reply: str
    retrieved_context: tuple[RetrievedContext, ...]
    confidence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggestedReply": self.suggested_reply,
            "retrievedContext": [{"text": c.text, "category": c.category, "score": c.score} for c in self.retrieved_context],
            "confidence": self.confidence,
        }
