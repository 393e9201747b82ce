"""
ReachInbox - Suggested-Reply RAG Engine
========================================
Retrieval-Augmented Generation of email replies grounded in the
product-knowledge base.

Architecture
------------
``ContextRetriever``
    Embeds the email text and asks the ``VectorIndex`` for the ``top_k``
    nearest knowledge snippets.  ``CollectionNotFoundError`` yields an empty
    result; every other failure is raised.

``ReplyGenerator``
    Assembles a grounded prompt (numbered context blocks, the original
    email, fixed instructions) and makes one call to the
    ``GenerativeModel``.

``RAGPipeline``
    Orchestrator.  Flow:
        1. Retrieve context (top-3 by default)
        2. Empty context → ``EmptyKnowledgeBaseError`` (never generate
           an ungrounded reply)
        3. Generate the reply
        4. Confidence = mean similarity score as a percentage
        5. Return ``RAGResult``

Every call re-embeds, re-searches and re-generates: there is no caching
and no retry.  Steps run strictly in order; each may be bounded by its
own timeout, and a ``threading.Event`` can cancel the run between steps.
Collaborators are injected, so a pipeline holds no per-request state and
can serve concurrent requests.

Usage:
    from reachinbox.src.core.rag_engine import build_pipeline
    pipeline = build_pipeline()
    result = pipeline.generate_suggested_reply(email_text)
"""

from __future__ import annotations

import math
import numbers
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

from reachinbox.config.prompt_templates import CONTEXT_BLOCK_TEMPLATE, REPLY_PROMPT_TEMPLATE
from reachinbox.config.settings import Settings, settings as default_settings
from reachinbox.src.core.exceptions import CollectionNotFoundError, ContextRetrievalError, EmbeddingError, EmptyKnowledgeBaseError, PipelineCancelledError, ReplyGenerationError
from reachinbox.src.core.llm import EmbeddingProvider, GenerativeModel
from reachinbox.src.core.models import RAGResult, RetrievedContext
from reachinbox.src.database.vector_store import VectorIndex
from reachinbox.src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TOP_K = 3
UNKNOWN_CATEGORY = "Unknown"


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════


def _call_with_timeout(func: Callable[..., T], timeout: float | None, *args: Any) -> T:
    """
    Run ``func(*args)``, raising ``TimeoutError`` after *timeout* seconds.

    With ``timeout=None`` the call runs inline.  On timeout the worker
    thread is abandoned, not interrupted; its result is discarded.
    """
    if timeout is None:
        return func(*args)

    pool = ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(func, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise TimeoutError(f"{getattr(func, '__name__', 'call')} timed out after {timeout:.1f}s") from exc
    finally:
        pool.shutdown(wait=False)


def validate_embedding(vector: Any, dimension: int | None = None) -> list[float]:
    """
    Return *vector* as a list of floats or raise ``EmbeddingError``.

    Rejects non-sequences, empty vectors, non-numeric or non-finite
    components, and (when *dimension* is given) vectors of another length.
    """
    if isinstance(vector, (str, bytes)):
        raise EmbeddingError("Embedding is not a vector: got text")
    if not isinstance(vector, Sequence):
        try:
            vector = list(vector)
        except TypeError as exc:
            raise EmbeddingError(f"Embedding is not a vector: {type(vector).__name__}") from exc

    if len(vector) == 0:
        raise EmbeddingError("Embedding provider returned an empty vector")
    if dimension is not None and len(vector) != dimension:
        raise EmbeddingError(f"Embedding has {len(vector)} dimensions, expected {dimension}")

    values: list[float] = []
    for component in vector:
        if isinstance(component, bool) or not isinstance(component, numbers.Real):
            raise EmbeddingError(f"Embedding contains a non-numeric component: {component!r}")
        if not math.isfinite(component):
            raise EmbeddingError("Embedding contains a non-finite component")
        values.append(float(component))
    return values


def compute_confidence(scores: Sequence[float]) -> int:
    """
    Mean similarity score as an integer percentage, rounded half-up and
    clamped to [0, 100].
    """
    if not scores:
        raise ValueError("confidence needs at least one score")
    mean = math.fsum(scores) / len(scores)
    return max(0, min(100, math.floor(mean * 100 + 0.5)))


def format_email_text(subject: str, sender: str, date: str, body: str) -> str:
    """Render a stored email as the pipeline's input text."""
    return f"Subject: {subject}\nFrom: {sender}\nDate: {date}\n\n{body}"


def build_prompt(original_email: str, context: Sequence[RetrievedContext]) -> str:
    """Compose the grounded reply prompt; context blocks keep their input order."""
    blocks = [CONTEXT_BLOCK_TEMPLATE.format(index=i, category=ctx.category, text=ctx.text) for i, ctx in enumerate(context, 1)]
    return REPLY_PROMPT_TEMPLATE.format(context="\n\n".join(blocks), email=original_email)


# ══════════════════════════════════════════════════════════════════════
#  CONTEXT RETRIEVER
# ══════════════════════════════════════════════════════════════════════


class ContextRetriever:
    """
    Fetch the knowledge snippets most relevant to a query text.

    Parameters
    ----------
    embedder
        ``EmbeddingProvider`` used to embed the query.
    index
        ``VectorIndex`` holding the knowledge collection.
    collection
        Name of the knowledge collection.
    dimension
        Expected embedding length; ``None`` skips the check.
    embed_timeout, search_timeout
        Per-step timeouts in seconds (``None`` = no pipeline-side limit).
    """

    __slots__ = ("_embedder", "_index", "_collection", "_dimension", "_embed_timeout", "_search_timeout")

    def __init__(self, embedder: EmbeddingProvider, index: VectorIndex, collection: str, dimension: int | None = None, embed_timeout: float | None = None, search_timeout: float | None = None) -> None:
        self._embedder = embedder
        self._index = index
        self._collection = collection
        self._dimension = dimension
        self._embed_timeout = embed_timeout
        self._search_timeout = search_timeout


    def retrieve_context(self, query_text: str, top_k: int = DEFAULT_TOP_K) -> list[RetrievedContext]:
        """
        Return at most *top_k* snippets, in the index's (descending score) order.

        Returns an empty list when the knowledge collection does not exist.

        Raises
        ------
        EmbeddingError
            The query could not be embedded.
        ContextRetrievalError
            The index query failed for any other reason.
        """
        if not query_text or not query_text.strip():
            raise ValueError("query_text must be non-empty")
        if top_k < 1:
            raise ValueError(f"top_k must be ≥ 1, got {top_k}")

        # ── 1. Embed ──────────────────────────────────────────────────
        t_embed = time.perf_counter()
        try:
            raw_vector = _call_with_timeout(self._embedder.embed, self._embed_timeout, query_text)
        except EmbeddingError:
            raise
        except Exception as exc:
            logger.error("[RETRIEVE] Embedding failed: %s", exc)
            raise EmbeddingError(f"Failed to embed query: {exc}") from exc
        query_vector = validate_embedding(raw_vector, self._dimension)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        # ── 2. Nearest-neighbour search ───────────────────────────────
        t_search = time.perf_counter()
        try:
            hits = _call_with_timeout(self._index.search, self._search_timeout, self._collection, query_vector, top_k, True)
        except CollectionNotFoundError:
            logger.warning("[RETRIEVE] Knowledge collection '%s' not found. Seed it first.", self._collection)
            return []
        except Exception as exc:
            logger.error("[RETRIEVE] Vector search on '%s' failed: %s", self._collection, exc)
            raise ContextRetrievalError(f"Failed to retrieve context from '{self._collection}': {exc}") from exc
        search_ms = (time.perf_counter() - t_search) * 1000

        # ── 3. Map hits ───────────────────────────────────────────────
        context = []
        for hit in hits[:top_k]:
            payload = hit.payload or {}
            context.append(RetrievedContext(text=payload.get("text") or "", category=payload.get("category") or UNKNOWN_CATEGORY, score=float(hit.score)))

        logger.info("[RETRIEVE] %d snippet(s) from '%s' (embed=%.1fms, search=%.1fms)", len(context), self._collection, embed_ms, search_ms)
        return context


# ══════════════════════════════════════════════════════════════════════
#  REPLY GENERATOR
# ══════════════════════════════════════════════════════════════════════


class ReplyGenerator:
    """
    Draft a reply from retrieved context with one generative-model call.

    Parameters
    ----------
    model
        ``GenerativeModel`` to invoke.
    timeout
        Generation timeout in seconds (``None`` = no pipeline-side limit).
    """

    __slots__ = ("_model", "_timeout")

    def __init__(self, model: GenerativeModel, timeout: float | None = None) -> None:
        self._model = model
        self._timeout = timeout


    def generate_reply(self, original_email: str, context: Sequence[RetrievedContext]) -> str:
        """Return the generated reply text or raise ``ReplyGenerationError``."""
        prompt = build_prompt(original_email, context)

        t_llm = time.perf_counter()
        try:
            reply = _call_with_timeout(self._model.generate, self._timeout, prompt)
        except ReplyGenerationError:
            raise
        except Exception as exc:
            logger.error("[GENERATE] Generation failed: %s", exc)
            raise ReplyGenerationError(f"Failed to generate reply: {exc}") from exc

        if not isinstance(reply, str) or not reply.strip():
            raise ReplyGenerationError("Generative model returned an empty reply")

        logger.info("[GENERATE] Reply drafted in %.1fms (%d chars, prompt=%d chars)", (time.perf_counter() - t_llm) * 1000, len(reply), len(prompt))
        return reply.strip()


# ══════════════════════════════════════════════════════════════════════
#  RAG PIPELINE
# ══════════════════════════════════════════════════════════════════════


class RAGPipeline:
    """
    Retrieve → generate → score.

    Parameters
    ----------
    retriever
        A configured ``ContextRetriever``.
    generator
        A configured ``ReplyGenerator``.
    top_k
        Snippets retrieved per email.
    """

    __slots__ = ("_retriever", "_generator", "_top_k")

    def __init__(self, retriever: ContextRetriever, generator: ReplyGenerator, top_k: int = DEFAULT_TOP_K) -> None:
        if top_k < 1:
            raise ValueError(f"top_k must be ≥ 1, got {top_k}")
        self._retriever = retriever
        self._generator = generator
        self._top_k = top_k


    def generate_suggested_reply(self, email_text: str, cancel_event: threading.Event | None = None) -> RAGResult:
        """
        Produce a grounded suggested reply for *email_text*.

        Raises
        ------
        EmptyKnowledgeBaseError
            No context was retrieved; the generator is not called.
        EmbeddingError, ContextRetrievalError, ReplyGenerationError
            Propagated from the failing step.
        PipelineCancelledError
            *cancel_event* was set before the next step started.
        """
        t_start = time.perf_counter()
        logger.info("[RAG] Starting pipeline (top_k=%d, %d chars)", self._top_k, len(email_text))

        # ── 1. Retrieve ───────────────────────────────────────────────
        _check_cancelled(cancel_event, "retrieval")
        context = self._retriever.retrieve_context(email_text, self._top_k)

        # ── 2. Refuse ungrounded replies ──────────────────────────────
        if not context:
            logger.warning("[RAG] No relevant context found in knowledge base.")
            raise EmptyKnowledgeBaseError("No relevant context found. Please ensure the knowledge base is seeded.")

        # ── 3. Generate ───────────────────────────────────────────────
        _check_cancelled(cancel_event, "generation")
        reply = self._generator.generate_reply(email_text, context)

        # ── 4. Score ──────────────────────────────────────────────────
        confidence = compute_confidence([ctx.score for ctx in context])

        logger.info("[RAG] Pipeline complete in %.1fms (confidence=%d%%, context=%s)", (time.perf_counter() - t_start) * 1000, confidence, [ctx.category for ctx in context])
        return RAGResult(suggested_reply=reply, retrieved_context=tuple(context), confidence=confidence)


def _check_cancelled(cancel_event: threading.Event | None, next_step: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.warning("[RAG] Cancelled before %s.", next_step)
        raise PipelineCancelledError(f"Pipeline cancelled before {next_step}")


# ══════════════════════════════════════════════════════════════════════
#  FACTORY
# ══════════════════════════════════════════════════════════════════════


def build_pipeline(config: Settings | None = None, top_k: int | None = None) -> RAGPipeline:
    """Wire the Gemini adapters and the LanceDB index from *config* (defaults to the global settings)."""
    from reachinbox.src.core.llm import GeminiEmbeddingProvider, GeminiGenerativeModel
    from reachinbox.src.database.vector_store import LanceVectorIndex

    cfg = config or default_settings
    api_key = cfg.GOOGLE_API_KEY.get_secret_value()

    retriever = ContextRetriever(
        embedder=GeminiEmbeddingProvider(model=cfg.EMBEDDING_MODEL, api_key=api_key),
        index=LanceVectorIndex(cfg.LANCEDB_PATH),
        collection=cfg.KNOWLEDGE_COLLECTION,
        dimension=cfg.EMBEDDING_SIZE,
        embed_timeout=cfg.EMBED_TIMEOUT_SECONDS,
        search_timeout=cfg.SEARCH_TIMEOUT_SECONDS,
    )
    llm = GeminiGenerativeModel(model=cfg.LLM_MODEL, api_key=api_key, temperature=cfg.LLM_TEMPERATURE, timeout=cfg.LLM_TIMEOUT_SECONDS)
    generator = ReplyGenerator(llm, timeout=cfg.LLM_TIMEOUT_SECONDS)
    return RAGPipeline(retriever, generator, top_k=top_k or cfg.RAG_TOP_K)
