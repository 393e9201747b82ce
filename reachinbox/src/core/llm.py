"""
ReachInbox - Gemini Adapters
=============================
Narrow interfaces the pipeline depends on, plus their Gemini
implementations via LangChain:

``EmbeddingProvider``
    ``embed(text) -> list[float]``.  Implemented by
    ``GeminiEmbeddingProvider`` (``GoogleGenerativeAIEmbeddings``).

``GenerativeModel``
    ``generate(prompt) -> str``, one request and one response.
    Implemented by ``GeminiGenerativeModel`` (``ChatGoogleGenerativeAI``).

Both adapters convert client failures into the pipeline's error types so
callers never have to know about LangChain or Google exceptions.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from reachinbox.src.core.exceptions import EmbeddingError, ReplyGenerationError
from reachinbox.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-size vector."""

    def embed(self, text: str) -> list[float]: ...


@runtime_checkable
class GenerativeModel(Protocol):
    """Single-shot text generation."""

    def generate(self, prompt: str) -> str: ...


class GeminiEmbeddingProvider:
    """
    ``EmbeddingProvider`` over LangChain's ``GoogleGenerativeAIEmbeddings``.

    Parameters
    ----------
    model
        Embedding model identifier (e.g. ``models/text-embedding-004``).
    api_key
        Google AI Studio API key.
    """

    __slots__ = ("model_name", "_client")

    def __init__(self, model: str, api_key: str) -> None:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        self.model_name = model
        self._client = GoogleGenerativeAIEmbeddings(model=model, google_api_key=api_key)
        logger.info("Embedding model initialised: %s", model)


    def embed(self, text: str) -> list[float]:
        try:
            return list(self._client.embed_query(text))
        except Exception as exc:
            logger.error("Embedding request to %s failed: %s", self.model_name, exc)
            raise EmbeddingError(f"Embedding provider failed: {exc}") from exc


class GeminiGenerativeModel:
    """
    ``GenerativeModel`` over LangChain's ``ChatGoogleGenerativeAI``.

    Parameters
    ----------
    model
        Gemini model identifier.
    api_key
        Google AI Studio API key.
    temperature
        Sampling temperature.
    timeout
        Client-side request timeout in seconds (``None`` keeps the client default).
    """

    __slots__ = ("model_name", "_llm")

    def __init__(self, model: str, api_key: str, temperature: float = 0.3, timeout: float | None = None) -> None:
        from langchain_google_genai import ChatGoogleGenerativeAI

        self.model_name = model
        self._llm = ChatGoogleGenerativeAI(model=model, temperature=temperature, google_api_key=api_key, timeout=timeout)
        logger.info("LLM initialised: %s (temperature=%.1f)", model, temperature)


    def generate(self, prompt: str) -> str:
        from langchain_core.messages import HumanMessage

        try:
            response = self._llm.invoke([HumanMessage(content=prompt)])
        except Exception as exc:
            logger.error("Generation request to %s failed: %s", self.model_name, exc)
            raise ReplyGenerationError(f"Generative model failed: {exc}") from exc

        return _message_text(getattr(response, "content", response))


def _message_text(content: Any) -> str:
    """Flatten a chat message's content (plain string or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part if isinstance(part, str) else part.get("text", "") for part in content if isinstance(part, (str, dict))]
        return "".join(parts)
    raise ReplyGenerationError(f"Unexpected response content type: {type(content).__name__}")
