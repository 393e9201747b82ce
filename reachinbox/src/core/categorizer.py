"""
ReachInbox - Email Categorizer
===============================
Classifies an email into one of the ``EMAIL_CATEGORIES`` labels with a
single-shot LLM prompt.

Transient model failures are retried with ``tenacity``: up to
``max_attempts`` calls, the n-th retry waiting ``n × backoff_seconds``.
When the model answers but names no known label, the email is
``Uncategorized``; when every attempt fails, ``CategorizationError`` is
raised with the last failure chained.
"""

from __future__ import annotations

from tenacity import Retrying, stop_after_attempt, wait_incrementing

from reachinbox.config.prompt_templates import CATEGORIZATION_PROMPT_TEMPLATE, EMAIL_CATEGORIES, UNCATEGORIZED
from reachinbox.config.settings import Settings, settings as default_settings
from reachinbox.src.core.exceptions import CategorizationError
from reachinbox.src.core.llm import GenerativeModel
from reachinbox.src.utils.logger import get_logger

logger = get_logger(__name__)

# Longest first: "Interested" is a substring of "Not Interested"
_LABELS_BY_LENGTH = sorted(EMAIL_CATEGORIES, key=len, reverse=True)


def parse_category(response_text: str) -> str:
    """Map a free-form model answer onto a known label, or ``UNCATEGORIZED``."""
    answer = response_text.strip().strip(".\"'`*").strip()
    for label in EMAIL_CATEGORIES:
        if answer.lower() == label.lower():
            return label
    lowered = answer.lower()
    for label in _LABELS_BY_LENGTH:
        if label.lower() in lowered:
            return label
    return UNCATEGORIZED


class EmailCategorizer:
    """
    LLM-backed email classifier.

    Parameters
    ----------
    model
        ``GenerativeModel`` used for classification.
    max_attempts
        Total model calls before giving up.
    backoff_seconds
        Base wait between attempts.
    """

    __slots__ = ("_model", "_max_attempts", "_backoff_seconds")

    def __init__(self, model: GenerativeModel, max_attempts: int = 3, backoff_seconds: float = 2.0) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts}")
        self._model = model
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds


    def categorize(self, subject: str, body: str) -> str:
        """Return the label for the email, or raise ``CategorizationError``."""
        prompt = CATEGORIZATION_PROMPT_TEMPLATE.format(labels=", ".join(EMAIL_CATEGORIES), subject=subject, body=body)

        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_incrementing(start=self._backoff_seconds, increment=self._backoff_seconds),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "[CATEGORIZE] Attempt %d failed: %s",
                state.attempt_number,
                state.outcome.exception() if state.outcome else "unknown",
            ),
        )
        try:
            response_text = retrying(self._model.generate, prompt)
        except Exception as exc:
            logger.error("[CATEGORIZE] Failed after %d attempt(s): %s", self._max_attempts, exc)
            raise CategorizationError(f"Categorization failed after {self._max_attempts} attempt(s): {exc}") from exc

        category = parse_category(response_text)
        logger.info("[CATEGORIZE] Email categorized as: %s", category)
        return category


def build_categorizer(config: Settings | None = None) -> EmailCategorizer:
    """Wire a Gemini-backed categorizer from *config* (defaults to the global settings)."""
    from reachinbox.src.core.llm import GeminiGenerativeModel

    cfg = config or default_settings
    model = GeminiGenerativeModel(model=cfg.CATEGORIZER_MODEL, api_key=cfg.GOOGLE_API_KEY.get_secret_value(), temperature=0.0, timeout=cfg.LLM_TIMEOUT_SECONDS)
    return EmailCategorizer(model, max_attempts=cfg.CATEGORIZER_MAX_ATTEMPTS, backoff_seconds=cfg.CATEGORIZER_BACKOFF_SECONDS)
