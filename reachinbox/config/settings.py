"""
ReachInbox - Centralized Configuration
=======================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic raises a ``ValidationError``.
  The raw value is never exposed in repr, logs, or tracebacks.

Knowledge base
--------------
The product-knowledge collection lives in an on-disk LanceDB database at
``LANCEDB_PATH``.  It is provisioned and seeded outside this package; the
suggested-reply pipeline only reads from it.

Timeouts
--------
``EMBED_TIMEOUT_SECONDS``, ``SEARCH_TIMEOUT_SECONDS`` and
``LLM_TIMEOUT_SECONDS`` bound each pipeline step independently.  Set one
to ``none`` (in the environment or ``.env``) to drop the pipeline-side
limit and rely on the underlying client's own timeout.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None
        Overrides the ``ENV``-derived log level when set.
    LANCEDB_PATH : Path
        Directory of the LanceDB database holding the knowledge base.
    KNOWLEDGE_COLLECTION : str
        Table name of the product-knowledge collection.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    EMBEDDING_SIZE : int
        Expected embedding dimensionality; query vectors of any other
        length are rejected.
    LLM_MODEL : str
        Model identifier for suggested-reply generation.
    RAG_TOP_K : int
        Number of knowledge snippets retrieved per email.
    CATEGORIZER_MODEL : str
        Model identifier for email categorization.
    CATEGORIZER_MAX_ATTEMPTS : int
        Attempts per categorization before giving up.
    CATEGORIZER_BACKOFF_SECONDS : float
        Base back-off; the n-th retry waits ``n × CATEGORIZER_BACKOFF_SECONDS``.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys (REQUIRED, no default) ────────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Knowledge Base ─────────────────────────────────────────────────
    KNOWLEDGE_COLLECTION: str = "product_knowledge"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_SIZE: int = 768
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.3

    # ── Retrieval ──────────────────────────────────────────────────────
    RAG_TOP_K: int = 3

    # ── Step Timeouts (seconds) ────────────────────────────────────────
    EMBED_TIMEOUT_SECONDS: float | None = 30.0
    SEARCH_TIMEOUT_SECONDS: float | None = 30.0
    LLM_TIMEOUT_SECONDS: float | None = 60.0

    # ── Categorization ─────────────────────────────────────────────────
    CATEGORIZER_MODEL: str = "gemini-2.5-flash"
    CATEGORIZER_MAX_ATTEMPTS: int = 3
    CATEGORIZER_BACKOFF_SECONDS: float = 2.0

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBEDDING_SIZE")
    @classmethod
    def _embedding_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"EMBEDDING_SIZE must be ≥ 1, got {v}")
        return v


    @field_validator("RAG_TOP_K", "CATEGORIZER_MAX_ATTEMPTS")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("EMBED_TIMEOUT_SECONDS", "SEARCH_TIMEOUT_SECONDS", "LLM_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"timeouts must be > 0 seconds, got {v}")
        return v


    @field_validator("CATEGORIZER_BACKOFF_SECONDS")
    @classmethod
    def _backoff_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"CATEGORIZER_BACKOFF_SECONDS must be ≥ 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", env_parse_none_str="none", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from reachinbox.config.settings import settings
settings = Settings()
