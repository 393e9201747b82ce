"""
ReachInbox - Knowledge Vector Index
====================================
Read-only access to the product-knowledge collection that grounds
suggested replies.

  • ``VectorIndex`` — structural type every index backend satisfies:
    ``search(collection, query_vector, limit, with_payload)`` returning
    ``SearchHit`` objects ordered by descending cosine similarity.
  • ``LanceVectorIndex`` — the LanceDB implementation.  Collections are
    LanceDB tables following ``knowledge_schema``; LanceDB reports cosine
    *distance*, converted here to similarity (``1 - _distance``).

Missing collections
-------------------
A query against a collection that was never seeded raises
``CollectionNotFoundError``.  LanceDB reports the condition with plain
``ValueError`` / ``FileNotFoundError`` exceptions, so the error signature
(``is_collection_missing``) is checked when the table is opened, and only
there.  Failures after the table is open (missing or corrupt data files)
propagate unchanged.

Usage:
    from reachinbox.src.database.vector_store import LanceVectorIndex
    index = LanceVectorIndex("data/lancedb")
    hits = index.search("product_knowledge", query_vector, limit=3)
"""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import lancedb
import pyarrow as pa

from reachinbox.src.core.exceptions import CollectionNotFoundError
from reachinbox.src.core.models import KnowledgeSnippet
from reachinbox.src.utils.logger import get_logger

logger = get_logger(__name__)

_NOT_FOUND_RE = re.compile(r"not found|does not exist|doesn't exist", re.IGNORECASE)
_PAYLOAD_COLUMNS = ["id", "text", "category"]

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


@dataclass(frozen=True)
class SearchHit:
    """One nearest-neighbour match returned by a ``VectorIndex``."""

    score: float
    payload: Mapping[str, Any] = field(default_factory=dict)
    id: int | str | None = None


@runtime_checkable
class VectorIndex(Protocol):
    """Anything that answers cosine nearest-neighbour queries over a collection."""

    def search(self, collection: str, query_vector: Sequence[float], limit: int, with_payload: bool = True) -> list[SearchHit]: ...


def is_collection_missing(exc: BaseException) -> bool:
    """
    Return True if *exc*, raised while opening a collection, signals that
    the collection does not exist.
    """
    if isinstance(exc, (CollectionNotFoundError, FileNotFoundError)):
        return True
    return bool(_NOT_FOUND_RE.search(str(exc)))


def knowledge_schema(dimension: int) -> pa.Schema:
    """PyArrow schema of a knowledge collection with *dimension*-sized vectors."""
    return pa.schema([
        pa.field("id", pa.int64()),
        pa.field("text", pa.utf8()),
        pa.field("category", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


def snippet_record(snippet: KnowledgeSnippet) -> dict[str, Any]:
    """Row layout of a ``KnowledgeSnippet`` inside a knowledge collection."""
    return {"id": snippet.id, "text": snippet.text, "category": snippet.category, "vector": list(snippet.embedding)}


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a shared ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


class LanceVectorIndex:
    """
    ``VectorIndex`` backed by a local LanceDB database.

    Parameters
    ----------
    db_path
        Directory of the LanceDB database.
    """

    __slots__ = ("_db_path", "db")

    def __init__(self, db_path: str) -> None:
        self._db_path: str = str(db_path)
        self.db: lancedb.DBConnection = _get_connection(self._db_path)


    def search(self, collection: str, query_vector: Sequence[float], limit: int, with_payload: bool = True) -> list[SearchHit]:
        """
        Return the *limit* rows of *collection* most similar to *query_vector*.

        Raises
        ------
        CollectionNotFoundError
            If *collection* does not exist in the database.
        """
        if limit < 1:
            raise ValueError(f"limit must be ≥ 1, got {limit}")

        table = self._open_table(collection)
        columns = [*(_PAYLOAD_COLUMNS if with_payload else ["id"]), "_distance"]
        rows: list[dict[str, Any]] = table.search(list(query_vector), vector_column_name="vector").distance_type("cosine").select(columns).limit(limit).to_list()

        hits: list[SearchHit] = []
        for row in rows:
            payload = {key: row.get(key) for key in ("text", "category")} if with_payload else {}
            hits.append(SearchHit(score=1.0 - float(row["_distance"]), payload=payload, id=row.get("id")))

        logger.debug("Search on '%s' returned %d hit(s) (limit=%d).", collection, len(hits), limit)
        return hits


    def _open_table(self, collection: str) -> Any:
        try:
            return self.db.open_table(collection)
        except Exception as exc:
            if is_collection_missing(exc):
                raise CollectionNotFoundError(collection) from exc
            logger.error("Failed to open LanceDB table '%s': %s", collection, exc)
            raise


    def __repr__(self) -> str:
        return f"LanceVectorIndex(db='{self._db_path}')"
