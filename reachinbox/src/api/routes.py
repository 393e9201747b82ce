"""
reachinbox/src/api/routes.py — API Route Definitions

Responsibility:
    REST endpoints around the suggested-reply pipeline and the email
    categorizer:
      - GET  /healthz             → Liveness probe
      - POST /api/suggest-reply   → Draft a grounded reply for an email
      - POST /api/categorize      → Classify an email

    Handlers are thin controllers: validate the request, delegate to
    ``RAGPipeline`` / ``EmailCategorizer`` and translate domain errors to
    status codes.  An unseeded knowledge base is reported as 503 so
    operators know to run the seeding step; every other failure is 500.

Related Files:
    - reachinbox/src/main.py            → Router is mounted here
    - reachinbox/src/core/rag_engine.py → Suggested-reply pipeline
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from reachinbox.src.core.categorizer import EmailCategorizer, build_categorizer
from reachinbox.src.core.exceptions import CategorizationError, EmptyKnowledgeBaseError, RAGPipelineError
from reachinbox.src.core.rag_engine import RAGPipeline, build_pipeline, format_email_text
from reachinbox.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# ── Payloads ───────────────────────────────────────────────────────────

class SuggestReplyRequest(BaseModel):
    """An email to draft a reply for."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(..., min_length=1)
    sender: str = Field(..., alias="from", min_length=1)
    date: str | None = None
    body: str = Field(..., min_length=1)


class ContextSummary(BaseModel):
    category: str
    score: float


class SuggestReplyResponse(BaseModel):
    suggestedReply: str
    confidence: int
    context: list[ContextSummary]
    timestamp: str


class CategorizeRequest(BaseModel):
    subject: str
    body: str


class CategorizeResponse(BaseModel):
    category: str


# ── Dependencies ───────────────────────────────────────────────────────

def _pipeline(request: Request) -> RAGPipeline:
    state = request.app.state
    if state.pipeline is None:
        state.pipeline = build_pipeline()
    return state.pipeline


def _categorizer(request: Request) -> EmailCategorizer:
    state = request.app.state
    if state.categorizer is None:
        state.categorizer = build_categorizer()
    return state.categorizer


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": str(exc)})


# ── Routes ─────────────────────────────────────────────────────────────

@router.get("/healthz")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/api/suggest-reply", response_model=SuggestReplyResponse)
def suggest_reply(payload: SuggestReplyRequest, request: Request) -> SuggestReplyResponse | JSONResponse:
    date = payload.date or datetime.now(timezone.utc).isoformat()
    email_text = format_email_text(payload.subject, payload.sender, date, payload.body)

    try:
        result = _pipeline(request).generate_suggested_reply(email_text)
    except EmptyKnowledgeBaseError as exc:
        logger.warning("Suggest reply refused: %s", exc)
        return _error(503, "Knowledge base not initialized. Please run the setup script first.", exc)
    except RAGPipelineError as exc:
        logger.error("Suggest reply failed: %s", exc)
        return _error(500, "Failed to generate suggested reply", exc)

    return SuggestReplyResponse(
        suggestedReply=result.suggested_reply,
        confidence=result.confidence,
        context=[ContextSummary(category=ctx.category, score=ctx.score) for ctx in result.retrieved_context],
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/api/categorize", response_model=CategorizeResponse)
def categorize(payload: CategorizeRequest, request: Request) -> CategorizeResponse | JSONResponse:
    try:
        category = _categorizer(request).categorize(payload.subject, payload.body)
    except CategorizationError as exc:
        return _error(500, "Failed to categorize email", exc)
    return CategorizeResponse(category=category)
