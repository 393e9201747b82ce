"""
Tests for ReplyGenerator, RAGPipeline and confidence scoring.
"""

import threading
import time

import pytest

from conftest import MEETING, OVERVIEW, PRICING, FakeEmbedder, FakeIndex, FakeModel
from reachinbox.src.core.exceptions import (
    CollectionNotFoundError,
    ContextRetrievalError,
    EmbeddingError,
    EmptyKnowledgeBaseError,
    PipelineCancelledError,
    ReplyGenerationError,
)
from reachinbox.src.core.models import RetrievedContext
from reachinbox.src.core.rag_engine import ContextRetriever, RAGPipeline, ReplyGenerator, build_prompt, compute_confidence, format_email_text

EMAIL = format_email_text("Pricing?", "john@example.com", "2024-05-01", "Can I get pricing and book a demo?")


def _pipeline(embedder=None, index=None, model=None, **kwargs):
    retriever = ContextRetriever(embedder or FakeEmbedder(), index or FakeIndex(), collection="product_knowledge")
    return RAGPipeline(retriever, ReplyGenerator(model or FakeModel(), **kwargs))


class TestBuildPrompt:
    """Prompt assembly is deterministic and order-preserving."""

    def test_context_blocks(self, seeded_context):
        prompt = build_prompt(EMAIL, seeded_context)

        expected_blocks = "\n\n".join([
            f"[Context 1 - pricing]:\n{PRICING}",
            f"[Context 2 - meeting-link]:\n{MEETING}",
            f"[Context 3 - product-overview]:\n{OVERVIEW}",
        ])
        assert expected_blocks in prompt

    def test_grounding_order(self, seeded_context):
        prompt = build_prompt(EMAIL, seeded_context)
        positions = [prompt.index(ctx.text) for ctx in seeded_context]
        assert positions == sorted(positions)

    def test_email_follows_context(self, seeded_context):
        prompt = build_prompt(EMAIL, seeded_context)
        assert prompt.index(OVERVIEW) < prompt.index(EMAIL)

    def test_instructions(self, seeded_context):
        prompt = build_prompt(EMAIL, seeded_context).lower()
        assert "only from the context" in prompt
        assert "meeting link" in prompt
        assert "pricing" in prompt
        assert "sign-off" in prompt

    def test_braces_in_email_are_kept(self, seeded_context):
        email = "Subject: {weird}\n\nbody with {placeholders}"
        assert email in build_prompt(email, seeded_context)


class TestReplyGenerator:
    def test_single_call_with_prompt(self, seeded_context):
        model = FakeModel(reply="  Hi John,\n\nBest regards,\nTeam  ")
        reply = ReplyGenerator(model).generate_reply(EMAIL, seeded_context)

        assert reply == "Hi John,\n\nBest regards,\nTeam"
        assert model.prompts == [build_prompt(EMAIL, seeded_context)]

    def test_model_failure(self, seeded_context):
        cause = RuntimeError("quota exceeded")
        with pytest.raises(ReplyGenerationError) as exc_info:
            ReplyGenerator(FakeModel(outcomes=[cause])).generate_reply(EMAIL, seeded_context)
        assert exc_info.value.__cause__ is cause

    def test_no_retry(self, seeded_context):
        model = FakeModel(outcomes=[RuntimeError("transient"), "would succeed"])
        with pytest.raises(ReplyGenerationError):
            ReplyGenerator(model).generate_reply(EMAIL, seeded_context)
        assert len(model.prompts) == 1

    @pytest.mark.parametrize("reply", ["", "   ", None])
    def test_empty_reply(self, seeded_context, reply):
        with pytest.raises(ReplyGenerationError):
            ReplyGenerator(FakeModel(outcomes=[reply])).generate_reply(EMAIL, seeded_context)

    def test_timeout(self, seeded_context):
        class SlowModel(FakeModel):
            def generate(self, prompt):
                time.sleep(0.5)
                return "late"

        with pytest.raises(ReplyGenerationError, match="timed out"):
            ReplyGenerator(SlowModel(), timeout=0.05).generate_reply(EMAIL, seeded_context)


class TestComputeConfidence:
    def test_scenario(self):
        assert compute_confidence([0.82, 0.77, 0.41]) == 67

    @pytest.mark.parametrize("scores", [[0.0], [1.0], [0.5, 0.25], [0.123, 0.456, 0.789], [0.99, 0.98, 0.97]])
    def test_matches_rounded_mean(self, scores):
        confidence = compute_confidence(scores)
        assert confidence == round(100 * sum(scores) / len(scores))
        assert 0 <= confidence <= 100

    def test_rounds_half_up(self):
        assert compute_confidence([0.125, 0.125]) == 13

    def test_clamped(self):
        assert compute_confidence([1.2, 1.4]) == 100
        assert compute_confidence([-0.3, -0.1]) == 0

    def test_requires_scores(self):
        with pytest.raises(ValueError):
            compute_confidence([])


class TestRAGPipeline:
    """End-to-end orchestration with fake collaborators."""

    def test_scenario_pricing_demo(self, seeded_hits):
        model = FakeModel(reply="Hi John,\nPricing starts at $49/month.\nBest regards,")
        result = _pipeline(index=FakeIndex(seeded_hits), model=model).generate_suggested_reply(EMAIL)

        assert result.suggested_reply == "Hi John,\nPricing starts at $49/month.\nBest regards,"
        assert [c.category for c in result.retrieved_context] == ["pricing", "meeting-link", "product-overview"]
        assert result.confidence == 67
        assert len(model.prompts) == 1
        for ctx in result.retrieved_context:
            assert ctx.text in model.prompts[0]
        assert EMAIL in model.prompts[0]

    def test_retrieves_three(self, seeded_hits):
        index = FakeIndex(seeded_hits + seeded_hits)
        _pipeline(index=index).generate_suggested_reply(EMAIL)
        assert index.calls[0]["limit"] == 3

    def test_empty_collection(self):
        model = FakeModel()
        with pytest.raises(EmptyKnowledgeBaseError):
            _pipeline(index=FakeIndex(error=CollectionNotFoundError("product_knowledge")), model=model).generate_suggested_reply(EMAIL)
        assert model.prompts == []

    def test_no_hits(self):
        model = FakeModel()
        with pytest.raises(EmptyKnowledgeBaseError):
            _pipeline(index=FakeIndex([]), model=model).generate_suggested_reply(EMAIL)
        assert model.prompts == []

    def test_embedding_failure_stops_pipeline(self, seeded_hits):
        index = FakeIndex(seeded_hits)
        model = FakeModel()
        with pytest.raises(EmbeddingError):
            _pipeline(FakeEmbedder(error=ConnectionError("down")), index, model).generate_suggested_reply(EMAIL)
        assert index.calls == []
        assert model.prompts == []

    def test_retrieval_failure_stops_pipeline(self):
        model = FakeModel()
        with pytest.raises(ContextRetrievalError):
            _pipeline(index=FakeIndex(error=ConnectionError("refused")), model=model).generate_suggested_reply(EMAIL)
        assert model.prompts == []

    def test_generator_timeout(self, seeded_hits):
        cause = TimeoutError("deadline exceeded")
        with pytest.raises(ReplyGenerationError) as exc_info:
            _pipeline(index=FakeIndex(seeded_hits), model=FakeModel(outcomes=[cause])).generate_suggested_reply(EMAIL)
        assert exc_info.value.__cause__ is cause

    def test_no_caching(self, seeded_hits):
        embedder = FakeEmbedder()
        index = FakeIndex(seeded_hits)
        model = FakeModel()
        pipeline = _pipeline(embedder, index, model)

        pipeline.generate_suggested_reply(EMAIL)
        pipeline.generate_suggested_reply(EMAIL)

        assert len(embedder.calls) == 2
        assert len(index.calls) == 2
        assert len(model.prompts) == 2

    def test_cancelled_before_start(self, seeded_hits):
        embedder = FakeEmbedder()
        event = threading.Event()
        event.set()
        with pytest.raises(PipelineCancelledError):
            _pipeline(embedder, FakeIndex(seeded_hits)).generate_suggested_reply(EMAIL, cancel_event=event)
        assert embedder.calls == []

    def test_cancelled_between_steps(self, seeded_hits):
        event = threading.Event()
        model = FakeModel()

        class CancellingIndex(FakeIndex):
            def search(self, collection, query_vector, limit, with_payload=True):
                event.set()
                return super().search(collection, query_vector, limit, with_payload)

        with pytest.raises(PipelineCancelledError):
            _pipeline(index=CancellingIndex(seeded_hits), model=model).generate_suggested_reply(EMAIL, cancel_event=event)
        assert model.prompts == []

    def test_result_to_dict(self, seeded_hits):
        result = _pipeline(index=FakeIndex(seeded_hits)).generate_suggested_reply(EMAIL)
        payload = result.to_dict()
        assert payload["confidence"] == 67
        assert payload["retrievedContext"][0] == {"text": PRICING, "category": "pricing", "score": 0.82}

    def test_rejects_invalid_top_k(self):
        retriever = ContextRetriever(FakeEmbedder(), FakeIndex(), collection="c")
        with pytest.raises(ValueError):
            RAGPipeline(retriever, ReplyGenerator(FakeModel()), top_k=0)


def test_format_email_text():
    assert format_email_text("Hi", "a@b.com", "2024-01-01", "Body") == "Subject: Hi\nFrom: a@b.com\nDate: 2024-01-01\n\nBody"


def test_retrieved_context_is_immutable():
    ctx = RetrievedContext(text="t", category="c", score=0.5)
    with pytest.raises(AttributeError):
        ctx.score = 0.9


def test_build_pipeline_bounds_client_and_step(monkeypatch, tmp_path):
    from reachinbox.config.settings import Settings
    from reachinbox.src.core import llm, rag_engine

    created = {}

    class RecordingModel(FakeModel):
        def __init__(self, model, api_key, temperature=0.3, timeout=None):
            super().__init__()
            created["llm"] = {"model": model, "timeout": timeout}

    monkeypatch.setattr(llm, "GeminiGenerativeModel", RecordingModel)
    monkeypatch.setattr(llm, "GeminiEmbeddingProvider", lambda model, api_key: FakeEmbedder())

    config = Settings(GOOGLE_API_KEY="k", LANCEDB_PATH=tmp_path / "lancedb", LLM_TIMEOUT_SECONDS=12.5, _env_file=None)
    pipeline = rag_engine.build_pipeline(config)

    assert created["llm"] == {"model": config.LLM_MODEL, "timeout": 12.5}
    assert pipeline._generator._timeout == 12.5
