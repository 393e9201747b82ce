"""
Shared fixtures and fakes for the ReachInbox test-suite.
"""

import os

# Settings are loaded at import time and require an API key.
os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("ENV", "prod")

import pytest

from reachinbox.src.core.models import RetrievedContext
from reachinbox.src.database.vector_store import SearchHit


class FakeEmbedder:
    """Returns a fixed vector, or raises ``error``."""

    def __init__(self, vector=None, error=None):
        self.vector = vector if vector is not None else [0.1, 0.2, 0.3, 0.4]
        self.error = error
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vector


class FakeIndex:
    """Returns canned hits (truncated to ``limit``), or raises ``error``."""

    def __init__(self, hits=None, error=None):
        self.hits = hits or []
        self.error = error
        self.calls = []

    def search(self, collection, query_vector, limit, with_payload=True):
        self.calls.append({"collection": collection, "vector": list(query_vector), "limit": limit, "with_payload": with_payload})
        if self.error is not None:
            raise self.error
        return self.hits[:limit]


class FakeModel:
    """Returns ``reply`` or pops from ``outcomes`` (exceptions are raised)."""

    def __init__(self, reply="Best regards,\nThe Team", outcomes=None):
        self.reply = reply
        self.outcomes = list(outcomes or [])
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return self.reply


PRICING = "Our pricing starts at $49/month for the Starter plan."
MEETING = "To schedule a meeting with our team, please use this link: https://calendly.com/reachinbox-demo."
OVERVIEW = "ReachInbox is an AI-powered email management platform for sales teams."


@pytest.fixture
def seeded_hits():
    return [
        SearchHit(score=0.82, payload={"text": PRICING, "category": "pricing"}, id=3),
        SearchHit(score=0.77, payload={"text": MEETING, "category": "meeting-link"}, id=2),
        SearchHit(score=0.41, payload={"text": OVERVIEW, "category": "product-overview"}, id=1),
    ]


@pytest.fixture
def seeded_context():
    return [
        RetrievedContext(text=PRICING, category="pricing", score=0.82),
        RetrievedContext(text=MEETING, category="meeting-link", score=0.77),
        RetrievedContext(text=OVERVIEW, category="product-overview", score=0.41),
    ]
