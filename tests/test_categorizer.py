"""
Tests for the LLM email categorizer.
"""

import pytest

from conftest import FakeModel
from reachinbox.src.core.categorizer import EmailCategorizer, parse_category
from reachinbox.src.core.exceptions import CategorizationError


@pytest.mark.parametrize(
    "response, expected",
    [
        ("Interested", "Interested"),
        ("  meeting booked.\n", "Meeting Booked"),
        ("Not Interested", "Not Interested"),
        ("The sender is Not Interested in the offer.", "Not Interested"),
        ("Category: Out of Office", "Out of Office"),
        ("**Spam**", "Spam"),
        ("I cannot tell.", "Uncategorized"),
        ("", "Uncategorized"),
    ],
)
def test_parse_category(response, expected):
    assert parse_category(response) == expected


class TestEmailCategorizer:
    def test_prompt(self):
        model = FakeModel(reply="Interested")
        EmailCategorizer(model, backoff_seconds=0).categorize("Demo request", "Can we talk next week?")

        prompt = model.prompts[0]
        assert "Subject: Demo request" in prompt
        assert "Body: Can we talk next week?" in prompt
        assert "Interested, Meeting Booked, Not Interested, Spam, Out of Office" in prompt

    def test_retries_transient_failures(self):
        model = FakeModel(outcomes=[ConnectionError("reset"), TimeoutError("slow"), "Meeting Booked"])
        assert EmailCategorizer(model, max_attempts=3, backoff_seconds=0).categorize("s", "b") == "Meeting Booked"
        assert len(model.prompts) == 3

    def test_gives_up_after_max_attempts(self):
        last = ConnectionError("still down")
        model = FakeModel(outcomes=[ConnectionError("down"), ConnectionError("down"), last, "Interested"])
        with pytest.raises(CategorizationError) as exc_info:
            EmailCategorizer(model, max_attempts=3, backoff_seconds=0).categorize("s", "b")
        assert exc_info.value.__cause__ is last
        assert len(model.prompts) == 3

    def test_unknown_label(self):
        assert EmailCategorizer(FakeModel(reply="Newsletter"), backoff_seconds=0).categorize("s", "b") == "Uncategorized"

    def test_rejects_invalid_attempts(self):
        with pytest.raises(ValueError):
            EmailCategorizer(FakeModel(), max_attempts=0)
