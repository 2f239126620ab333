"""Tests for the OpenAI client wrapper."""
from unittest.mock import MagicMock

import pytest

from conftest import VALID_FEEDBACK, VALID_SUMMARY, fenced, make_completion
from errors import UpstreamError
from openai_handler import OpenAIHandler
from schemas import ChapterContext


def test_complete_returns_text_and_usage():
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion("  hello  ", 12, 3)
    handler = OpenAIHandler(client)

    completion = handler.complete("prompt", 100, 0.5, "gpt-4o")

    assert completion.text == "  hello  "
    assert completion.input_tokens == 12
    assert completion.output_tokens == 3
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["max_tokens"] == 100
    assert kwargs["temperature"] == 0.5
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]


def test_complete_wraps_client_errors():
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("429 rate limited")
    handler = OpenAIHandler(client)

    with pytest.raises(UpstreamError) as excinfo:
        handler.complete("prompt", 100, 0.5, "gpt-4o")
    assert "429 rate limited" in excinfo.value.message


def test_analyze_developmental_uses_feedback_model():
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion(fenced(VALID_FEEDBACK), 2000, 1000)
    handler = OpenAIHandler(client, feedback_model="gpt-4o", feedback_max_tokens=4000)

    feedback, usage, degraded = handler.analyze_developmental("A chapter of text.", ChapterContext(genre="fantasy"))

    assert degraded is False
    assert feedback.overall_score == 8
    assert usage.total_tokens == 3000
    assert usage.model == "gpt-4o"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["max_tokens"] == 4000
    assert kwargs["temperature"] == 0.7
    assert "A chapter of text." in kwargs["messages"][0]["content"]


def test_analyze_developmental_drops_highlights_past_text():
    """Highlight offsets are checked against the analyzed text's length"""
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion(fenced(VALID_FEEDBACK))
    handler = OpenAIHandler(client)

    feedback, _, _ = handler.analyze_developmental("abc")
    assert feedback.inline_highlights == []


def test_analyze_developmental_degraded_reply():
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion("Lovely chapter, no notes.")
    handler = OpenAIHandler(client)

    feedback, _, degraded = handler.analyze_developmental("Some text.")
    assert degraded is True
    assert feedback.feedback == "Lovely chapter, no notes."


def test_degraded_feedback_keeps_raw_reply():
    """Surrounding whitespace of an unparseable reply is preserved in the fallback feedback"""
    raw = "\n  Lovely chapter.\n\nNo structured notes this time.  \n"
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion(raw)
    handler = OpenAIHandler(client)

    feedback, _, degraded = handler.analyze_developmental("Some text.")
    assert degraded is True
    assert feedback.feedback == raw


def test_generate_summary_uses_economy_model():
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion(fenced(VALID_SUMMARY), 800, 200)
    handler = OpenAIHandler(client, summary_model="gpt-4o-mini", summary_max_tokens=2000)

    summary, usage, degraded = handler.generate_summary("Text.", 3, "mystery")

    assert degraded is False
    assert summary.summary == "Mara leaves the village."
    assert usage.model == "gpt-4o-mini"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 2000
    assert kwargs["temperature"] == 0.3


def test_generate_summary_error_message():
    client = MagicMock()
    client.chat.completions.create.side_effect = ConnectionError("connection reset")
    handler = OpenAIHandler(client)

    with pytest.raises(UpstreamError) as excinfo:
        handler.generate_summary("Text.", 1)
    assert excinfo.value.message.startswith("Failed to generate summary:")
    assert "connection reset" in excinfo.value.message
