"""
Tolerant decoding of the language model's free-text replies.

The reply is untrusted text. Decoding either yields a validated record or a degraded
record that keeps the raw reply, and never raises.
"""
import json
import logging
import re
from typing import NamedTuple, Optional, Union

from pydantic import ValidationError as SchemaError

from schemas import ChapterSummaryData, DevelopmentalFeedback, InlineHighlight

logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.DOTALL)

FALLBACK_SCORE = 7.0
FALLBACK_STRENGTH = "Analysis completed"
FALLBACK_WEAKNESS = "Could not parse structured feedback"


class ParseResult(NamedTuple):
    record: Union[DevelopmentalFeedback, ChapterSummaryData]
    degraded: bool
    reason: Optional[str] = None


class ShapeError(ValueError):
    pass


def find_balanced_object(text):
    """
    Returns the first balanced ``{...}`` span in ``text``, or None.

    Braces inside JSON string literals are ignored, as are escaped quotes.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escape_next = False
        for index in range(start, len(text)):
            char = text[index]
            if escape_next:
                escape_next = False
                continue
            if char == "\\":
                escape_next = in_string
                continue
            if char == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def extract_json_span(text):
    """Locates the JSON payload in a reply: a fenced code block first, then the first balanced object."""
    for match in FENCED_BLOCK.finditer(text):
        body = match.group(1).strip()
        if body.startswith("{"):
            return body
    return find_balanced_object(text)


def _load_object(response_text):
    span = extract_json_span(response_text or "")
    if span is None:
        raise ShapeError("no JSON object found in response")
    try:
        parsed = json.loads(span)
    except (json.JSONDecodeError, RecursionError) as e:
        raise ShapeError(f"invalid JSON: {e}")
    if not isinstance(parsed, dict):
        raise ShapeError("JSON payload is not an object")
    return parsed


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_feedback_shape(parsed):
    if not _is_number(parsed.get("overallScore")):
        raise ShapeError("overallScore is not a number")
    for field in ("strengths", "weaknesses", "inlineHighlights"):
        if not isinstance(parsed.get(field), list):
            raise ShapeError(f"{field} is not a list")
    if not isinstance(parsed.get("feedback"), str):
        raise ShapeError("feedback is not a string")


def _valid_highlights(raw_highlights, text_length):
    highlights = []
    for raw in raw_highlights:
        try:
            highlight = InlineHighlight.model_validate(raw)
        except SchemaError as e:
            logger.info("Dropping malformed inline highlight %r: %s", raw, e)
            continue
        if text_length is not None and highlight.end > text_length:
            logger.info("Dropping inline highlight past end of text (%d > %d)", highlight.end, text_length)
            continue
        highlights.append(highlight)
    return highlights


def fallback_feedback(response_text):
    return DevelopmentalFeedback(
        overall_score=FALLBACK_SCORE,
        strengths=[FALLBACK_STRENGTH],
        weaknesses=[FALLBACK_WEAKNESS],
        feedback=response_text,
        inline_highlights=[],
    )


def fallback_summary(response_text):
    return ChapterSummaryData(summary=response_text)


def decode_feedback(response_text, text_length=None):
    """
    Decodes a developmental-feedback reply.

    Args:
        response_text (str): The model's reply.
        text_length (int, optional): Length of the analyzed chapter text. When given,
            highlights ending past it are dropped.

    Returns:
        ParseResult: The validated feedback, or the fallback record with ``degraded=True``.
    """
    response_text = response_text if isinstance(response_text, str) else ""
    try:
        parsed = _load_object(response_text)
        _check_feedback_shape(parsed)
        payload = dict(parsed)
        payload["inlineHighlights"] = _valid_highlights(parsed["inlineHighlights"], text_length)
        if not isinstance(payload.get("continuityNotes"), str):
            payload.pop("continuityNotes", None)
        return ParseResult(DevelopmentalFeedback.model_validate(payload), False)
    except (ShapeError, SchemaError) as e:
        logger.warning("Falling back to unstructured feedback: %s", e)
        return ParseResult(fallback_feedback(response_text), True, str(e))


def decode_summary(response_text):
    """Decodes a chapter-summary reply; same degrade-don't-raise contract as ``decode_feedback``."""
    response_text = response_text if isinstance(response_text, str) else ""
    try:
        parsed = _load_object(response_text)
        if not isinstance(parsed.get("summary"), str):
            raise ShapeError("summary is not a string")
        if not isinstance(parsed.get("keyPoints"), list):
            raise ShapeError("keyPoints is not a list")
        entities = parsed.get("entities")
        if not isinstance(entities, dict) or not isinstance(entities.get("characters"), list):
            raise ShapeError("entities.characters is not a list")
        return ParseResult(ChapterSummaryData.model_validate(parsed), False)
    except (ShapeError, SchemaError) as e:
        logger.warning("Falling back to unstructured summary: %s", e)
        return ParseResult(fallback_summary(response_text), True, str(e))


def parse_feedback(response_text, text_length=None):
    return decode_feedback(response_text, text_length).record


def parse_summary(response_text):
    return decode_summary(response_text).record
