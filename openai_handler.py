import logging
import time
from typing import NamedTuple

from openai import OpenAI

from errors import UpstreamError
from predictions import calculate_usage, STANDARD_TIER, ECONOMY_TIER
from prompt_templates import build_developmental_prompt, build_summary_prompt
from response_parser import decode_feedback, decode_summary

logger = logging.getLogger(__name__)


class Completion(NamedTuple):
    text: str
    input_tokens: int
    output_tokens: int


class OpenAIHandler:
    """
    Wraps an OpenAI client with the two editing capabilities: developmental feedback and
    chapter summaries.

    The client is passed in, so tests and workers can supply their own.
    """

    def __init__(self, client, feedback_model="gpt-4o", summary_model="gpt-4o-mini",
                 feedback_max_tokens=4000, summary_max_tokens=2000):
        self.client = client
        self.feedback_model = feedback_model
        self.summary_model = summary_model
        self.feedback_max_tokens = feedback_max_tokens
        self.summary_max_tokens = summary_max_tokens

    @classmethod
    def from_config(cls, config):
        client = OpenAI(api_key=config.get("OPENAI_API_KEY"), timeout=config.get("OPENAI_TIMEOUT", 120))
        return cls(
            client,
            feedback_model=config.get("FEEDBACK_MODEL", "gpt-4o"),
            summary_model=config.get("SUMMARY_MODEL", "gpt-4o-mini"),
            feedback_max_tokens=config.get("FEEDBACK_MAX_TOKENS", 4000),
            summary_max_tokens=config.get("SUMMARY_MAX_TOKENS", 2000),
        )

    def complete(self, prompt, max_tokens, temperature, model):
        """
        Sends a single prompt to the chat completions API.

        Args:
            prompt (str): The user prompt.
            max_tokens (int): Output token budget.
            temperature (float): Sampling temperature.
            model (str): Model identifier.

        Returns:
            Completion: Reply text, unmodified, with input and output token counts.

        Raises:
            UpstreamError: If the API call fails for any reason (auth, rate limit, network, status).
        """
        try:
            response = self.client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise UpstreamError(f"OpenAI request to {model} failed: {e}") from e

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice else ""
        usage = response.usage
        return Completion(
            text=text,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def analyze_developmental(self, chapter_text, context=None):
        """
        Generates developmental editing feedback for a chapter.

        Args:
            chapter_text (str): The chapter text.
            context (ChapterContext, optional): Genre, series position and earlier summaries.

        Returns:
            tuple: ``(DevelopmentalFeedback, ApiUsage, degraded)`` where ``degraded`` is True when
            the reply could not be decoded and the fallback record was used.

        Raises:
            UpstreamError: If the API call fails.
        """
        prompt = build_developmental_prompt(chapter_text, context)
        start_time = time.monotonic()
        try:
            completion = self.complete(prompt, self.feedback_max_tokens, 0.7, self.feedback_model)
        except UpstreamError as e:
            raise UpstreamError(f"Failed to analyze chapter: {e.message}") from e

        result = decode_feedback(completion.text, text_length=len(chapter_text))
        usage = calculate_usage(
            {"input_tokens": completion.input_tokens, "output_tokens": completion.output_tokens},
            STANDARD_TIER,
            model=self.feedback_model,
        )
        logger.info(
            "Developmental analysis complete in %.1fs: %d input / %d output tokens, $%.4f%s",
            time.monotonic() - start_time, usage.input_tokens, usage.output_tokens, usage.cost_usd,
            " (degraded)" if result.degraded else "",
        )
        return result.record, usage, result.degraded

    def generate_summary(self, chapter_text, chapter_number, genre=None):
        """Generates a chapter summary with entity lists on the cheaper summary model."""
        prompt = build_summary_prompt(chapter_text, chapter_number, genre)
        start_time = time.monotonic()
        try:
            completion = self.complete(prompt, self.summary_max_tokens, 0.3, self.summary_model)
        except UpstreamError as e:
            raise UpstreamError(f"Failed to generate summary: {e.message}") from e

        result = decode_summary(completion.text)
        usage = calculate_usage(
            {"input_tokens": completion.input_tokens, "output_tokens": completion.output_tokens},
            ECONOMY_TIER,
            model=self.summary_model,
        )
        logger.info(
            "Summary generation complete in %.1fs: $%.4f%s",
            time.monotonic() - start_time, usage.cost_usd, " (degraded)" if result.degraded else "",
        )
        return result.record, usage, result.degraded
