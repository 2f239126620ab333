from prompt_templates import build_developmental_prompt, build_summary_prompt, count_tokens
from schemas import ApiUsage

STANDARD_TIER = "standard"
ECONOMY_TIER = "economy"

# USD per 1M tokens
MODEL_PRICING = {
    STANDARD_TIER: {"model": "gpt-4o", "cost_per_1m_input": 2.50, "cost_per_1m_output": 10.00},
    ECONOMY_TIER: {"model": "gpt-4o-mini", "cost_per_1m_input": 0.15, "cost_per_1m_output": 0.60},
}

PREDICTED_FEEDBACK_OUTPUT_TOKENS = 2500
PREDICTED_SUMMARY_OUTPUT_TOKENS = 1200


def calculate_usage(raw_usage, model_tier=STANDARD_TIER, model=None):
    """
    Calculates token totals and the USD cost of one language-model call.

    Cost is ``input/1M * input price + output/1M * output price`` for the tier and is not
    rounded, so it scales linearly with the token counts.

    Args:
        raw_usage (dict): Mapping with ``input_tokens`` and ``output_tokens``.
        model_tier (str, optional): ``"standard"`` or ``"economy"``. Defaults to ``"standard"``.
        model (str, optional): Model identifier to record. Defaults to the tier's model.

    Returns:
        ApiUsage: Token counts, total tokens and cost in USD.

    Raises:
        KeyError: If ``model_tier`` is not a known tier.
    """
    pricing = MODEL_PRICING[model_tier]
    input_tokens = raw_usage["input_tokens"]
    output_tokens = raw_usage["output_tokens"]

    input_cost = input_tokens / 1_000_000 * pricing["cost_per_1m_input"]
    output_cost = output_tokens / 1_000_000 * pricing["cost_per_1m_output"]

    return ApiUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        cost_usd=input_cost + output_cost,
        model=model or pricing["model"],
    )


def calculate_predicted_analysis_cost(chapter_text, context=None, chapter_number=1):
    """
    Predicts the cost of a full analysis run (feedback call plus summary call) before it happens.

    Input tokens are counted from the exact prompts that would be sent; output tokens are the
    fixed predicted budgets for each call.

    Args:
        chapter_text (str): The chapter text to analyze.
        context (ChapterContext, optional): Narrative context used in the feedback prompt.
        chapter_number (int, optional): Chapter number used in the summary prompt. Defaults to 1.

    Returns:
        dict: A dictionary containing the following keys:
            - feedback (dict): Predicted ApiUsage of the feedback call.
            - summary (dict): Predicted ApiUsage of the summary call.
            - total_predicted_cost_usd (float): Sum of both predicted costs.
    """
    feedback_model = MODEL_PRICING[STANDARD_TIER]["model"]
    summary_model = MODEL_PRICING[ECONOMY_TIER]["model"]
    genre = context.genre if context else None

    feedback_prompt = build_developmental_prompt(chapter_text, context)
    summary_prompt = build_summary_prompt(chapter_text, chapter_number, genre)

    feedback_usage = calculate_usage({
        "input_tokens": count_tokens(feedback_prompt, feedback_model),
        "output_tokens": PREDICTED_FEEDBACK_OUTPUT_TOKENS,
    }, STANDARD_TIER)
    summary_usage = calculate_usage({
        "input_tokens": count_tokens(summary_prompt, summary_model),
        "output_tokens": PREDICTED_SUMMARY_OUTPUT_TOKENS,
    }, ECONOMY_TIER)

    return {
        "feedback": feedback_usage.model_dump(),
        "summary": summary_usage.model_dump(),
        "total_predicted_cost_usd": feedback_usage.cost_usd + summary_usage.cost_usd,
    }
