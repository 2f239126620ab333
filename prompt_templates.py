import json
import tiktoken
from schemas import ChapterContext


def count_tokens(prompt, model="gpt-4o-mini"):
    """
    Counts the number of tokens in a given prompt using the specified model.

    Args:
        prompt (str): The input text for which to count the tokens.
        model (str, optional): The model to use for encoding. Defaults to "gpt-4o-mini".

    Returns:
        int: The number of tokens in the encoded prompt.
    """
    try:
        encoding = tiktoken.encoding_for_model(model)
    except Exception:
        encoding = tiktoken.get_encoding("cl100k_base")
    return len(encoding.encode(prompt))


EDITOR_PERSONA = (
    "You are an expert developmental editor specializing in fiction writing. Your role is to provide "
    "constructive, actionable feedback that helps authors improve their storytelling craft.\n\n"
    "Your feedback should focus on the big-picture elements of storytelling, not grammar or spelling."
)

RUBRIC_SECTIONS = [
    (
        "Plot & Structure",
        [
            "Does the chapter advance the plot meaningfully?",
            "Is the pacing appropriate (too fast, too slow, just right)?",
            "Are there any plot holes or logical inconsistencies?",
            "Does the chapter have a clear beginning, middle, and end?",
            "Is there proper tension and conflict?",
        ],
    ),
    (
        "Character Development",
        [
            "Are character motivations clear and believable?",
            "Do characters act consistently with their established personalities?",
            "Is the dialogue natural and voice-distinct?",
            "Are there opportunities to deepen characterization?",
            "Do characters show growth or change?",
        ],
    ),
    (
        "Narrative Technique",
        [
            "Is the POV consistent and effective?",
            "Balance of showing vs. telling (show more where it matters)",
            "Are descriptions vivid but not excessive?",
            "Does the opening hook the reader?",
            "Does the ending create anticipation for the next chapter?",
        ],
    ),
    (
        "Worldbuilding (if applicable)",
        [
            "Is worldbuilding integrated naturally or info-dumped?",
            "Are magic/tech systems explained clearly and consistently?",
            "Does the setting feel immersive?",
        ],
    ),
]

CONTINUITY_SECTION = (
    "Series Continuity",
    [
        "Are there any contradictions with previous chapters?",
        "Is character development tracking properly across the story arc?",
        "Are callbacks to earlier events handled well?",
    ],
)

EXAMPLE_FEEDBACK = {
    "overallScore": 7.5,
    "strengths": [
        "Strong opening hook that immediately establishes tension",
        "Vivid sensory descriptions that immerse the reader",
        "Character dialogue feels natural and reveals personality",
    ],
    "weaknesses": [
        "Pacing drags in the middle section (paragraphs 5-8)",
        "Character motivation for the betrayal is unclear",
        "Info-dump about the magic system breaks narrative flow",
    ],
    "feedback": (
        "## Overall Assessment\n\nThis chapter shows strong craft in its opening and descriptive work, "
        "with some pacing and clarity issues.\n\n### What Works Well\n\n**Opening Hook**: ...\n\n"
        "### Areas for Improvement\n\n**Pacing Issues**: ...\n\n### Specific Suggestions\n\n"
        "1. **Restructure the middle**: ..."
    ),
    "inlineHighlights": [
        {
            "start": 450,
            "end": 680,
            "type": "pacing",
            "comment": "This passage slows momentum. Consider moving the room description earlier or cutting it to essentials.",
            "severity": "moderate",
        },
        {
            "start": 1200,
            "end": 1450,
            "type": "character",
            "comment": "Strong dialogue here. Each voice is distinct and the subtext is clear.",
            "severity": "minor",
        },
    ],
}

EXAMPLE_CONTINUITY_NOTES = (
    "The mentor's scar is on the left hand here but was on the right in Chapter 2. "
    "The callback to the burned letter pays off the setup from Chapter 1 well."
)

FEEDBACK_GUIDELINES = (
    "IMPORTANT GUIDELINES:\n"
    "- Be specific: quote passages and give concrete examples\n"
    "- Be actionable: suggest HOW to fix issues, not just what is wrong\n"
    "- Be balanced: note both strengths and weaknesses\n"
    "- Be constructive: frame criticism as opportunities for improvement\n"
    "- Use markdown formatting in the feedback field for readability\n"
    "- overallScore is a number from 0 to 10 (7-8 is good, 9+ is exceptional, below 6 needs significant work)\n"
    "- strengths and weaknesses are arrays of short strings\n"
    "- Include 3-5 inline highlights pointing to specific passages\n"
    "- Each inline highlight needs 0-based character offsets into the chapter text (start inclusive, "
    "end exclusive, start < end), a type (one of pacing, character, plot, structure, style, dialogue, "
    "description), a comment, and a severity (minor, moderate or major)"
)

CONTINUITY_GUIDELINE = (
    "- continuityNotes is a markdown string noting contradictions with, or successful callbacks to, "
    "the previous chapters"
)


def _fenced_json(payload):
    return "```json\n" + json.dumps(payload, indent=2, ensure_ascii=False) + "\n```"


def _render_rubric(sections):
    blocks = []
    for index, (title, questions) in enumerate(sections, start=1):
        lines = [f"### {index}. {title}"]
        lines.extend(f"- {question}" for question in questions)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_developmental_prompt(chapter_text, context=None):
    """
    Builds the developmental-editing prompt for a single chapter.

    The prompt sets the editor persona, adds whatever narrative context is available (genre,
    series position, summaries of earlier chapters), embeds the chapter text verbatim and ends
    with the rubric and the exact JSON reply format. When there are no earlier summaries the
    story-so-far block, the continuity rubric and the ``continuityNotes`` output field are all
    left out, so the expected reply schema differs with and without continuity context.

    Args:
        chapter_text (str): The raw chapter text.
        context (ChapterContext, optional): Narrative context. Missing fields are skipped.

    Returns:
        str: The full prompt.
    """
    context = context or ChapterContext()
    has_continuity = len(context.previous_summaries) > 0
    sections = [EDITOR_PERSONA]

    if context.genre:
        sections.append(
            f"GENRE: {context.genre}\n"
            f"Your feedback should consider genre conventions and reader expectations for {context.genre}."
        )

    if context.book_number and context.total_books:
        sections.append(
            f"SERIES CONTEXT: This is Book {context.book_number} of a {context.total_books}-book series."
        )

    if has_continuity:
        summaries = "\n\n".join(
            f"**Chapter {number}**: {summary}"
            for number, summary in enumerate(context.previous_summaries, start=1)
        )
        sections.append(
            "## STORY SO FAR\n\n"
            "Here are summaries of the previous chapters to help you check continuity and story progression:\n\n"
            f"{summaries}\n\n"
            "Please check this chapter for consistency with previous events, character development arcs, "
            "and plot progression."
        )

    heading = f"**Chapter {context.chapter_number}**\n\n" if context.chapter_number else ""
    sections.append(f"## CHAPTER TO ANALYZE\n\n{heading}{chapter_text}")

    rubric = list(RUBRIC_SECTIONS)
    if has_continuity:
        rubric.append(CONTINUITY_SECTION)
    sections.append(
        "## FEEDBACK INSTRUCTIONS\n\n"
        "Provide comprehensive developmental editing feedback covering these key areas:\n\n"
        + _render_rubric(rubric)
    )

    example = dict(EXAMPLE_FEEDBACK)
    guidelines = FEEDBACK_GUIDELINES
    if has_continuity:
        example["continuityNotes"] = EXAMPLE_CONTINUITY_NOTES
        guidelines = guidelines + "\n" + CONTINUITY_GUIDELINE
    sections.append(
        "## OUTPUT FORMAT\n\n"
        "Return your feedback as JSON in this EXACT format:\n\n"
        f"{_fenced_json(example)}\n\n"
        f"{guidelines}"
    )

    return "\n\n".join(sections)


EXAMPLE_SUMMARY = {
    "summary": (
        "A 500-1000 word narrative summary covering the points above. Focus on WHAT happens and "
        "WHY it matters to the story."
    ),
    "keyPoints": [
        "Hero discovers the ancient artifact in the ruins",
        "Betrayal revealed: a trusted ally is working for the enemy",
        "Final confrontation set up for the next chapter",
    ],
    "entities": {
        "characters": ["Alaric", "Brenna", "Lord Tyran"],
        "places": ["Tower of Winds", "Eloria"],
        "events": ["Battle of Sorrows", "Betrayal at Dawn"],
    },
}


def build_summary_prompt(chapter_text, chapter_number, genre=None):
    """
    Builds the prompt for a chapter summary with entity extraction.

    Args:
        chapter_text (str): The raw chapter text.
        chapter_number (int): Position of the chapter in its book.
        genre (str, optional): Genre of the book. Defaults to "fiction" in the prompt.

    Returns:
        str: The summary prompt.
    """
    template = (
        "You are analyzing Chapter {chapter_number} of a {genre} novel.\n\n"
        "## CHAPTER TEXT\n\n"
        "{chapter_text}\n\n"
        "## TASK\n\n"
        "Generate a concise but comprehensive summary that captures:\n\n"
        "1. **Key Plot Developments**: What happens in this chapter? What events move the story forward?\n"
        "2. **Character Actions & Decisions**: What do characters do and decide? How do they change?\n"
        "3. **Important Revelations**: What new information is revealed about plot, characters or world?\n"
        "4. **Setting/Location**: Where does this chapter take place? Any significant location changes?\n"
        "5. **Emotional Arc**: What is the emotional journey of this chapter?\n\n"
        "Also extract and list:\n"
        "- **All character names** mentioned (including minor characters)\n"
        "- **All place/location names** mentioned\n"
        "- **Major events** that occur (battles, revelations, deaths, etc.)\n\n"
        "## OUTPUT FORMAT\n\n"
        "Return as JSON:\n\n"
        "{example}\n\n"
        "Be thorough but concise. The summary should give someone a complete understanding of this "
        "chapter's role in the larger story."
    )
    return template.format(
        chapter_number=chapter_number,
        genre=genre or "fiction",
        chapter_text=chapter_text,
        example=_fenced_json(EXAMPLE_SUMMARY),
    )
