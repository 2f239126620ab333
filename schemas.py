"""Typed records exchanged between the prompt builder, the response parser and the analysis run."""
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator


HighlightType = Literal["pacing", "character", "plot", "structure", "style", "dialogue", "description"]
Severity = Literal["minor", "moderate", "major"]


class ChapterContext(BaseModel):
    """Narrative context snapshot for one chapter's feedback prompt."""
    model_config = ConfigDict(frozen=True)

    genre: Optional[str] = None
    book_number: Optional[int] = None
    total_books: Optional[int] = None
    chapter_number: Optional[int] = None
    # chapter order
    previous_summaries: List[str] = Field(default_factory=list)


class InlineHighlight(BaseModel):
    """A comment anchored to a [start, end) character span of the chapter text."""
    start: int = Field(ge=0)
    end: int
    type: HighlightType
    comment: str
    severity: Optional[Severity] = None

    @model_validator(mode="after")
    def check_span(self):
        if self.end <= self.start:
            raise ValueError(f"highlight end ({self.end}) must be greater than start ({self.start})")
        return self


class DevelopmentalFeedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    overall_score: float = Field(alias="overallScore")
    strengths: List[str]
    weaknesses: List[str]
    feedback: str
    inline_highlights: List[InlineHighlight] = Field(default_factory=list, alias="inlineHighlights")
    continuity_notes: Optional[str] = Field(default=None, alias="continuityNotes")


class ChapterEntities(BaseModel):
    characters: List[str] = Field(default_factory=list)
    places: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)


class ChapterSummaryData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    entities: ChapterEntities = Field(default_factory=ChapterEntities)


class ApiUsage(BaseModel):
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    cost_usd: float = Field(ge=0)
    model: Optional[str] = None
