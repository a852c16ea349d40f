"""Tool input models for Research Assistant MCP."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.config import QuizLevel


class SourceDocument(BaseModel):
    """An already-extracted web source handed to the synthesizer."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str = Field(default="", max_length=500)
    link: str = Field(..., min_length=1, description="Source URL")
    text_content: str = Field(
        default="",
        description="Readable article text extracted from the page",
    )
    snippet: Optional[str] = Field(default=None, description="Search result snippet")


class ResearchInput(BaseModel):
    """Input model for research synthesis."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    query: str = Field(
        ...,
        description="The user's research question",
        min_length=2,
        max_length=1000,
    )
    sources: List[SourceDocument] = Field(
        default_factory=list,
        description="Extracted sources to synthesize (top results first)",
    )
    search_results: List[SourceDocument] = Field(
        default_factory=list,
        description="All search results, echoed back as all_search_results",
    )


class QuizInput(BaseModel):
    """Input model for quiz generation."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    text: str = Field(..., min_length=1, description="Text the quiz is based on")
    level: QuizLevel = Field(..., description="'Basic', 'Intermediate' or 'Hard'")


class IncorrectQuestion(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    question: str = Field(..., min_length=1)


class RecommendationInput(BaseModel):
    """Input model for post-quiz study recommendations."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    text: str = Field(..., min_length=1, description="Source text of the quiz")
    level: QuizLevel = Field(default=QuizLevel.BASIC)
    incorrect_questions: List[IncorrectQuestion] = Field(
        ...,
        description="Questions the student answered incorrectly",
    )

    @field_validator("incorrect_questions")
    @classmethod
    def require_questions(cls, v: List[IncorrectQuestion]) -> List[IncorrectQuestion]:
        if not v:
            raise ValueError("At least one incorrect question is required")
        return v


class PodcastInput(BaseModel):
    """Input model for podcast-style topic explanation."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    topic: str = Field(..., min_length=2, max_length=500)


class DocumentInput(BaseModel):
    """Input model for document analysis of already-extracted text."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    text: str = Field(..., description="Document text")
    filename: Optional[str] = Field(default=None, max_length=255)

    @field_validator("text")
    @classmethod
    def require_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError(
                "Could not extract any text from the file. It might be empty or image-based."
            )
        return v
