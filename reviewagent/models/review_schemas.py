"""Pydantic models for the structured review result."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high", "critical"]
SuggestionType = Literal["improvement", "bug_fix", "security", "performance", "style"]
IssueType = Literal["bug", "security", "performance", "style", "maintainability"]

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
SUGGESTION_TYPES: tuple[str, ...] = ("improvement", "bug_fix", "security", "performance", "style")
ISSUE_TYPES: tuple[str, ...] = ("bug", "security", "performance", "style", "maintainability")


class _Finding(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str
    severity: Severity
    file: Optional[str] = None
    line: Optional[int] = None
    code: Optional[str] = None
    suggested_fix: Optional[str] = Field(None, alias="suggestedFix")


class Suggestion(_Finding):
    """Improvement proposed by the reviewer."""

    type: SuggestionType = "improvement"


class Issue(_Finding):
    """Problem found by the reviewer."""

    type: IssueType = "bug"


class ReviewResult(BaseModel):
    """Normalized review output stored on the review record and rendered as a comment."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    score: int = Field(ge=0, le=100)
    suggestions: list[Suggestion] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    positive_aspects: list[str] = Field(default_factory=list, alias="positiveAspects")

    @classmethod
    def placeholder(cls, summary: str, score: int = 0) -> "ReviewResult":
        """Result with no findings, used for short-circuits and failures."""
        return cls(summary=summary, score=score)


class ReviewMetadata(BaseModel):
    """Bookkeeping recorded alongside a completed review."""

    model_config = ConfigDict(populate_by_name=True)

    total_files: int = Field(alias="totalFiles")
    total_lines: int = Field(alias="totalLines")
    languages: list[str] = Field(default_factory=list)
    ai_model: str = Field(alias="aiModel")
    processing_time: int = Field(alias="processingTime")  # milliseconds
    tokens_used: int = Field(0, alias="tokensUsed")
