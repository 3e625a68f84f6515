from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reviewagent.models.review_schemas import ReviewMetadata, ReviewResult


class ReviewStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def review_doc_id(repository_id: int, pull_request_id: int) -> str:
    """Document id doubling as the unique (repository, pull request) key."""
    return f"{repository_id}_{pull_request_id}"


class CodeReviewRecord(BaseModel):
    """
    Review document.

    Stored at: code_reviews/{repositoryId}_{pullRequestId}
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, exclude=True)
    repository_id: int = Field(alias="repositoryId")
    pull_request_id: int = Field(alias="pullRequestId")
    pull_request_number: Optional[int] = Field(None, alias="pullRequestNumber")
    repository_name: str = Field(alias="repositoryName")
    status: ReviewStatus = ReviewStatus.PENDING
    review: Optional[ReviewResult] = None
    metadata: Optional[ReviewMetadata] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @property
    def key(self) -> str:
        return review_doc_id(self.repository_id, self.pull_request_id)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "CodeReviewRecord":
        return cls.model_validate({**data, "id": doc_id})


class UserSettings(BaseModel):
    """Per-user review preferences (settings field of users/{uid})."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    auto_review: bool = Field(True, alias="autoReview")
    review_languages: list[str] = Field(default_factory=list, alias="reviewLanguages")
    excluded_patterns: list[str] = Field(default_factory=list, alias="excludedPatterns")
