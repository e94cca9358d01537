"""Pydantic models for step artifacts and API bodies."""

from blogagent.schemas.artifacts import (
    PostMetadata,
    PullRequestResult,
    RefinedContent,
    ResearchData,
    ResearchSource,
    ReviewIssue,
    ReviewResult,
    ThumbnailResult,
    ValidationResult,
)

__all__ = [
    "PostMetadata",
    "PullRequestResult",
    "RefinedContent",
    "ResearchData",
    "ResearchSource",
    "ReviewIssue",
    "ReviewResult",
    "ThumbnailResult",
    "ValidationResult",
]
