"""Artifacts produced by workflow steps and stored on the job record."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------

class ResearchSource(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class ResearchData(BaseModel):
    """Web search results plus an LLM summary of them."""

    sources: list[ResearchSource] = Field(default_factory=list)
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

REVIEW_PASS_SCORE = 70


class ReviewIssue(BaseModel):
    issue: str
    suggestion: str = ""
    line: int | None = None


class ReviewResult(BaseModel):
    """AI review of a draft. ``passed`` is derived from ``score``."""

    score: int = Field(default=0, ge=0, le=100)
    code_issues: list[ReviewIssue] = Field(default_factory=list)
    tech_issues: list[ReviewIssue] = Field(default_factory=list)
    seo_issues: list[ReviewIssue] = Field(default_factory=list)
    summary: str = ""
    improved_content: str | None = None

    @property
    def passed(self) -> bool:
        return self.score >= REVIEW_PASS_SCORE

    def to_artifact(self) -> dict:
        data = self.model_dump(mode="json")
        data["passed"] = self.passed
        return data


# ---------------------------------------------------------------------------
# Refinement & metadata
# ---------------------------------------------------------------------------

TITLE_MAX = 60
SUMMARY_MAX = 150


class PostMetadata(BaseModel):
    """Front matter of a generated post."""

    title: str = ""
    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    status: Literal["draft", "published"] = "published"
    tags: list[str] = Field(default_factory=list)
    slug: str = ""
    created_at: str = ""  # YYYY-MM-DD
    updated_at: str = ""  # YYYY-MM-DD
    thumbnail_image: str | None = None


class RefinedContent(BaseModel):
    content: str
    metadata: PostMetadata


# ---------------------------------------------------------------------------
# Thumbnail, validation, PR
# ---------------------------------------------------------------------------

class ThumbnailResult(BaseModel):
    image_base64: str
    mime_type: str = "image/png"
    path: str  # public path, e.g. /images/thumbnails/{slug}/thumbnailImage.png


class ValidationResult(BaseModel):
    passed: bool = True
    errors: list[str] = Field(default_factory=list)


class PullRequestResult(BaseModel):
    commit_hash: str = ""
    pr_url: str = ""
    pr_number: int | None = None
    branch_name: str = ""
