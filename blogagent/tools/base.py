"""Capability contracts the workflow consumes.

Tools are synchronous; the executor runs each call in a worker thread and
treats any exception as a step failure.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, Field

from blogagent.jobs.models import Category, Template
from blogagent.schemas.artifacts import (
    PostMetadata,
    PullRequestResult,
    RefinedContent,
    ResearchData,
    ReviewResult,
    ThumbnailResult,
    ValidationResult,
)


class DraftRequest(BaseModel):
    topic: str
    category: Category = Category.TECH
    template: Template | None = None
    tone: str | None = None
    target_reader: str | None = None
    keywords: list[str] = Field(default_factory=list)
    research: ResearchData | None = None
    # Set on a rewrite requested by a reviewer
    feedback: str | None = None
    previous_draft: str | None = None


class RefineRequest(BaseModel):
    topic: str
    category: Category = Category.TECH
    keywords: list[str] = Field(default_factory=list)
    content: str
    review: ReviewResult | None = None
    feedback: str | None = None
    # Human-edited text: keep it verbatim and only derive metadata
    content_is_final: bool = False


class ContentTools(Protocol):
    def research(self, topic: str, category: Category) -> ResearchData: ...
    def draft(self, request: DraftRequest) -> str: ...
    def ai_review(self, topic: str, draft: str) -> ReviewResult: ...
    def refine(self, request: RefineRequest) -> RefinedContent: ...
    def generate_thumbnail(
        self, metadata: PostMetadata, category: Category, prompt: str | None = None
    ) -> ThumbnailResult | None: ...
    def create_file(
        self,
        content: str,
        metadata: PostMetadata,
        category: Category,
        thumbnail: ThumbnailResult | None = None,
    ) -> str: ...
    def validate(self, filepath: str) -> ValidationResult: ...


class SourceControl(Protocol):
    def create_pull_request(
        self, filepath: str, content: str, metadata: PostMetadata
    ) -> PullRequestResult: ...
