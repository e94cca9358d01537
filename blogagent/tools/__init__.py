"""Content-generation tools and source-control integration used by workflow steps."""

from __future__ import annotations

from pathlib import Path

from blogagent.config import Settings
from blogagent.jobs.models import Category
from blogagent.llm import provider_from_settings
from blogagent.schemas.artifacts import PostMetadata, ThumbnailResult, ValidationResult
from blogagent.tools.base import ContentTools, DraftRequest, RefineRequest, SourceControl
from blogagent.tools.file_manager import write_post, write_thumbnail
from blogagent.tools.git_manager import GitHubPullRequests
from blogagent.tools.thumbnail import ThumbnailGenerator
from blogagent.tools.validator import validate_post
from blogagent.tools.writer import LLMWriter


class BlogToolkit:
    """ContentTools over the configured LLM, image model and content directories.

    The LLM client is created on first use so the service can start (and serve
    reads) without API keys.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._writer: LLMWriter | None = None
        self._thumbnails = ThumbnailGenerator(settings.openai_api_key, settings.blog_image_model)

    def _llm_writer(self) -> LLMWriter:
        if self._writer is None:
            self._writer = LLMWriter(provider_from_settings(self._settings), self._settings.tavily_api_key)
        return self._writer

    def research(self, topic, category):
        return self._llm_writer().research(topic, category)

    def draft(self, request: DraftRequest) -> str:
        return self._llm_writer().draft(request)

    def ai_review(self, topic, draft):
        return self._llm_writer().ai_review(topic, draft)

    def refine(self, request: RefineRequest):
        return self._llm_writer().refine(request)

    def generate_thumbnail(self, metadata: PostMetadata, category: Category, prompt: str | None = None):
        return self._thumbnails.generate(metadata, category, prompt)

    def create_file(
        self,
        content: str,
        metadata: PostMetadata,
        category: Category,
        thumbnail: ThumbnailResult | None = None,
    ) -> str:
        if thumbnail is not None:
            write_thumbnail(self._settings.public_dir, thumbnail)
        return str(write_post(self._settings.content_dir, content, metadata, category))

    def validate(self, filepath: str) -> ValidationResult:
        return validate_post(filepath)


def build_source_control(settings: Settings) -> GitHubPullRequests:
    return GitHubPullRequests(
        repo_dir=settings.repo_dir,
        base_branch=settings.blog_base_branch,
        token=settings.github_token,
        repository=settings.github_repository,
        public_dir=Path(settings.public_dir),
    )


__all__ = [
    "BlogToolkit",
    "ContentTools",
    "DraftRequest",
    "RefineRequest",
    "SourceControl",
    "build_source_control",
]
