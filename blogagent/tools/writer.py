"""LLM-backed research, drafting, review and refinement."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from blogagent.jobs.models import Category
from blogagent.llm.base import LLMProvider, extract_json, strip_code_fence
from blogagent.schemas.artifacts import (
    SUMMARY_MAX,
    TITLE_MAX,
    PostMetadata,
    RefinedContent,
    ResearchData,
    ReviewResult,
)
from blogagent.tools.base import DraftRequest, RefineRequest
from blogagent.tools.file_manager import slugify, today
from blogagent.tools.prompts import render_prompt
from blogagent.tools.research import search_tavily

logger = logging.getLogger(__name__)

MIN_TAGS = 3
MAX_TAGS = 5


class _ResearchSummary(BaseModel):
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def finalize_metadata(
    raw: dict,
    topic: str,
    category: Category,
    keywords: list[str] | None = None,
    on_date: str | None = None,
) -> PostMetadata:
    """Normalise model-proposed metadata so it passes validation."""
    default_keyword = "Tech" if category == Category.TECH else "Life"
    title = _truncate(str(raw.get("title") or topic), TITLE_MAX)
    summary = _truncate(str(raw.get("summary") or raw.get("description") or ""), SUMMARY_MAX)

    kw = [str(k).strip() for k in (raw.get("keywords") or []) if str(k).strip()]
    if not kw:
        kw = [default_keyword]

    tags: list[str] = []
    for t in [*(raw.get("tags") or []), *(keywords or []), *kw, default_keyword]:
        t = str(t).strip()
        if t and t not in tags:
            tags.append(t)
    tags = tags[:MAX_TAGS]
    while len(tags) < MIN_TAGS:
        tags.append(f"{default_keyword.lower()}-{len(tags) + 1}")

    slug = slugify(str(raw.get("slug") or "")) or slugify(title)
    stamp = on_date or today()
    if not slug:
        slug = f"post-{stamp}"
    return PostMetadata(
        title=title,
        summary=summary,
        keywords=kw,
        status="published",
        tags=tags,
        slug=slug,
        created_at=stamp,
        updated_at=stamp,
    )


class LLMWriter:
    """Research/draft/review/refine on top of any LLMProvider."""

    def __init__(self, llm: LLMProvider, tavily_api_key: str | None = None):
        self._llm = llm
        self._tavily_api_key = tavily_api_key

    def research(self, topic: str, category: Category) -> ResearchData:
        sources = search_tavily(topic, self._tavily_api_key)
        prompt = render_prompt(
            "research_summary.j2", topic=topic, category=Category(category).value, sources=sources
        )
        summary = self._llm.complete_structured(prompt, _ResearchSummary)
        return ResearchData(sources=sources, summary=summary.summary, key_points=summary.key_points)

    def draft(self, request: DraftRequest) -> str:
        prompt = render_prompt(
            "draft.j2",
            topic=request.topic,
            category=request.category.value,
            template=request.template.value if request.template else "default",
            tone=request.tone,
            target_reader=request.target_reader,
            keywords=request.keywords,
            research=request.research,
            feedback=request.feedback,
            previous_draft=request.previous_draft,
        )
        content = strip_code_fence(self._llm.complete(prompt))
        if not content:
            raise ValueError("Model returned an empty draft")
        return content

    def ai_review(self, topic: str, draft: str) -> ReviewResult:
        if not draft.strip():
            raise ValueError("Nothing to review: draft is empty")
        raw = self._llm.complete(render_prompt("review.j2", topic=topic, draft=draft))
        data = extract_json(raw)
        data["score"] = max(0, min(100, int(data.get("score") or 0)))
        return ReviewResult.model_validate(data)

    def refine(self, request: RefineRequest) -> RefinedContent:
        content = request.content
        if not request.content_is_final:
            prompt = render_prompt(
                "refine.j2",
                topic=request.topic,
                category=request.category.value,
                content=request.content,
                review=request.review,
                feedback=request.feedback,
            )
            content = strip_code_fence(self._llm.complete(prompt)) or request.content
        raw = extract_json(
            self._llm.complete(
                render_prompt(
                    "metadata.j2",
                    topic=request.topic,
                    category=request.category.value,
                    keywords=request.keywords,
                    content=content,
                )
            )
        )
        metadata = finalize_metadata(raw, request.topic, request.category, request.keywords)
        return RefinedContent(content=content, metadata=metadata)
