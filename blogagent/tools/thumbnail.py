"""Thumbnail generation through the OpenAI images API."""

from __future__ import annotations

import logging

from openai import OpenAI

from blogagent.jobs.models import Category
from blogagent.schemas.artifacts import PostMetadata, ThumbnailResult
from blogagent.tools.file_manager import thumbnail_path
from blogagent.tools.prompts import render_prompt

logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    """Returns None (skip, not failure) when no API key is configured."""

    def __init__(self, api_key: str | None = None, model: str = "gpt-image-1", size: str = "1536x1024"):
        self._api_key = api_key
        self._model = model
        self._size = size

    def generate(
        self, metadata: PostMetadata, category: Category, prompt: str | None = None
    ) -> ThumbnailResult | None:
        if not self._api_key:
            logger.info("No image API key configured; skipping thumbnail for %s", metadata.slug)
            return None
        image_prompt = render_prompt(
            "thumbnail.j2",
            prompt=prompt,
            title=metadata.title,
            tags=metadata.tags,
            category=Category(category).value,
        )
        kwargs = {"model": self._model, "prompt": image_prompt, "size": self._size, "n": 1}
        if self._model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"
            kwargs["size"] = "1792x1024"
        response = OpenAI(api_key=self._api_key).images.generate(**kwargs)
        b64 = response.data[0].b64_json if response.data else None
        if not b64:
            raise ValueError("Image API returned no image data")
        return ThumbnailResult(
            image_base64=b64,
            mime_type="image/png",
            path=thumbnail_path(metadata.slug),
        )
