"""Write generated posts (.mdoc with YAML front matter) and thumbnails to disk."""

from __future__ import annotations

import base64
import logging
import re
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from blogagent.jobs.models import Category
from blogagent.schemas.artifacts import PostMetadata, ThumbnailResult

logger = logging.getLogger(__name__)

POST_SUFFIX = ".mdoc"
THUMBNAIL_PATH = "/images/thumbnails/{slug}/thumbnailImage.{ext}"
THUMBNAIL_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}

_FRONT_MATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n?", re.DOTALL)


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated slug. Keeps ASCII letters, digits and Hangul."""
    slug = text.strip().lower()
    slug = re.sub(r"[^a-z0-9가-힣]+", "-", slug)
    return slug.strip("-")[:80].strip("-")


def post_path(content_dir: Path, category: Category | str, slug: str) -> Path:
    return Path(content_dir) / Category(category).value / f"{slug}{POST_SUFFIX}"


def front_matter(metadata: PostMetadata) -> dict[str, Any]:
    """Front matter keys as the blog CMS reads them."""
    data: dict[str, Any] = {
        "title": metadata.title,
        "summary": metadata.summary,
        "keywords": list(metadata.keywords),
        "status": metadata.status,
        "tags": list(metadata.tags),
        "createdAt": metadata.created_at,
        "updatedAt": metadata.updated_at,
    }
    if metadata.thumbnail_image:
        data["thumbnailImage"] = metadata.thumbnail_image
    return data


def render_post(content: str, metadata: PostMetadata) -> str:
    header = yaml.safe_dump(
        front_matter(metadata), allow_unicode=True, sort_keys=False, default_flow_style=False
    )
    return f"---\n{header}---\n\n{content.strip()}\n"


def parse_post(text: str) -> tuple[dict[str, Any], str]:
    """Split a post file into (front matter, body). Missing front matter gives {}."""
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("Front matter is not a mapping")
    return data, text[match.end():]


def write_post(
    content_dir: Path,
    content: str,
    metadata: PostMetadata,
    category: Category | str,
) -> Path:
    if not metadata.slug:
        raise ValueError("Post metadata has no slug")
    if not content.strip():
        raise ValueError("Post content is empty")
    path = post_path(content_dir, category, metadata.slug)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_post(content, metadata), encoding="utf-8")
    logger.info("Wrote post %s", path)
    return path


def thumbnail_path(slug: str, mime_type: str = "image/png") -> str:
    """Public path of a post's thumbnail, e.g. /images/thumbnails/{slug}/thumbnailImage.png."""
    return THUMBNAIL_PATH.format(slug=slug or "new-post", ext=THUMBNAIL_EXTENSIONS[mime_type])


def write_thumbnail(public_dir: Path, thumbnail: ThumbnailResult) -> Path:
    """Decode the base64 image to ``{public_dir}{thumbnail.path}``."""
    path = Path(public_dir) / thumbnail.path.lstrip("/")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(base64.b64decode(thumbnail.image_base64))
    return path


def today() -> str:
    return date.today().isoformat()
