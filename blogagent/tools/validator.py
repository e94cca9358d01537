"""Deterministic checks on a written post file."""

from __future__ import annotations

import re
from pathlib import Path

import yaml

from blogagent.schemas.artifacts import SUMMARY_MAX, TITLE_MAX, ValidationResult
from blogagent.tools.file_manager import parse_post

MIN_CONTENT_CHARS = 500
MIN_TAGS = 3
MAX_TAGS = 5
VALID_STATUSES = ("draft", "published")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _check_front_matter(data: dict) -> list[str]:
    errors: list[str] = []

    title = str(data.get("title") or "").strip()
    if not title:
        errors.append("title is missing")
    elif len(title) > TITLE_MAX:
        errors.append(f"title is longer than {TITLE_MAX} characters ({len(title)})")

    summary = str(data.get("summary") or "")
    if len(summary) > SUMMARY_MAX:
        errors.append(f"summary is longer than {SUMMARY_MAX} characters ({len(summary)})")

    keywords = data.get("keywords") or []
    if not isinstance(keywords, list) or not keywords:
        errors.append("keywords must be a non-empty list")

    status = data.get("status")
    if status not in VALID_STATUSES:
        errors.append(f"status must be one of {', '.join(VALID_STATUSES)} (got {status!r})")

    tags = data.get("tags") or []
    if not isinstance(tags, list) or not MIN_TAGS <= len(tags) <= MAX_TAGS:
        count = len(tags) if isinstance(tags, list) else 0
        errors.append(f"tags must have {MIN_TAGS}-{MAX_TAGS} entries (got {count})")

    for key in ("createdAt", "updatedAt"):
        # yaml parses bare YYYY-MM-DD as a date
        value = data.get(key)
        if value is None or not _DATE_RE.match(str(value)):
            errors.append(f"{key} must be YYYY-MM-DD (got {value!r})")
    return errors


def _check_body(body: str) -> list[str]:
    errors: list[str] = []
    if len(body.strip()) < MIN_CONTENT_CHARS:
        errors.append(f"content is shorter than {MIN_CONTENT_CHARS} characters ({len(body.strip())})")
    fences = sum(1 for line in body.splitlines() if line.lstrip().startswith("```"))
    if fences % 2:
        errors.append("unclosed code block (odd number of ``` fences)")
    return errors


def validate_post(filepath: str | Path) -> ValidationResult:
    """Run all checks; a missing file or unparsable front matter is itself an error."""
    path = Path(filepath)
    if not path.exists():
        return ValidationResult(passed=False, errors=[f"file does not exist: {path}"])

    try:
        data, body = parse_post(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, ValueError) as e:
        return ValidationResult(passed=False, errors=[f"invalid front matter: {e}"])
    if not data:
        return ValidationResult(passed=False, errors=["front matter is missing"])

    errors = _check_front_matter(data) + _check_body(body)
    return ValidationResult(passed=not errors, errors=errors)
