"""Abstract LLM provider protocol and JSON reply parsing."""

import json
import re
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)

JSON_INSTRUCTION = "Respond with a single JSON object only. No markdown, no code fence, no explanation."

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class LLMProvider(Protocol):
    """Protocol for LLM backends (OpenAI, Anthropic)."""

    def complete(self, prompt: str, **kwargs: Any) -> str:
        """Return raw text completion."""
        ...

    def complete_structured(self, prompt: str, schema: type[T], **kwargs: Any) -> T:
        """Return completion parsed into the given Pydantic model (JSON)."""
        ...


def extract_json(raw: str) -> dict:
    """Parse the JSON object in an LLM reply, tolerating code fences and chatter."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```\s*$", "", text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(text)
        if not match:
            raise ValueError(f"No JSON object in model reply: {raw[:200]!r}")
        return json.loads(match.group(0))


def strip_code_fence(raw: str) -> str:
    """Remove one wrapping ```markdown fence around a whole reply."""
    text = raw.strip()
    if text.startswith("```") and text.endswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    return text.strip()
