"""Anthropic LLM implementation with structured output via JSON parse."""

from typing import Any

from anthropic import Anthropic
from pydantic import BaseModel

from blogagent.llm.base import JSON_INSTRUCTION, extract_json


class AnthropicProvider:
    """Anthropic chat completion with optional structured (JSON) output."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
    ):
        self._client = Anthropic(api_key=api_key)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        response = self._client.messages.create(
            model=kwargs.get("model") or self._model,
            max_tokens=kwargs.get("max_tokens", 8192),
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text if response.content else ""

    def complete_structured(self, prompt: str, schema: type[BaseModel], **kwargs: Any) -> BaseModel:
        raw = self.complete(f"{prompt}\n\n{JSON_INSTRUCTION}", **kwargs)
        return schema.model_validate(extract_json(raw))
