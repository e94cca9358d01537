"""OpenAI LLM implementation with structured output via JSON in prompt."""

from typing import Any

from openai import OpenAI
from pydantic import BaseModel

from blogagent.llm.base import JSON_INSTRUCTION, extract_json


class OpenAIProvider:
    """OpenAI chat completion with optional structured (JSON) output."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
    ):
        self._client = OpenAI(api_key=api_key)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        # API errors propagate; the workflow records them as step failures
        response = self._client.chat.completions.create(
            model=kwargs.get("model") or self._model,
            messages=[{"role": "user", "content": prompt}],
            **{k: v for k, v in kwargs.items() if k not in ("model",)},
        )
        msg = response.choices[0].message
        return msg.content or ""

    def complete_structured(self, prompt: str, schema: type[BaseModel], **kwargs: Any) -> BaseModel:
        raw = self.complete(f"{prompt}\n\n{JSON_INSTRUCTION}", **kwargs)
        return schema.model_validate(extract_json(raw))
