from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prlog_core.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    NAME = "openai"
    KIND = "hosted"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: str | None = None, max_tokens: int | None = None):
        super().__init__(model=model, max_tokens=max_tokens)
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. Install it with: pip install 'prlog[openai]'"
            )
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, prompt: str, max_tokens: int) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""
