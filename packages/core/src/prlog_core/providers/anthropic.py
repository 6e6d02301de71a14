from __future__ import annotations

from prlog_core.providers.base import BaseProvider


class AnthropicProvider(BaseProvider):
    NAME = "anthropic"
    KIND = "hosted"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None, max_tokens: int | None = None):
        super().__init__(model=model, max_tokens=max_tokens)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prlog[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, prompt: str, max_tokens: int) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
