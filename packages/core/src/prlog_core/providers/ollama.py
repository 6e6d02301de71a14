"""Local model provider: an Ollama server reached through its OpenAI-compatible API."""

from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prlog_core.providers.openai import OpenAIProvider

DEFAULT_ENDPOINT = "http://localhost:11434"


class OllamaProvider(OpenAIProvider):
    NAME = "ollama"
    KIND = "local"
    DEFAULT_MODEL = "llama3.1"

    def __init__(self, endpoint: str | None = None, model: str | None = None, max_tokens: int | None = None):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for the ollama provider. "
                "Install it with: pip install 'prlog[openai]'"
            )
        self.endpoint = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens or self.MAX_TOKENS
        # Ollama ignores the key, but the SDK refuses to start without one.
        self.client = _OpenAI(base_url=f"{self.endpoint}/v1", api_key="ollama")
