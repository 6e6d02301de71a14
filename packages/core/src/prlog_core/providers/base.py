"""Base AI provider implementing the Template Method pattern.

All providers share the same completion algorithm:
    complete() → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

The closed set of providers is split into hosted models (Anthropic, OpenAI)
and local models (Ollama); ``kind`` records which one a provider is.
Prompt construction and response parsing live in prlog_core.enricher and
prlog_core.parsing — a provider only turns a prompt into text.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

# Shared defaults — subclasses may override as class attributes if needed.
_MAX_RETRIES = 3
_MAX_TOKENS = 500


class BaseProvider(ABC):
    NAME: str = ""
    KIND: str = "hosted"  # "hosted" | "local"
    DEFAULT_MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.3

    def __init__(self, model: str | None = None, max_tokens: int | None = None):
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens or self.MAX_TOKENS

    @property
    def identifier(self) -> str:
        """``<provider>/<model>`` — stored alongside every enrichment."""
        return f"{self.NAME}/{self.model}"

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(self, prompt: str, max_tokens: int | None = None) -> str:
        """Return the model's text reply to ``prompt``.

        Raises the last API error once MAX_RETRIES attempts have failed.
        """
        return self._call_with_retry(prompt, max_tokens or self.max_tokens)

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str, max_tokens: int) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure — _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, prompt: str, max_tokens: int) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(prompt, max_tokens)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise RuntimeError("MAX_RETRIES must be at least 1")
