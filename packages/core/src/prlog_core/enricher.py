"""PR enrichment: turn a fetched PR into a why / business impact / technical summary."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor

from prlog_core.errors import ConfigError, EnrichmentError
from prlog_core.models import ConnectionStatus, PullRequest, Summary
from prlog_core.parsing import ParsedSections, parse_sections, with_defaults
from prlog_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
MAX_AREAS = 6
CONNECTION_TEST_PROMPT = 'Respond with exactly: "AI connection successful"'

# (substrings, area) — checked against the lower-cased path in this order.
_KEYWORD_AREAS = (
    (("test", "spec"), "tests"),
    (("doc",), "docs"),
    (("config", "setting"), "config"),
    (("api", "endpoint"), "api"),
    (("ui", "component"), "ui"),
    (("db", "migration", "schema"), "database"),
)


def get_provider(config: dict) -> BaseProvider:
    """Instantiate the configured backend. Chosen once; never switched mid-run."""
    provider = config["provider"]
    model = config.get("model")
    max_tokens = config.get("max_tokens")
    if provider == "anthropic":
        from prlog_core.providers.anthropic import AnthropicProvider

        if not config.get("anthropic_api_key"):
            raise ConfigError("Anthropic API key required. Set the ANTHROPIC_API_KEY environment variable.")
        return AnthropicProvider(api_key=config["anthropic_api_key"], model=model, max_tokens=max_tokens)
    if provider == "openai":
        from prlog_core.providers.openai import OpenAIProvider

        if not config.get("openai_api_key"):
            raise ConfigError("OpenAI API key required. Set the OPENAI_API_KEY environment variable.")
        return OpenAIProvider(api_key=config["openai_api_key"], model=model, max_tokens=max_tokens)
    if provider == "ollama":
        from prlog_core.providers.ollama import OllamaProvider

        return OllamaProvider(endpoint=config.get("endpoint"), model=model, max_tokens=max_tokens)
    raise ConfigError(f"Unsupported AI provider: {provider!r}. Choose 'anthropic', 'openai' or 'ollama'.")


def build_prompt(pr: PullRequest) -> str:
    if pr.files:
        files_summary = "\n".join(f"- {f.path} (+{f.additions}/-{f.deletions})" for f in pr.files)
    else:
        files_summary = "No file changes detected"
    if pr.reviews:
        reviews_summary = "\n".join(f"- {r.author}: {r.state}" for r in pr.reviews)
    else:
        reviews_summary = "No reviews"

    return f"""You are analyzing a GitHub Pull Request to extract institutional knowledge. \
Focus on the "why" behind the changes, not just "what" was changed.

**PR Details:**
- Title: {pr.title}
- Author: {pr.author}
- Number: #{pr.number}
- Branch: {pr.head_branch} → {pr.base_branch}

**Description:**
{pr.body or "No description provided"}

**Files Changed ({pr.changed_files} files, +{pr.additions}/-{pr.deletions}):**
{files_summary}

**Reviews:**
{reviews_summary}

**Labels:** {", ".join(pr.labels) or "None"}

Please provide a structured analysis with these exact sections:

**WHY:** (2-3 sentences) Why was this change needed? What problem did it solve or what opportunity did it address?

**BUSINESS_IMPACT:** (1-2 sentences) What business value or user benefit did this provide? \
How does it relate to product goals?

**TECHNICAL_CHANGES:** (2-3 sentences) What was the technical approach? \
Any important architectural decisions or tradeoffs?

Keep responses concise and focus on information that would help future developers understand \
the context and reasoning behind this change."""


def extract_areas(pr: PullRequest) -> list[str]:
    """Tag a PR with coarse code areas taken from its changed paths."""
    areas: dict[str, None] = {}
    for f in pr.files:
        parts = f.path.split("/")
        if len(parts) > 1:
            areas[parts[0]] = None
        lowered = f.path.lower()
        for keywords, area in _KEYWORD_AREAS:
            if any(k in lowered for k in keywords) or (area == "docs" and lowered.endswith(".md")):
                areas[area] = None
    return list(areas)[:MAX_AREAS]


def calculate_confidence(sections: ParsedSections, pr: PullRequest) -> float:
    """Deterministic heuristic in [0, 1]; the model never scores itself."""
    score = 0.5
    if pr.body and len(pr.body) > 50:
        score += 0.2
    if pr.reviews:
        score += 0.1
    if pr.labels:
        score += 0.1
    if sections.complete:
        score += 0.1
    # Very large PRs are harder to summarise accurately.
    if pr.changed_files > 20:
        score -= 0.1
    return round(max(0.0, min(1.0, score)), 2)


class Enricher:
    """Summarises PRs with one backend chosen at construction time."""

    def __init__(self, provider: BaseProvider, batch_size: int = DEFAULT_BATCH_SIZE):
        self.provider = provider
        self.batch_size = batch_size

    @property
    def model_identifier(self) -> str:
        return self.provider.identifier

    def summarize(self, pr: PullRequest) -> Summary:
        """Return a Summary for ``pr``.

        Raises EnrichmentError only when the backend call fails. Output that
        cannot be parsed never raises; the fixed defaults are used instead.
        """
        prompt = build_prompt(pr)
        try:
            text = self.provider.complete(prompt)
        except Exception as e:
            raise EnrichmentError(f"AI summarization failed: {e}") from e

        sections = parse_sections(text)
        if not sections.complete:
            logger.debug("PR #%d: reply missing one or more sections, using defaults", pr.number)
        why, business_impact, technical_changes = with_defaults(sections)
        return Summary(
            why=why,
            business_impact=business_impact,
            technical_changes=technical_changes,
            areas=extract_areas(pr),
            confidence_score=calculate_confidence(sections, pr),
        )

    def summarize_batch(
        self,
        prs: Sequence[PullRequest],
        batch_size: int | None = None,
        on_progress: Callable[[int, int, PullRequest | None], None] | None = None,
        on_error: Callable[[PullRequest, Exception], None] | None = None,
    ) -> Iterator[list[tuple[PullRequest, Summary]]]:
        """Yield ``(pr, summary)`` pairs chunk by chunk, in input order.

        Members of a chunk are summarised concurrently and joined before the
        next chunk starts. A failed PR is passed to ``on_error`` and left out
        of its chunk; it never aborts the batch.
        """
        size = batch_size or self.batch_size
        total = len(prs)
        processed = 0

        for start in range(0, total, size):
            chunk = list(prs[start : start + size])
            with ThreadPoolExecutor(max_workers=len(chunk)) as executor:
                futures = [executor.submit(self.summarize, pr) for pr in chunk]

                results: list[tuple[PullRequest, Summary]] = []
                for pr, future in zip(chunk, futures):
                    try:
                        results.append((pr, future.result()))
                    except Exception as e:
                        logger.warning("Enrichment failed for PR #%d: %s", pr.number, e)
                        if on_error:
                            on_error(pr, e)
                    processed += 1
                    if on_progress:
                        on_progress(processed, total, pr)

            if results:
                yield results

    def test_connection(self) -> ConnectionStatus:
        """Send a canned prompt and check the backend answers sensibly. Never raises."""
        try:
            text = self.provider.complete(CONNECTION_TEST_PROMPT, max_tokens=10)
        except Exception as e:
            return ConnectionStatus(
                success=False,
                provider=self.provider.NAME,
                model=self.provider.model,
                error=f"Connection failed: {e}",
            )
        success = "successful" in (text or "")
        return ConnectionStatus(
            success=success,
            provider=self.provider.NAME,
            model=self.provider.model,
            error=None if success else "Unexpected response from AI model",
        )
