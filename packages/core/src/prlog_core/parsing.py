"""Parser for the sectioned text the enrichment prompt asks the model for.

Kept separate from the provider code: the fallback defaults are part of the
contract callers rely on, and they must not depend on which backend replied.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_WHY = "Unable to determine the purpose of this change."
DEFAULT_BUSINESS_IMPACT = "Business impact not clear from available information."
DEFAULT_TECHNICAL_CHANGES = "Technical changes not well documented."

SECTION_HEADERS = ("WHY", "BUSINESS_IMPACT", "TECHNICAL_CHANGES")

# A header is the literal name followed by a colon, optionally wrapped in
# markdown bold: "WHY:" or "**WHY:**". A section runs until the next known
# header or the end of the text.
_HEADER = r"(?:\*\*)?{name}:(?:\*\*)?"
_NEXT_HEADER = "|".join(_HEADER.format(name=h) for h in SECTION_HEADERS)


def _section_pattern(name: str) -> re.Pattern:
    return re.compile(_HEADER.format(name=name) + r"\s*(.*?)(?=" + _NEXT_HEADER + r"|\Z)", re.DOTALL)


_PATTERNS = {name: _section_pattern(name) for name in SECTION_HEADERS}


@dataclass
class ParsedSections:
    """Raw extraction result. A field is None when its header was missing or empty."""

    why: str | None = None
    business_impact: str | None = None
    technical_changes: str | None = None

    @property
    def complete(self) -> bool:
        return bool(self.why and self.business_impact and self.technical_changes)


def _extract(text: str, name: str) -> str | None:
    match = _PATTERNS[name].search(text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def parse_sections(text: str) -> ParsedSections:
    """Extract the WHY / BUSINESS_IMPACT / TECHNICAL_CHANGES sections from ``text``."""
    text = text or ""
    return ParsedSections(
        why=_extract(text, "WHY"),
        business_impact=_extract(text, "BUSINESS_IMPACT"),
        technical_changes=_extract(text, "TECHNICAL_CHANGES"),
    )


def with_defaults(sections: ParsedSections) -> tuple[str, str, str]:
    """Return the three section texts, substituting the fixed fallback prose."""
    return (
        sections.why or DEFAULT_WHY,
        sections.business_impact or DEFAULT_BUSINESS_IMPACT,
        sections.technical_changes or DEFAULT_TECHNICAL_CHANGES,
    )
