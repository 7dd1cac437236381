"""Keyword-to-tag table shared by every indexer and by task contexts.

One table keeps tagging consistent: a style guide section, a template,
a code unit and a task description that talk about the same topic all
end up with the same tag.
"""

from __future__ import annotations

import re

# Insertion order is the order tags are reported in.
TAG_PATTERNS: dict[str, re.Pattern[str]] = {
    "testing": re.compile(r"test|\bspecs?\b|rspec|pytest|coverage", re.IGNORECASE),
    "security": re.compile(r"security|auth|permission|vulnerab|sanitiz", re.IGNORECASE),
    "performance": re.compile(r"performance|speed|optimi[sz]|scalab", re.IGNORECASE),
    "database": re.compile(r"database|\bsql\b|migration|schema", re.IGNORECASE),
    "api": re.compile(r"\bapi\b|endpoint|\brest\b", re.IGNORECASE),
    "ui": re.compile(r"\bui\b|interface|\bviews?\b", re.IGNORECASE),
    "naming": re.compile(r"naming|snake_case|camelcase|pascalcase", re.IGNORECASE),
    "style": re.compile(r"style|formatting|lint|convention", re.IGNORECASE),
    "error": re.compile(r"\berrors?\b|exception|rescue", re.IGNORECASE),
    "logging": re.compile(r"logging|logger|\blogs?\b", re.IGNORECASE),
    "debugging": re.compile(r"debug", re.IGNORECASE),
    "documentation": re.compile(r"documentation|readme|docstring|\bdocs?\b", re.IGNORECASE),
    "refactor": re.compile(r"refactor|complexity", re.IGNORECASE),
    "architecture": re.compile(r"architect", re.IGNORECASE),
    "planning": re.compile(r"\bplan|design", re.IGNORECASE),
    "analysis": re.compile(r"analy[sz]", re.IGNORECASE),
    "implementation": re.compile(r"implement", re.IGNORECASE),
    "zfc": re.compile(r"zero framework cognition|\bzfc\b", re.IGNORECASE),
    "analyst": re.compile(r"analyst", re.IGNORECASE),
    "developer": re.compile(r"developer", re.IGNORECASE),
}


def extract_tags(*texts: str | None) -> list[str]:
    """Return every tag whose keywords appear in any of the texts.

    Args:
        *texts: Text fragments to scan; None entries are skipped.

    Returns:
        Matching tags in table order, without duplicates.
    """
    haystack = "\n".join(t for t in texts if t)
    if not haystack:
        return []
    return [tag for tag, pattern in TAG_PATTERNS.items() if pattern.search(haystack)]


def merge_tags(*groups: list[str] | set[str] | tuple[str, ...] | None) -> list[str]:
    """Merge tag groups, lowercased and deduplicated, preserving first-seen order."""
    merged: list[str] = []
    for group in groups:
        for tag in group or ():
            normalized = tag.strip().lower()
            if normalized and normalized not in merged:
                merged.append(normalized)
    return merged
