"""Style guide indexer.

Splits the project's LLM style guide into heading-delimited fragments
so that only the sections relevant to a task reach the prompt.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from promptpack.context.fragments import Fragment
from promptpack.context.keywords import extract_tags
from promptpack.paths import DEFAULT_STYLE_GUIDE

logger = structlog.get_logger()

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")


def slugify(text: str) -> str:
    """Lowercase, replace non-alphanumeric runs with one hyphen, trim hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class StyleGuideIndexer:
    """Indexes the style guide into retrievable fragments.

    Each markdown heading (levels 1-6) opens a fragment. A fragment owns
    the text between its heading and the next heading, so a parent
    section and its subsections never share content.

    Example:
        >>> indexer = StyleGuideIndexer(Path("/project"))
        >>> indexer.index()
        >>> indexer.find_fragments(tags=["testing"], max_level=2)
    """

    def __init__(self, project_dir: Path, style_guide_path: str = DEFAULT_STYLE_GUIDE) -> None:
        """Initialize the indexer.

        Args:
            project_dir: Project root.
            style_guide_path: Style guide location relative to the root.
        """
        self.project_dir = Path(project_dir)
        self.style_guide_path = self.project_dir / style_guide_path
        self.fragments: list[Fragment] = []

    def index(self) -> list[Fragment]:
        """Parse the style guide.

        Returns:
            Indexed fragments; empty if the file is missing or unreadable.
        """
        self.fragments = []
        log = logger.bind(path=str(self.style_guide_path))

        try:
            if not self.style_guide_path.is_file():
                log.debug("No style guide found")
                return self.fragments
            content = self.style_guide_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Failed to read style guide", error=str(e))
            return self.fragments

        self.fragments = self._parse(content)
        log.debug("Style guide indexed", count=len(self.fragments))
        return self.fragments

    def find_fragments(
        self,
        *,
        tags: list[str] | None = None,
        heading: str | None = None,
        min_level: int | None = None,
        max_level: int | None = None,
    ) -> list[Fragment]:
        """Find fragments matching every given criterion.

        Args:
            tags: Match fragments carrying any of these tags.
            heading: Case-insensitive regex searched in the heading.
            min_level: Minimum heading depth.
            max_level: Maximum heading depth.

        Returns:
            Matching fragments in document order.
        """
        results = self.fragments

        if tags:
            results = [f for f in results if f.matches_any_tag(tags)]

        if heading:
            pattern = re.compile(heading, re.IGNORECASE)
            results = [f for f in results if pattern.search(f.heading)]

        if min_level is not None:
            results = [f for f in results if f.level >= min_level]

        if max_level is not None:
            results = [f for f in results if f.level <= max_level]

        return results

    def all_tags(self) -> list[str]:
        """All unique tags, sorted."""
        return sorted({tag for f in self.fragments for tag in f.tags})

    def find_by_id(self, fragment_id: str) -> Fragment | None:
        """Get a fragment by its exact ID."""
        return next((f for f in self.fragments if f.id == fragment_id), None)

    def _parse(self, content: str) -> list[Fragment]:
        fragments: list[Fragment] = []
        seen_ids: set[str] = set()
        current: tuple[str, int] | None = None
        body: list[str] = []
        in_fence = False

        def flush() -> None:
            if current is None:
                return
            heading, level = current
            fragment_id = self._unique_id(heading, seen_ids, len(fragments) + 1)
            text = "\n".join(body).strip()
            fragments.append(
                Fragment(
                    id=fragment_id,
                    heading=heading,
                    level=level,
                    content=text,
                    tags=extract_tags(heading, text),
                )
            )

        for line in content.splitlines():
            if FENCE_PATTERN.match(line):
                in_fence = not in_fence
            match = None if in_fence else HEADING_PATTERN.match(line)
            if match:
                flush()
                current = (match.group(2).strip(), len(match.group(1)))
                body = []
            elif current is not None:
                body.append(line)

        flush()
        return fragments

    @staticmethod
    def _unique_id(heading: str, seen: set[str], position: int) -> str:
        base = slugify(heading) or f"section-{position}"
        candidate = base
        suffix = 2
        while candidate in seen:
            candidate = f"{base}-{suffix}"
            suffix += 1
        seen.add(candidate)
        return candidate
