"""Template indexer.

Indexes step templates laid out as ``templates/<category>/*.md``.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from promptpack.context.fragments import TemplateFragment
from promptpack.context.keywords import extract_tags, merge_tags
from promptpack.paths import DEFAULT_TEMPLATES_DIR

logger = structlog.get_logger()

TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def titleize(filename: str) -> str:
    """Turn ``write_unit_tests`` into ``Write Unit Tests``."""
    return " ".join(part.capitalize() for part in re.split(r"[_\-\s]+", filename) if part)


class TemplateIndexer:
    """Indexes step templates into retrievable fragments.

    Example:
        >>> indexer = TemplateIndexer(Path("/project"))
        >>> indexer.index()
        >>> indexer.find_templates(category="analysis", tags=["testing"])
    """

    def __init__(self, project_dir: Path, templates_dir: str = DEFAULT_TEMPLATES_DIR) -> None:
        self.project_dir = Path(project_dir)
        self.templates_dir = self.project_dir / templates_dir
        self.templates: list[TemplateFragment] = []

    def index(self) -> list[TemplateFragment]:
        """Index every ``<category>/*.md`` file under the templates directory.

        Returns:
            Indexed templates, ordered by category then filename.
        """
        self.templates = []
        log = logger.bind(path=str(self.templates_dir))

        try:
            if not self.templates_dir.is_dir():
                log.debug("No templates directory found")
                return self.templates
            category_dirs = sorted(p for p in self.templates_dir.iterdir() if p.is_dir())
        except OSError as e:
            log.warning("Failed to list templates directory", error=str(e))
            return self.templates

        for category_dir in category_dirs:
            try:
                files = sorted(category_dir.glob("*.md"))
            except OSError as e:
                log.warning("Failed to list template category", category=category_dir.name, error=str(e))
                continue
            for file_path in files:
                template = self._parse_template(category_dir.name, file_path)
                if template:
                    self.templates.append(template)

        log.debug("Templates indexed", count=len(self.templates), categories=self.categories())
        return self.templates

    def find_templates(
        self,
        *,
        category: str | None = None,
        tags: list[str] | None = None,
        name: str | None = None,
    ) -> list[TemplateFragment]:
        """Find templates matching every given criterion.

        Args:
            category: Exact category to filter by.
            tags: Match templates carrying any of these tags.
            name: Case-insensitive regex searched in the template name.

        Returns:
            Matching templates.
        """
        results = self.templates

        if category:
            results = [t for t in results if t.category == category]

        if tags:
            results = [t for t in results if t.matches_any_tag(tags)]

        if name:
            pattern = re.compile(name, re.IGNORECASE)
            results = [t for t in results if pattern.search(t.name)]

        return results

    def all_tags(self) -> list[str]:
        """All unique tags, sorted."""
        return sorted({tag for t in self.templates for tag in t.tags})

    def categories(self) -> list[str]:
        """All categories with at least one template, sorted."""
        return sorted({t.category for t in self.templates})

    def find_by_id(self, template_id: str) -> TemplateFragment | None:
        """Get a template by its exact ID."""
        return next((t for t in self.templates if t.id == template_id), None)

    def _parse_template(self, category: str, file_path: Path) -> TemplateFragment | None:
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read template", file=str(file_path), error=str(e))
            return None

        filename = file_path.stem
        match = TITLE_PATTERN.search(content)
        name = match.group(1).strip() if match else titleize(filename)

        # Underscores are word characters, so split them out before matching.
        readable_filename = re.sub(r"[_\-]+", " ", filename)
        tags = merge_tags([category], extract_tags(readable_filename, content))

        return TemplateFragment(
            id=f"{category}/{filename}",
            name=name,
            category=category,
            file_path=str(file_path),
            content=content,
            tags=tags,
        )
