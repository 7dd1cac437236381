"""Prompt section renderer using Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2
import structlog

logger = structlog.get_logger()

# Template directory is relative to this module
TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptRenderer:
    """Renders prompt sections and reports from markdown templates.

    Example:
        >>> renderer = PromptRenderer()
        >>> "# Task" in renderer.render("task", task=context)
        True
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        """Initialize the renderer.

        Args:
            templates_dir: Directory containing templates.
                          Defaults to the built-in section templates.
        """
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.templates_dir)),
            autoescape=False,  # We're generating markdown, not HTML
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.StrictUndefined,
        )
        self.env.filters["percent"] = percent

    def render(self, template_name: str, **context: Any) -> str:
        """Render a template with the given context.

        Args:
            template_name: Name of the template (without .md extension).
            **context: Variables to pass to the template.

        Returns:
            Rendered content with surrounding whitespace stripped.

        Raises:
            jinja2.TemplateNotFound: If template doesn't exist.
            jinja2.UndefinedError: If required variable is missing.
        """
        template = self.env.get_template(f"{template_name}.md")
        rendered = template.render(**context).strip()
        logger.debug("Template rendered", template=template_name, length=len(rendered))
        return rendered

    def list_templates(self) -> list[str]:
        """List available template names."""
        if not self.templates_dir.exists():
            return []
        return sorted(path.stem for path in self.templates_dir.glob("*.md"))


def percent(score: float) -> int:
    """0.953 -> 95."""
    return int(round(score * 100))
