"""Project file layout for promptpack."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_STYLE_GUIDE = "docs/LLM_STYLE_GUIDE.md"
DEFAULT_TEMPLATES_DIR = "templates"
CONFIG_FILENAME = "promptpack.yaml"
OUTPUT_DIRNAME = ".promptpack"


@dataclass
class ProjectPaths:
    """Resolves the conventional locations promptpack reads and writes.

    Attributes:
        base_dir: The project root.
        style_guide: Style guide path relative to the project root.
        templates: Template tree path relative to the project root.

    Example:
        >>> paths = ProjectPaths(Path("/project"))
        >>> paths.style_guide_md.as_posix()
        '/project/docs/LLM_STYLE_GUIDE.md'
    """

    base_dir: Path
    style_guide: str = DEFAULT_STYLE_GUIDE
    templates: str = DEFAULT_TEMPLATES_DIR

    @property
    def style_guide_md(self) -> Path:
        """Path to the LLM style guide."""
        return self.base_dir / self.style_guide

    @property
    def templates_dir(self) -> Path:
        """Root of the ``<category>/*.md`` template tree."""
        return self.base_dir / self.templates

    @property
    def config_yaml(self) -> Path:
        """Path to promptpack.yaml."""
        return self.base_dir / CONFIG_FILENAME

    @property
    def output_dir(self) -> Path:
        """Directory for generated prompt artifacts."""
        return self.base_dir / OUTPUT_DIRNAME

    @property
    def prompt_md(self) -> Path:
        """Path to the generated PROMPT.md."""
        return self.output_dir / "PROMPT.md"

    @property
    def report_md(self) -> Path:
        """Path to the last selection report."""
        return self.output_dir / "selection_report.md"

    @property
    def archive_dir(self) -> Path:
        """Directory holding archived prompts."""
        return self.output_dir / "prompt_archive"

    def resolve(self, path: str | Path) -> Path:
        """Resolve a project-relative path; absolute paths pass through."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate
