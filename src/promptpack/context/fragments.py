"""Fragment kinds: the scorable units of prompt context."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

TEST_FILE_PATTERN = re.compile(r"(^|/)(test_[^/]+\.py|[^/]+_test\.py|[^/]+_(spec|test)\.rb)$")

LANGUAGES = {
    ".py": "python",
    ".rb": "ruby",
}


def estimate_tokens(text: str) -> int:
    """Coarse token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


class FragmentKind(str, Enum):
    """Discriminator for the three fragment variants."""

    STYLE_GUIDE = "style_guide"
    TEMPLATE = "template"
    CODE = "code"

    @property
    def threshold_key(self) -> str:
        """Key of this kind in the ``include_threshold`` mapping."""
        return _THRESHOLD_KEYS[self]


_THRESHOLD_KEYS = {
    FragmentKind.STYLE_GUIDE: "style_guide",
    FragmentKind.TEMPLATE: "templates",
    FragmentKind.CODE: "source",
}


class CodeUnitType(str, Enum):
    """Kinds of code units a source file is split into."""

    REQUIRES = "requires"
    CLASS = "class"
    METHOD = "method"


class Scorable(ABC):
    """Contract shared by every fragment kind.

    Scoring and composition only rely on ``id``, ``content``, ``tags``,
    ``kind`` and the size helpers defined here.
    """

    id: str
    content: str
    tags: list[str]

    @property
    @abstractmethod
    def kind(self) -> FragmentKind:
        """Which variant this fragment is."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Human-readable name used in reports."""

    @property
    def size(self) -> int:
        """Content length in characters."""
        return len(self.content)

    @property
    def estimated_tokens(self) -> int:
        """Estimated token count of the content."""
        return estimate_tokens(self.content)

    def matches_any_tag(self, query_tags: Iterable[str]) -> bool:
        """Check whether any query tag matches, case-insensitively."""
        wanted = {t.lower() for t in query_tags}
        return any(tag.lower() in wanted for tag in self.tags)

    def tag_set(self) -> set[str]:
        """Lowercased tags as a set."""
        return {t.lower() for t in self.tags}


@dataclass
class Fragment(Scorable):
    """A heading-delimited section of the style guide.

    Attributes:
        id: Slug of the heading text.
        heading: Heading text without the leading hashes.
        level: Markdown heading depth (1-6).
        content: Section body up to the next heading of any depth.
        tags: Tags matched from heading and content.
    """

    id: str
    heading: str
    level: int
    content: str
    tags: list[str] = field(default_factory=list)

    @property
    def kind(self) -> FragmentKind:
        return FragmentKind.STYLE_GUIDE

    @property
    def label(self) -> str:
        return self.heading

    def summary(self) -> dict[str, Any]:
        """Get a summary of the fragment."""
        return {
            "id": self.id,
            "heading": self.heading,
            "level": self.level,
            "tags": list(self.tags),
            "size": self.size,
            "estimated_tokens": self.estimated_tokens,
        }

    def __str__(self) -> str:
        return f"Fragment<{self.id}>"


@dataclass
class TemplateFragment(Scorable):
    """A complete step template from ``templates/<category>/<name>.md``.

    Attributes:
        id: ``<category>/<basename>``.
        name: First H1 heading, or the title-cased filename.
        category: Parent directory name.
        file_path: Path of the template file.
        content: Whole template text.
        tags: Category plus keyword matches.
    """

    id: str
    name: str
    category: str
    file_path: str
    content: str
    tags: list[str] = field(default_factory=list)

    @property
    def kind(self) -> FragmentKind:
        return FragmentKind.TEMPLATE

    @property
    def label(self) -> str:
        return self.name

    def summary(self) -> dict[str, Any]:
        """Get a summary of the template."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "tags": list(self.tags),
            "size": self.size,
            "estimated_tokens": self.estimated_tokens,
        }

    def __str__(self) -> str:
        return f"TemplateFragment<{self.id}>"


@dataclass
class CodeFragment(Scorable):
    """A logical unit of a source file: its imports, a class, or a function.

    Attributes:
        id: ``<path>:<name>``, unique within one fragmenting pass.
        file_path: Absolute path of the source file.
        type: Unit kind (requires, class or method).
        name: Unit name.
        content: Source text of the unit.
        line_start: First line, 1-indexed.
        line_end: Last line, 1-indexed and inclusive.
        tags: Tags derived from the unit name and file.
    """

    id: str
    file_path: str
    type: CodeUnitType
    name: str
    content: str
    line_start: int
    line_end: int
    tags: list[str] = field(default_factory=list)

    @property
    def kind(self) -> FragmentKind:
        return FragmentKind.CODE

    @property
    def label(self) -> str:
        return f"{self.type.value}: {self.name}"

    @property
    def line_count(self) -> int:
        """Number of lines covered by the unit."""
        return self.line_end - self.line_start + 1

    @property
    def is_test_file(self) -> bool:
        """Whether the fragment comes from a test or spec file."""
        return bool(TEST_FILE_PATTERN.search(Path(self.file_path).as_posix()))

    @property
    def language(self) -> str:
        """Fence language for the file's extension."""
        return LANGUAGES.get(Path(self.file_path).suffix, "")

    def relative_path(self, project_root: str | Path) -> str:
        """File path with the project root prefix stripped."""
        try:
            return Path(self.file_path).relative_to(project_root).as_posix()
        except ValueError:
            return self.file_path

    def matches_path(self, affected_file: str) -> bool:
        """Whether this fragment's file is the given project-relative or absolute path."""
        own = Path(self.file_path).as_posix()
        wanted = Path(affected_file).as_posix()
        if wanted.startswith("./"):
            wanted = wanted[2:]
        return own == wanted or own.endswith(f"/{wanted}")

    def summary(self) -> dict[str, Any]:
        """Get a summary of the fragment."""
        return {
            "id": self.id,
            "file_path": self.file_path,
            "type": self.type.value,
            "name": self.name,
            "lines": f"{self.line_start}-{self.line_end}",
            "line_count": self.line_count,
            "size": self.size,
            "estimated_tokens": self.estimated_tokens,
            "test_file": self.is_test_file,
        }

    def __str__(self) -> str:
        return f"CodeFragment<{self.type.value}:{self.name}>"
