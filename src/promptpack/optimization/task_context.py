"""Task context: what the agent is about to work on."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from promptpack.context.keywords import extract_tags, merge_tags

SOURCE_PATH_PATTERN = re.compile(r"(?<![\w/.-])((?:[\w.-]+/)*[\w.-]+\.(?:py|rb))\b")


class TaskType(str, Enum):
    """Known task types."""

    FEATURE = "feature"
    ENHANCEMENT = "enhancement"
    BUGFIX = "bugfix"
    FIX = "fix"
    REFACTOR = "refactor"
    REFACTORING = "refactoring"
    TEST = "test"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    DOCS = "docs"
    SECURITY = "security"
    PERFORMANCE = "performance"
    ANALYSIS = "analysis"


@dataclass
class TaskContext:
    """Describes the current task for relevance scoring.

    ``tags`` ends up as the union of the explicit tags and the tags found
    in ``description``, lowercased and deduplicated.

    Attributes:
        task_type: Task type symbol (e.g. "feature"); unknown values are kept as-is.
        description: Free-text task description.
        affected_files: Project-relative paths the task touches, in order.
        step_name: Current work loop step.
        tags: Context tags.
    """

    task_type: str | None = None
    description: str | None = None
    affected_files: list[str] = field(default_factory=list)
    step_name: str | None = None
    tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.task_type, Enum):
            self.task_type = self.task_type.value
        self.affected_files = list(self.affected_files or [])
        self.tags = merge_tags(self.tags, extract_tags(self.description))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "task_type": self.task_type,
            "description": self.description,
            "affected_files": list(self.affected_files),
            "step_name": self.step_name,
            "tags": list(self.tags),
        }


def infer_task_type(step_name: str | None, user_input: str | None = None) -> TaskType:
    """Guess the task type from a work loop step and free user input.

    Args:
        step_name: Current step name.
        user_input: Free text supplied by the user.

    Returns:
        The inferred task type; FEATURE when nothing more specific matches.
    """
    step = (step_name or "").lower()
    text = (user_input or "").lower()

    if "test" in step or "test" in text:
        return TaskType.TESTING
    if "fix" in step or "fix" in text or "bug" in text:
        return TaskType.BUGFIX
    if "refactor" in step or "refactor" in text:
        return TaskType.REFACTOR
    if "analyz" in step or "review" in step:
        return TaskType.ANALYSIS
    return TaskType.FEATURE


def extract_affected_files(text: str | None, extra_paths: Iterable[str] | None = None) -> list[str]:
    """Collect source paths mentioned in free text plus known output paths.

    Args:
        text: Free text such as "update lib/user.rb".
        extra_paths: Additional candidate paths; only source files are kept.

    Returns:
        Deduplicated paths in first-seen order.
    """
    files: list[str] = []
    for path in SOURCE_PATH_PATTERN.findall(text or ""):
        if path not in files:
            files.append(path)
    for path in extra_paths or []:
        if path and SOURCE_PATH_PATTERN.fullmatch(path) and path not in files:
            files.append(path)
    return files
