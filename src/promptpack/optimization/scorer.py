"""Relevance scoring of fragments against a task context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

import structlog

from promptpack.config import ScoringWeightsConfig
from promptpack.context.fragments import CodeFragment, Scorable, TemplateFragment
from promptpack.optimization.task_context import TaskContext

logger = structlog.get_logger()

TASK_TYPE_TAGS: dict[str, list[str]] = {
    "feature": ["implementation", "planning", "testing", "api"],
    "enhancement": ["implementation", "planning", "testing", "api"],
    "bugfix": ["testing", "error", "debugging", "logging"],
    "fix": ["testing", "error", "debugging", "logging"],
    "refactor": ["refactor", "architecture", "testing", "performance"],
    "refactoring": ["refactor", "architecture", "testing", "performance"],
    "test": ["testing", "analyst"],
    "testing": ["testing", "analyst"],
    "documentation": ["documentation", "planning"],
    "docs": ["documentation", "planning"],
    "security": ["security", "testing", "error"],
    "performance": ["performance", "testing", "refactor"],
    "analysis": ["analysis", "architecture", "analyst"],
}

STEP_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("planning", ("plan", "design")),
    ("analysis", ("analy",)),
    ("implementation", ("implement", "code")),
    ("testing", ("test",)),
    ("refactor", ("refactor",)),
    ("documentation", ("doc",)),
    ("security", ("security",)),
]

NEUTRAL = 0.5

# Fragments at or above this score are always composition candidates.
CRITICAL_SCORE_THRESHOLD = 0.9


@dataclass
class ScoredItem:
    """A fragment with its relevance score.

    Attributes:
        fragment: The scored fragment.
        score: Relevance in [0, 1].
        breakdown: Raw factor values that produced the score.
    """

    fragment: Scorable
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)

    @property
    def is_critical(self) -> bool:
        """Whether the score reaches the critical threshold."""
        return self.score >= CRITICAL_SCORE_THRESHOLD


def task_type_to_tags(task_type: str | Enum | None) -> list[str]:
    """Tags relevant to a task type; unknown types map to no tags."""
    if task_type is None:
        return []
    key = task_type.value if isinstance(task_type, Enum) else str(task_type)
    return list(TASK_TYPE_TAGS.get(key.lower(), []))


def step_to_tags(step_name: str | None) -> list[str]:
    """Tags for every recognized keyword in the step name."""
    step = (step_name or "").lower()
    return [tag for tag, keywords in STEP_KEYWORDS if any(k in step for k in keywords)]


class RelevanceScorer:
    """Scores fragments (0.0-1.0) against a task context.

    The score is a weighted sum of four factors (task type, explicit tags,
    file location, work loop step) plus a flat bonus for code that lives
    in one of the task's affected files, clamped to [0, 1].

    Example:
        >>> scorer = RelevanceScorer()
        >>> context = TaskContext(task_type="feature", affected_files=["lib/user.rb"])
        >>> scorer.score_fragment(user_class_fragment, context) > 0.8
        True
    """

    def __init__(self, weights: ScoringWeightsConfig | None = None) -> None:
        self.weights = weights or ScoringWeightsConfig()

    def score_fragment(self, fragment: Scorable, context: TaskContext) -> float:
        """Score a single fragment."""
        return self._score(self.breakdown(fragment, context))

    def score_fragments(self, fragments: Iterable[Scorable], context: TaskContext) -> list[ScoredItem]:
        """Score fragments, highest first.

        Ties keep the input order.
        """
        items = []
        for fragment in fragments:
            breakdown = self.breakdown(fragment, context)
            items.append(ScoredItem(fragment=fragment, score=self._score(breakdown), breakdown=breakdown))
        items.sort(key=lambda item: -item.score)
        logger.debug("Fragments scored", count=len(items))
        return items

    def breakdown(self, fragment: Scorable, context: TaskContext) -> dict[str, float]:
        """Raw factor values for a fragment."""
        location = self._location_factor(fragment, context)
        return {
            "task_type": self._task_type_factor(fragment, context),
            "tags": self._tag_factor(fragment, context),
            "location": location,
            "step": self._step_factor(fragment, context),
            "location_bonus": self.weights.location_bonus if location == 1.0 else 0.0,
        }

    def _score(self, breakdown: dict[str, float]) -> float:
        w = self.weights
        total = (
            breakdown["task_type"] * w.task_type_match
            + breakdown["tags"] * w.tag_match
            + breakdown["location"] * w.file_location_match
            + breakdown["step"] * w.step_match
            + breakdown["location_bonus"]
        )
        return round(min(max(total, 0.0), 1.0), 4)

    def _task_type_factor(self, fragment: Scorable, context: TaskContext) -> float:
        if not context.task_type:
            return NEUTRAL

        task_tags = task_type_to_tags(context.task_type)
        if not task_tags:
            return 0.3

        matching = fragment.tag_set() & set(task_tags)
        return len(matching) / len(task_tags) if matching else 0.3

    def _tag_factor(self, fragment: Scorable, context: TaskContext) -> float:
        if not context.tags:
            return NEUTRAL

        wanted = {t.lower() for t in context.tags}
        matching = fragment.tag_set() & wanted
        if not matching:
            return 0.2
        return min(len(matching) / len(wanted), 1.0)

    def _location_factor(self, fragment: Scorable, context: TaskContext) -> float:
        if not context.affected_files or not isinstance(fragment, CodeFragment):
            return NEUTRAL
        return 1.0 if any(fragment.matches_path(f) for f in context.affected_files) else 0.1

    def _step_factor(self, fragment: Scorable, context: TaskContext) -> float:
        step_tags = step_to_tags(context.step_name)
        if not step_tags:
            return NEUTRAL

        if isinstance(fragment, TemplateFragment) and fragment.category.lower() in step_tags:
            return 0.9
        return 0.8 if fragment.tag_set() & set(step_tags) else 0.3
