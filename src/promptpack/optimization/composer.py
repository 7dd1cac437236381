"""Composes prompt context from scored fragments within a token budget."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from promptpack.context.fragments import FragmentKind
from promptpack.optimization.scorer import ScoredItem

logger = structlog.get_logger()


@dataclass
class CompositionResult:
    """Selected fragments and composition statistics.

    Attributes:
        selected_fragments: Selected items, highest score first.
        total_tokens: Estimated tokens of the selection.
        budget: Token budget after reservations.
        excluded_count: Deduplicated candidates that were not selected.
        average_score: Mean score of the selection (0.0 when empty).
    """

    selected_fragments: list[ScoredItem]
    total_tokens: int
    budget: int
    excluded_count: int
    average_score: float

    @property
    def budget_utilization(self) -> float:
        """Percentage of the budget used (0.0 for a non-positive budget)."""
        if self.budget <= 0:
            return 0.0
        return round(self.total_tokens / self.budget * 100, 2)

    @property
    def selected_count(self) -> int:
        """Number of selected fragments."""
        return len(self.selected_fragments)

    @property
    def over_budget(self) -> bool:
        """Whether the selection exceeds the budget."""
        return self.total_tokens > self.budget

    def fragments_by_type(self, kind: FragmentKind | str) -> list[ScoredItem]:
        """Selected items of one fragment kind, in selection order."""
        wanted = FragmentKind(kind)
        return [item for item in self.selected_fragments if item.fragment.kind == wanted]

    def summary(self) -> dict[str, Any]:
        """Get summary statistics."""
        return {
            "selected_count": self.selected_count,
            "excluded_count": self.excluded_count,
            "total_tokens": self.total_tokens,
            "budget": self.budget,
            "utilization": self.budget_utilization,
            "average_score": self.average_score,
            "over_budget": self.over_budget,
            "by_type": {
                "style_guide": len(self.fragments_by_type(FragmentKind.STYLE_GUIDE)),
                "templates": len(self.fragments_by_type(FragmentKind.TEMPLATE)),
                "code": len(self.fragments_by_type(FragmentKind.CODE)),
            },
        }

    def __str__(self) -> str:
        return (
            f"CompositionResult<{self.selected_count} fragments, "
            f"{self.total_tokens}/{self.budget} tokens ({self.budget_utilization}%)>"
        )


class ContextComposer:
    """Greedily selects the most relevant fragments under a token budget.

    Algorithm:
        1. Budget is ``max_tokens - reserved_tokens``, floored at zero.
        2. Duplicate ids keep their highest-scoring entry.
        3. Critical items (score >= 0.9) are always candidates; the rest
           must clear their category threshold, if one is given.
        4. Candidates are taken highest score first (critical first on
           ties, then input order) while they fit the remaining budget.

    The budget is never exceeded: a critical fragment that does not fit is
    excluded like any other.

    Example:
        >>> composer = ContextComposer(max_tokens=8000)
        >>> result = composer.compose(scored, thresholds={"source": 0.4})
    """

    def __init__(self, max_tokens: int = 16000) -> None:
        self.max_tokens = max_tokens

    def compose(
        self,
        scored_fragments: list[ScoredItem],
        *,
        reserved_tokens: int = 0,
        thresholds: Mapping[str, float] | None = None,
    ) -> CompositionResult:
        """Compose context from scored fragments.

        Args:
            scored_fragments: Scored items in any order.
            reserved_tokens: Tokens held back for the rest of the prompt.
            thresholds: Minimum score per category key
                (``style_guide``, ``templates``, ``source``).

        Returns:
            CompositionResult with the selection and its statistics.
        """
        thresholds = thresholds or {}
        budget = max(self.max_tokens - reserved_tokens, 0)
        log = logger.bind(budget=budget, candidates=len(scored_fragments))

        unique = self._deduplicate(scored_fragments)
        candidates = [item for item in unique if self._admits(item, thresholds)]

        # Stable sort: equal scores keep their indexing order.
        candidates.sort(key=lambda item: (-item.score, not item.is_critical))

        selected: list[ScoredItem] = []
        used_tokens = 0
        for item in candidates:
            tokens = item.fragment.estimated_tokens
            if used_tokens + tokens <= budget:
                selected.append(item)
                used_tokens += tokens
            else:
                log.debug(
                    "Fragment excluded by budget",
                    fragment=item.fragment.id,
                    score=item.score,
                    tokens=tokens,
                    critical=item.is_critical,
                )

        average = round(sum(item.score for item in selected) / len(selected), 3) if selected else 0.0
        result = CompositionResult(
            selected_fragments=selected,
            total_tokens=used_tokens,
            budget=budget,
            excluded_count=len(unique) - len(selected),
            average_score=average,
        )

        log.debug(
            "Composition complete",
            selected=result.selected_count,
            excluded=result.excluded_count,
            tokens=used_tokens,
            utilization=result.budget_utilization,
        )
        return result

    @staticmethod
    def _deduplicate(items: list[ScoredItem]) -> list[ScoredItem]:
        best: dict[str, ScoredItem] = {}
        for item in items:
            current = best.get(item.fragment.id)
            if current is None or item.score > current.score:
                best[item.fragment.id] = item
        # Dict order is first-seen order, a replaced entry keeps its slot.
        return list(best.values())

    @staticmethod
    def _admits(item: ScoredItem, thresholds: Mapping[str, float]) -> bool:
        if item.is_critical:
            return True
        threshold = thresholds.get(item.fragment.kind.threshold_key)
        return threshold is None or item.score >= threshold
