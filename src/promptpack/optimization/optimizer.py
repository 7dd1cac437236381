"""Prompt optimizer: index, score, compose and build in one call."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import structlog

from promptpack.config import PromptOptimizationConfig
from promptpack.context.fragments import Scorable, estimate_tokens
from promptpack.context.source_code import SourceCodeFragmenter
from promptpack.context.style_guide import StyleGuideIndexer
from promptpack.context.templates import TemplateIndexer
from promptpack.optimization.builder import PromptBuilder, PromptOutput
from promptpack.optimization.composer import CompositionResult, ContextComposer
from promptpack.optimization.scorer import RelevanceScorer, ScoredItem
from promptpack.optimization.task_context import TaskContext

logger = structlog.get_logger()

# Compositions using less of the budget than this trigger threshold relaxation.
ADJUSTMENT_UTILIZATION = 50.0
ADJUSTMENT_STEP = 0.15


@dataclass
class OptimizerStats:
    """Statistics accumulated across optimization runs.

    A run is counted when its selection is recorded; indexing and scoring
    alone do not count. Only ``reset()`` (or ``Optimizer.clear_cache()``)
    clears the counters.
    """

    runs_count: int = 0
    total_fragments_indexed: int = 0
    total_fragments_scored: int = 0
    total_fragments_selected: int = 0
    total_fragments_excluded: int = 0
    total_tokens_used: int = 0
    total_optimization_time: float = 0.0
    budget_utilizations: list[float] = field(default_factory=list)

    def reset(self) -> None:
        """Reset all statistics."""
        self.runs_count = 0
        self.total_fragments_indexed = 0
        self.total_fragments_scored = 0
        self.total_fragments_selected = 0
        self.total_fragments_excluded = 0
        self.total_tokens_used = 0
        self.total_optimization_time = 0.0
        self.budget_utilizations = []

    def record_fragments_indexed(self, count: int) -> None:
        self.total_fragments_indexed += count

    def record_fragments_scored(self, count: int) -> None:
        self.total_fragments_scored += count

    def record_fragments_selected(self, count: int) -> None:
        """Record a run's selection; this is what counts a run."""
        self.total_fragments_selected += count
        self.runs_count += 1

    def record_fragments_excluded(self, count: int) -> None:
        self.total_fragments_excluded += count

    def record_tokens_used(self, tokens: int) -> None:
        self.total_tokens_used += tokens

    def record_budget_utilization(self, utilization: float) -> None:
        self.budget_utilizations.append(utilization)

    def record_optimization_time(self, seconds: float) -> None:
        self.total_optimization_time += seconds

    @property
    def average_budget_utilization(self) -> float:
        """Mean utilization percentage across runs."""
        if not self.budget_utilizations:
            return 0.0
        return round(sum(self.budget_utilizations) / len(self.budget_utilizations), 2)

    @property
    def average_optimization_time(self) -> float:
        """Mean seconds per run."""
        if self.runs_count == 0:
            return 0.0
        return round(self.total_optimization_time / self.runs_count, 4)

    @property
    def average_fragments_selected(self) -> float:
        """Mean fragments selected per run."""
        if self.runs_count == 0:
            return 0.0
        return round(self.total_fragments_selected / self.runs_count, 2)

    def summary(self) -> dict[str, Any]:
        """Get summary statistics."""
        return {
            "runs_count": self.runs_count,
            "total_fragments_indexed": self.total_fragments_indexed,
            "total_fragments_scored": self.total_fragments_scored,
            "total_fragments_selected": self.total_fragments_selected,
            "total_fragments_excluded": self.total_fragments_excluded,
            "total_tokens_used": self.total_tokens_used,
            "average_fragments_selected": self.average_fragments_selected,
            "average_budget_utilization": self.average_budget_utilization,
            "average_optimization_time_ms": round(self.average_optimization_time * 1000, 2),
        }

    def __str__(self) -> str:
        avg_ms = round(self.average_optimization_time * 1000, 2)
        return f"OptimizerStats<{self.runs_count} runs, {self.average_fragments_selected} avg fragments, {avg_ms}ms avg time>"


class Optimizer:
    """Coordinates indexing, scoring, composition and prompt building.

    Style guide and template indexes are built on first use and reused
    until ``clear_cache()``. Source code is fragmented per call, and only
    for the task's affected files. One instance is not safe to share
    between threads.

    Example:
        >>> optimizer = Optimizer(Path("/project"))
        >>> output = optimizer.optimize_prompt(
        ...     task_type="feature",
        ...     description="Add user auth",
        ...     affected_files=["lib/user.rb"],
        ...     step_name="implementation",
        ... )
        >>> output.write_to_file(Path("PROMPT.md"))
    """

    def __init__(
        self,
        project_dir: Path,
        config: PromptOptimizationConfig | Mapping[str, Any] | None = None,
        *,
        stats: OptimizerStats | None = None,
    ) -> None:
        """Initialize the optimizer.

        Args:
            project_dir: Project root.
            config: Optimization config, or a mapping with the same keys.
            stats: Statistics accumulator to record into.
        """
        self.project_dir = Path(project_dir).resolve()
        if config is None:
            config = PromptOptimizationConfig()
        elif not isinstance(config, PromptOptimizationConfig):
            config = PromptOptimizationConfig.model_validate(dict(config))
        self.config = config
        self.stats = stats or OptimizerStats()

        self.scorer = RelevanceScorer(config.weights)
        self.builder = PromptBuilder(project_dir=self.project_dir)
        self.fragmenter = SourceCodeFragmenter(self.project_dir)
        self._style_guide_indexer: StyleGuideIndexer | None = None
        self._template_indexer: TemplateIndexer | None = None

    @property
    def style_guide_indexer(self) -> StyleGuideIndexer:
        """Style guide index, built on first access."""
        if self._style_guide_indexer is None:
            indexer = StyleGuideIndexer(self.project_dir, self.config.style_guide_path)
            self._guarded_index(indexer.index, "style_guide")
            self._style_guide_indexer = indexer
        return self._style_guide_indexer

    @property
    def template_indexer(self) -> TemplateIndexer:
        """Template index, built on first access."""
        if self._template_indexer is None:
            indexer = TemplateIndexer(self.project_dir, self.config.templates_dir)
            self._guarded_index(indexer.index, "templates")
            self._template_indexer = indexer
        return self._template_indexer

    def optimize_prompt(
        self,
        *,
        task_type: str | None = None,
        description: str | None = None,
        affected_files: list[str] | None = None,
        step_name: str | None = None,
        tags: list[str] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> PromptOutput:
        """Build an optimized prompt for a task.

        Args:
            task_type: Task type (feature, bugfix, ...).
            description: Task description.
            affected_files: Files the task touches; the only code fragmented.
            step_name: Current work loop step.
            tags: Additional context tags.
            options: ``max_tokens`` overrides the configured budget,
                ``include_metadata`` appends the metadata section.

        Returns:
            The built prompt.
        """
        options = options or {}
        start = time.perf_counter()
        log = logger.bind(task_type=task_type, step=step_name)

        task_context = TaskContext(
            task_type=task_type,
            description=description,
            affected_files=list(affected_files or []),
            step_name=step_name,
            tags=list(tags or []),
        )

        fragments = self._collect_fragments(task_context.affected_files)
        self.stats.record_fragments_indexed(len(fragments))

        scored = self.scorer.score_fragments(fragments, task_context)
        self.stats.record_fragments_scored(len(scored))

        max_tokens = options.get("max_tokens")
        if max_tokens is None:
            max_tokens = self.config.max_tokens
        reserved = estimate_tokens(self.builder.build_task_section(task_context))
        result = self._compose(scored, int(max_tokens), reserved)

        self.stats.record_fragments_selected(result.selected_count)
        self.stats.record_fragments_excluded(result.excluded_count)
        self.stats.record_tokens_used(result.total_tokens)
        self.stats.record_budget_utilization(result.budget_utilization)

        output = self.builder.build(
            task_context,
            result,
            include_metadata=bool(options.get("include_metadata", False)),
        )
        self.stats.record_optimization_time(time.perf_counter() - start)

        if self.config.log_selected_fragments:
            log.info(
                "Optimized prompt generated",
                selected_fragments=result.selected_count,
                excluded_fragments=result.excluded_count,
                total_tokens=output.estimated_tokens,
                budget_utilization=result.budget_utilization,
                fragments=[item.fragment.id for item in result.selected_fragments],
            )

        return output

    def clear_cache(self) -> None:
        """Drop both indexes and reset statistics."""
        self._style_guide_indexer = None
        self._template_indexer = None
        self.stats.reset()

    def statistics(self) -> dict[str, Any]:
        """Get optimization statistics."""
        return self.stats.summary()

    def _collect_fragments(self, affected_files: list[str]) -> list[Scorable]:
        fragments: list[Scorable] = []
        fragments.extend(self.style_guide_indexer.fragments)
        fragments.extend(self.template_indexer.templates)
        if affected_files:
            fragments.extend(self.fragmenter.fragment_files(affected_files))
        return fragments

    def _compose(self, scored: list[ScoredItem], max_tokens: int, reserved: int) -> CompositionResult:
        composer = ContextComposer(max_tokens=max_tokens)
        thresholds = self.config.thresholds()
        result = composer.compose(scored, reserved_tokens=reserved, thresholds=thresholds)

        if (
            self.config.dynamic_adjustment
            and result.excluded_count > 0
            and result.budget_utilization < ADJUSTMENT_UTILIZATION
        ):
            relaxed = {key: max(value - ADJUSTMENT_STEP, 0.0) for key, value in thresholds.items()}
            logger.debug("Relaxing thresholds", before=thresholds, after=relaxed)
            result = composer.compose(scored, reserved_tokens=reserved, thresholds=relaxed)

        return result

    @staticmethod
    def _guarded_index(index: Any, source: str) -> None:
        try:
            index()
        except OSError as e:
            logger.warning("Indexing failed, source contributes no fragments", source=source, error=str(e))
