"""Unit tests for the optimizer facade and its statistics."""

from __future__ import annotations

from pathlib import Path

import pytest

from promptpack.config import PromptOptimizationConfig
from promptpack.optimization.optimizer import Optimizer, OptimizerStats


class TestOptimizerStats:
    """Tests for OptimizerStats."""

    def test_empty_averages(self) -> None:
        """Averages are zero before any run."""
        stats = OptimizerStats()

        assert stats.average_budget_utilization == 0.0
        assert stats.average_optimization_time == 0.0
        assert stats.average_fragments_selected == 0.0

    def test_only_selection_counts_a_run(self) -> None:
        """Indexing and scoring alone are not runs."""
        stats = OptimizerStats()
        stats.record_fragments_indexed(10)
        stats.record_fragments_scored(10)

        assert stats.runs_count == 0

        stats.record_fragments_selected(4)
        assert stats.runs_count == 1

    def test_averages(self) -> None:
        stats = OptimizerStats()
        for selected, utilization, seconds in [(4, 40.0, 0.1), (2, 60.0, 0.3)]:
            stats.record_fragments_selected(selected)
            stats.record_budget_utilization(utilization)
            stats.record_optimization_time(seconds)

        assert stats.average_fragments_selected == 3.0
        assert stats.average_budget_utilization == 50.0
        assert stats.average_optimization_time == pytest.approx(0.2)

    def test_summary_and_reset(self) -> None:
        stats = OptimizerStats()
        stats.record_fragments_selected(3)
        stats.record_fragments_excluded(2)
        stats.record_tokens_used(120)

        summary = stats.summary()
        assert set(summary) == {
            "runs_count",
            "total_fragments_indexed",
            "total_fragments_scored",
            "total_fragments_selected",
            "total_fragments_excluded",
            "total_tokens_used",
            "average_fragments_selected",
            "average_budget_utilization",
            "average_optimization_time_ms",
        }
        assert summary["total_tokens_used"] == 120
        assert str(stats).startswith("OptimizerStats<1 runs")

        stats.reset()
        assert stats.summary()["runs_count"] == 0
        assert stats.budget_utilizations == []


class TestOptimizer:
    """Tests for Optimizer construction and caching."""

    def test_accepts_mapping_config(self, tmp_project: Path) -> None:
        optimizer = Optimizer(tmp_project, {"max_tokens": 500, "include_threshold": {"source": 0.9}})

        assert isinstance(optimizer.config, PromptOptimizationConfig)
        assert optimizer.config.max_tokens == 500
        assert optimizer.config.include_threshold.source == 0.9
        assert optimizer.config.include_threshold.style_guide == 0.45

    def test_indexes_are_cached(self, sample_project: Path) -> None:
        """Indexes are built once; edits are picked up after clear_cache."""
        optimizer = Optimizer(sample_project)
        first = optimizer.style_guide_indexer
        assert len(first.fragments) == 5

        (sample_project / "docs" / "LLM_STYLE_GUIDE.md").write_text("# Only\nOne section\n")
        assert optimizer.style_guide_indexer is first
        assert len(optimizer.style_guide_indexer.fragments) == 5

        optimizer.clear_cache()
        assert len(optimizer.style_guide_indexer.fragments) == 1

    def test_clear_cache_resets_statistics(self, sample_project: Path) -> None:
        optimizer = Optimizer(sample_project)
        optimizer.optimize_prompt(task_type="feature", description="x")
        assert optimizer.statistics()["runs_count"] == 1

        optimizer.clear_cache()

        assert optimizer.statistics()["runs_count"] == 0

    def test_injected_stats_are_shared(self, sample_project: Path) -> None:
        """Two optimizers can record into one accumulator."""
        stats = OptimizerStats()
        Optimizer(sample_project, stats=stats).optimize_prompt(task_type="feature")
        Optimizer(sample_project, stats=stats).optimize_prompt(task_type="bugfix")

        assert stats.runs_count == 2

    def test_unreadable_style_guide_degrades(self, sample_project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """An OSError while indexing leaves that source empty."""

        def boom(self):
            raise PermissionError("denied")

        monkeypatch.setattr("promptpack.context.style_guide.StyleGuideIndexer.index", boom)
        optimizer = Optimizer(sample_project)

        output = optimizer.optimize_prompt(task_type="feature", affected_files=["lib/user.rb"])

        assert optimizer.style_guide_indexer.fragments == []
        assert "Relevant Style Guidelines" not in output.content
        assert "Code Context" in output.content

    def test_unresolvable_affected_file_keeps_other_code(self, sample_project: Path) -> None:
        """One bad affected path does not drop code from the readable ones."""
        optimizer = Optimizer(sample_project)

        output = optimizer.optimize_prompt(
            task_type="feature",
            affected_files=["lib/user.rb", "lib/" + "x" * 300 + ".rb"],
        )

        assert "class User < Base" in output.content
        assert "lib/user.rb:User" in [item.fragment.id for item in output.composition_result.selected_fragments]
