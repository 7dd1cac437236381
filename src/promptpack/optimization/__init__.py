"""Relevance scoring, budgeted composition and prompt building."""

from promptpack.optimization.builder import PromptBuilder, PromptOutput
from promptpack.optimization.composer import CompositionResult, ContextComposer
from promptpack.optimization.optimizer import Optimizer, OptimizerStats
from promptpack.optimization.scorer import (
    CRITICAL_SCORE_THRESHOLD,
    RelevanceScorer,
    ScoredItem,
    step_to_tags,
    task_type_to_tags,
)
from promptpack.optimization.task_context import (
    TaskContext,
    TaskType,
    extract_affected_files,
    infer_task_type,
)

__all__ = [
    # Task
    "TaskContext",
    "TaskType",
    "extract_affected_files",
    "infer_task_type",
    # Scoring
    "CRITICAL_SCORE_THRESHOLD",
    "RelevanceScorer",
    "ScoredItem",
    "step_to_tags",
    "task_type_to_tags",
    # Composition
    "CompositionResult",
    "ContextComposer",
    # Output
    "PromptBuilder",
    "PromptOutput",
    "Optimizer",
    "OptimizerStats",
]
