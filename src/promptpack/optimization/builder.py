"""Builds the final prompt from selected fragments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from promptpack.context.fragments import CodeFragment, FragmentKind, estimate_tokens
from promptpack.exceptions import OutputError
from promptpack.optimization.composer import CompositionResult
from promptpack.optimization.scorer import ScoredItem
from promptpack.optimization.task_context import TaskContext
from promptpack.prompts.renderer import PromptRenderer

logger = structlog.get_logger()

SECTION_DIVIDER = "\n\n---\n\n"


@dataclass
class PromptOutput:
    """A built prompt plus the selection that produced it.

    Attributes:
        content: Final prompt text.
        composition_result: The composition the prompt was built from.
        task_context: The task the prompt was built for.
        metadata: Selection statistics and generation timestamp.
    """

    content: str
    composition_result: CompositionResult
    task_context: TaskContext
    metadata: dict[str, Any] = field(default_factory=dict)
    renderer: PromptRenderer = field(default_factory=PromptRenderer, repr=False, compare=False)

    @property
    def size(self) -> int:
        """Content length in characters."""
        return len(self.content)

    @property
    def estimated_tokens(self) -> int:
        """Estimated token count of the prompt."""
        return estimate_tokens(self.content)

    def write_to_file(self, path: Path) -> None:
        """Write the prompt, replacing any existing file.

        Raises:
            OutputError: If the file cannot be written.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.content, encoding="utf-8")
        except OSError as e:
            msg = f"Failed to write prompt: {e}"
            raise OutputError(msg, operation="write_prompt", path=path) from e
        logger.info("Wrote optimized prompt", path=str(path), tokens=self.estimated_tokens)

    def selection_report(self) -> str:
        """Human-readable report of what was selected and why."""
        return self.renderer.render(
            "report",
            task=self.task_context,
            metadata=self.metadata,
            items=self.composition_result.selected_fragments,
        )

    def __str__(self) -> str:
        return f"PromptOutput<{self.estimated_tokens} tokens, {self.composition_result.selected_count} fragments>"


class PromptBuilder:
    """Assembles the prompt: task, style guidelines, templates, code, metadata.

    Sections are joined by a horizontal rule; empty sections are left out.

    Example:
        >>> builder = PromptBuilder(project_dir=Path("/project"))
        >>> output = builder.build(task_context, composition_result)
        >>> output.write_to_file(Path("PROMPT.md"))
    """

    def __init__(self, project_dir: Path | None = None, renderer: PromptRenderer | None = None) -> None:
        """Initialize the builder.

        Args:
            project_dir: Root used to display code paths relative to the project.
            renderer: Section renderer; defaults to the built-in templates.
        """
        self.project_dir = project_dir
        self.renderer = renderer or PromptRenderer()

    def build(
        self,
        task_context: TaskContext,
        composition_result: CompositionResult,
        *,
        include_metadata: bool = False,
    ) -> PromptOutput:
        """Build the prompt.

        Args:
            task_context: The current task.
            composition_result: Fragments selected for the prompt.
            include_metadata: Append the optimization metadata section.

        Returns:
            PromptOutput with content and metadata.
        """
        metadata = self._metadata(composition_result, include_metadata)
        sections = [self.build_task_section(task_context)]

        style_items = composition_result.fragments_by_type(FragmentKind.STYLE_GUIDE)
        template_items = composition_result.fragments_by_type(FragmentKind.TEMPLATE)
        code_items = composition_result.fragments_by_type(FragmentKind.CODE)

        if style_items:
            sections.append(self.renderer.render("style_guide", items=style_items))
        if template_items:
            sections.append(self.renderer.render("templates", items=template_items))
        if code_items:
            sections.append(self.renderer.render("code", files=self._group_by_file(code_items)))
        if include_metadata:
            sections.append(
                self.renderer.render(
                    "metadata",
                    summary=composition_result.summary(),
                    timestamp=metadata["timestamp"],
                )
            )

        return PromptOutput(
            content=SECTION_DIVIDER.join(sections),
            composition_result=composition_result,
            task_context=task_context,
            metadata=metadata,
            renderer=self.renderer,
        )

    def build_task_section(self, task_context: TaskContext) -> str:
        """Render the Task section on its own."""
        return self.renderer.render("task", task=task_context)

    def _group_by_file(self, items: list[ScoredItem]) -> list[tuple[str, list[ScoredItem]]]:
        groups: dict[str, list[tuple[int, ScoredItem]]] = {}
        for item in items:
            fragment = item.fragment
            if not isinstance(fragment, CodeFragment):
                continue
            path = fragment.relative_path(self.project_dir) if self.project_dir else fragment.file_path
            groups.setdefault(path, []).append((fragment.line_start, item))
        # Within a file, show units in source order.
        return [
            (path, [item for _, item in sorted(group, key=lambda pair: pair[0])])
            for path, group in groups.items()
        ]

    @staticmethod
    def _metadata(composition_result: CompositionResult, include_metadata: bool) -> dict[str, Any]:
        return {
            "selected_count": composition_result.selected_count,
            "excluded_count": composition_result.excluded_count,
            "total_tokens": composition_result.total_tokens,
            "budget": composition_result.budget,
            "utilization": composition_result.budget_utilization,
            "average_score": composition_result.average_score,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "include_metadata": include_metadata,
        }
