"""PROMPT.md lifecycle for the work loop."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping

import structlog

from promptpack.config import PromptOptimizationConfig
from promptpack.exceptions import OutputError, PromptPackError
from promptpack.optimization.composer import CompositionResult
from promptpack.optimization.optimizer import Optimizer
from promptpack.paths import ProjectPaths

logger = structlog.get_logger()


class PromptManager:
    """Reads and writes the working prompt, optionally optimized.

    The prompt lives at ``.promptpack/PROMPT.md``. When optimization is
    enabled, ``write_optimized`` builds it from the most relevant context
    and saves the selection report beside it.

    Example:
        >>> manager = PromptManager(Path("/project"), config=config.prompt_optimization)
        >>> if manager.optimization_enabled:
        ...     manager.write_optimized({"task_type": "feature", "description": "..."})
    """

    def __init__(
        self,
        project_dir: Path,
        config: PromptOptimizationConfig | None = None,
        optimizer: Optimizer | None = None,
    ) -> None:
        self.project_dir = Path(project_dir).resolve()
        self.config = config or PromptOptimizationConfig()
        self.paths = ProjectPaths(self.project_dir, self.config.style_guide_path, self.config.templates_dir)
        self.optimizer = optimizer or Optimizer(self.project_dir, self.config)
        self._last_result: CompositionResult | None = None
        self._last_report: str | None = None

    @property
    def prompt_path(self) -> Path:
        return self.paths.prompt_md

    @property
    def optimization_enabled(self) -> bool:
        """Whether prompts should be optimized."""
        return self.config.enabled

    @property
    def last_optimization_stats(self) -> CompositionResult | None:
        """Composition behind the last optimized prompt."""
        return self._last_result

    def write(self, content: str, step_name: str | None = None) -> None:
        """Replace the prompt.

        Raises:
            OutputError: If the file cannot be written.
        """
        try:
            self.prompt_path.parent.mkdir(parents=True, exist_ok=True)
            self.prompt_path.write_text(content, encoding="utf-8")
        except OSError as e:
            msg = f"Failed to write prompt: {e}"
            raise OutputError(msg, operation="write_prompt", path=self.prompt_path) from e
        logger.debug("Prompt written", path=str(self.prompt_path), step=step_name)

    def read(self) -> str | None:
        """Current prompt, or None when there is none."""
        if not self.prompt_path.exists():
            return None
        return self.prompt_path.read_text(encoding="utf-8")

    def exists(self) -> bool:
        return self.prompt_path.exists()

    def delete(self) -> None:
        """Remove the prompt if present."""
        self.prompt_path.unlink(missing_ok=True)

    def archive(self, step_name: str) -> Path | None:
        """Copy the prompt into the archive directory.

        Returns:
            Path of the archived copy, or None when there is no prompt.
        """
        content = self.read()
        if content is None:
            return None
        stamp = datetime.now(tz=UTC).strftime("%Y%m%d_%H%M%S")
        archive_path = self.paths.archive_dir / f"{stamp}_{step_name}_PROMPT.md"
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            archive_path.write_text(content, encoding="utf-8")
        except OSError as e:
            msg = f"Failed to archive prompt: {e}"
            raise OutputError(msg, operation="archive_prompt", path=archive_path) from e
        return archive_path

    def write_optimized(
        self,
        task_context: Mapping[str, Any],
        include_metadata: bool = False,
    ) -> bool:
        """Build and write an optimized prompt.

        Args:
            task_context: Keyword arguments for ``Optimizer.optimize_prompt``
                (task_type, description, affected_files, step_name, tags).
            include_metadata: Append the optimization metadata section.

        Returns:
            True on success; False when optimization failed and the caller
            should fall back to a plain prompt.
        """
        log = logger.bind(step=task_context.get("step_name"))
        options = {"include_metadata": include_metadata}
        try:
            output = self.optimizer.optimize_prompt(**task_context, options=options)
            output.write_to_file(self.prompt_path)
            report = output.selection_report()
            self.paths.report_md.write_text(report, encoding="utf-8")
        except (PromptPackError, OSError) as e:
            log.warning("Prompt optimization failed", error=str(e))
            return False

        self._last_result = output.composition_result
        self._last_report = report
        log.info(
            "Optimized prompt written",
            fragments=output.composition_result.selected_count,
            tokens=output.estimated_tokens,
        )
        return True

    def optimization_report(self) -> str | None:
        """Selection report of the last optimized prompt, if any."""
        return self._last_report

    def optimizer_stats(self) -> dict[str, Any]:
        """Accumulated optimizer statistics."""
        return self.optimizer.statistics()
