"""CLI interface for promptpack."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import structlog
import typer
from pydantic import ValidationError

from promptpack import __version__
from promptpack.config import PromptPackConfig, load_config
from promptpack.exceptions import OutputError, PromptPackError
from promptpack.optimization.optimizer import Optimizer
from promptpack.optimization.task_context import extract_affected_files, infer_task_type
from promptpack.paths import ProjectPaths
from promptpack.settings import CLISettings


def _log_level() -> int:
    """Log level from the environment; INFO when the settings are invalid."""
    try:
        return CLISettings().log_level_number
    except ValidationError as e:
        reason = "; ".join(err["msg"] for err in e.errors())
        typer.echo(f"Warning: ignoring invalid environment settings: {reason}", err=True)
        return logging.INFO


# Configure structlog for CLI output
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(_log_level()),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(sys.stderr),
)

logger = structlog.get_logger()

app = typer.Typer(
    name="promptpack",
    help="Relevance-ranked prompt context for coding agents",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"promptpack version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """promptpack - prompt context optimizer."""
    pass


def _load(base_dir: Path, config: Path | None) -> PromptPackConfig:
    """Explicit config, else PROMPTPACK_CONFIG, else the project's promptpack.yaml, else defaults."""
    if config is None:
        try:
            config = CLISettings().config_path
        except ValidationError:
            # Already reported when logging was configured.
            config = None
    if config is None:
        candidate = ProjectPaths(base_dir).config_yaml
        config = candidate if candidate.exists() else None
    return load_config(config)


@app.command()
def init(
    base_dir: Annotated[
        Path,
        typer.Option(
            "--dir",
            "-d",
            help="Directory to initialize",
            resolve_path=True,
        ),
    ] = Path.cwd(),
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Initialize promptpack configuration in a directory."""
    config_path = ProjectPaths(base_dir).config_yaml

    if config_path.exists() and not force:
        typer.echo(f"Config already exists: {config_path}")
        typer.echo("Use --force to overwrite.")
        raise typer.Exit(1)

    config = PromptPackConfig.default()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config.save(config_path)

    typer.echo(f"Created config: {config_path}")
    typer.echo(f"Style guide: {config.prompt_optimization.style_guide_path}")
    typer.echo(f"Templates: {config.prompt_optimization.templates_dir}/<category>/*.md")
    typer.echo("")
    typer.echo("Edit promptpack.yaml to customize settings.")


@app.command()
def optimize(
    description: Annotated[
        str,
        typer.Argument(help="Task description"),
    ],
    task_type: Annotated[
        str | None,
        typer.Option(
            "--type",
            "-t",
            help="Task type (feature, bugfix, refactor, testing, ...); inferred when omitted",
        ),
    ] = None,
    files: Annotated[
        list[str] | None,
        typer.Option(
            "--file",
            "-f",
            help="Affected file, relative to the project (repeatable)",
        ),
    ] = None,
    step: Annotated[
        str | None,
        typer.Option(
            "--step",
            "-s",
            help="Current work loop step",
        ),
    ] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option(
            "--tag",
            help="Additional context tag (repeatable)",
        ),
    ] = None,
    max_tokens: Annotated[
        int | None,
        typer.Option(
            "--max-tokens",
            help="Token budget (overrides config)",
            min=0,
        ),
    ] = None,
    metadata: Annotated[
        bool,
        typer.Option(
            "--metadata",
            help="Append the optimization metadata section",
        ),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Prompt file to write (default: .promptpack/PROMPT.md)",
            resolve_path=True,
        ),
    ] = None,
    report: Annotated[
        bool,
        typer.Option(
            "--report",
            help="Print the selection report",
        ),
    ] = False,
    base_dir: Annotated[
        Path,
        typer.Option(
            "--dir",
            "-d",
            help="Base directory for the project",
            exists=True,
            file_okay=False,
            resolve_path=True,
        ),
    ] = Path.cwd(),
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to promptpack.yaml config file",
            exists=True,
            file_okay=True,
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """Build an optimized prompt for a task."""
    try:
        cfg = _load(base_dir, config)
        paths = ProjectPaths(base_dir)

        affected = list(files or [])
        affected.extend(p for p in extract_affected_files(description) if p not in affected)

        optimizer = Optimizer(base_dir, cfg.prompt_optimization)
        options: dict[str, object] = {"include_metadata": metadata}
        if max_tokens is not None:
            options["max_tokens"] = max_tokens

        result = optimizer.optimize_prompt(
            task_type=task_type or infer_task_type(step, description).value,
            description=description,
            affected_files=affected,
            step_name=step,
            tags=list(tags or []),
            options=options,
        )

        prompt_path = output or paths.prompt_md
        result.write_to_file(prompt_path)
        selection_report = result.selection_report()
        _write_report(paths.report_md, selection_report)
    except PromptPackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    composition = result.composition_result
    typer.echo(f"Wrote prompt: {prompt_path}")
    typer.echo(f"Task type: {result.task_context.task_type}")
    typer.echo(f"Fragments: {composition.selected_count} selected, {composition.excluded_count} excluded")
    typer.echo(f"Tokens: {composition.total_tokens}/{composition.budget} ({composition.budget_utilization}%)")

    if report:
        typer.echo("")
        typer.echo(selection_report)


@app.command()
def index(
    base_dir: Annotated[
        Path,
        typer.Option(
            "--dir",
            "-d",
            help="Base directory for the project",
            exists=True,
            file_okay=False,
            resolve_path=True,
        ),
    ] = Path.cwd(),
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to promptpack.yaml config file",
            exists=True,
            file_okay=True,
            resolve_path=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """Show what the style guide and template indexes contain."""
    try:
        cfg = _load(base_dir, config)
    except PromptPackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    optimizer = Optimizer(base_dir, cfg.prompt_optimization)
    style_guide = optimizer.style_guide_indexer
    templates = optimizer.template_indexer
    tags = sorted(set(style_guide.all_tags()) | set(templates.all_tags()))

    if json_output:
        data = {
            "style_guide": [f.summary() for f in style_guide.fragments],
            "templates": [t.summary() for t in templates.templates],
            "categories": templates.categories(),
            "tags": tags,
        }
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(f"Style guide: {style_guide.style_guide_path} ({len(style_guide.fragments)} sections)")
    for fragment in style_guide.fragments:
        indent = "  " * fragment.level
        typer.echo(f"{indent}{fragment.heading}  [{', '.join(fragment.tags)}]")

    typer.echo("")
    typer.echo(f"Templates: {templates.templates_dir} ({len(templates.templates)} files)")
    for template in templates.templates:
        typer.echo(f"  {template.id:30s}  {template.name}")

    typer.echo("")
    typer.echo(f"Categories: {', '.join(templates.categories()) or '-'}")
    typer.echo(f"Tags: {', '.join(tags) or '-'}")


@app.command()
def explain(
    base_dir: Annotated[
        Path,
        typer.Option(
            "--dir",
            "-d",
            help="Base directory for the project",
            exists=True,
            file_okay=False,
            resolve_path=True,
        ),
    ] = Path.cwd(),
) -> None:
    """Show the selection report of the last optimized prompt."""
    report_path = ProjectPaths(base_dir).report_md
    if not report_path.exists():
        typer.echo("No selection report found. Run 'promptpack optimize' first.")
        raise typer.Exit(1)
    typer.echo(report_path.read_text(encoding="utf-8"))


def _write_report(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        msg = f"Failed to write selection report: {e}"
        raise OutputError(msg, operation="write_report", path=path) from e


if __name__ == "__main__":
    app()
