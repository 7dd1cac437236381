"""Configuration schema for promptpack."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from promptpack.exceptions import ConfigError
from promptpack.paths import DEFAULT_STYLE_GUIDE, DEFAULT_TEMPLATES_DIR


class IncludeThresholdConfig(BaseModel):
    """Minimum relevance score per fragment category.

    Fragments below their category threshold are only admitted when they
    are critical (score >= 0.9).

    Attributes:
        style_guide: Threshold for style guide sections.
        templates: Threshold for step templates.
        source: Threshold for source code fragments.
    """

    style_guide: float = Field(default=0.45, ge=0.0, le=1.0)
    templates: float = Field(default=0.45, ge=0.0, le=1.0)
    source: float = Field(default=0.4, ge=0.0, le=1.0)


class ScoringWeightsConfig(BaseModel):
    """Weights of the relevance factors.

    Attributes:
        task_type_match: Weight of overlap with task-type tags.
        tag_match: Weight of overlap with explicit context tags.
        file_location_match: Weight of the file location factor.
        step_match: Weight of overlap with step-derived tags.
        location_bonus: Flat bonus for code from an affected file.
    """

    task_type_match: float = Field(default=0.3, ge=0.0)
    tag_match: float = Field(default=0.25, ge=0.0)
    file_location_match: float = Field(default=0.25, ge=0.0)
    step_match: float = Field(default=0.2, ge=0.0)
    location_bonus: float = Field(default=0.3, ge=0.0)


class PromptOptimizationConfig(BaseModel):
    """Configuration for the prompt context optimizer.

    Attributes:
        enabled: Whether optimized prompts replace the full prompt.
        max_tokens: Token ceiling for composed context.
        include_threshold: Per-category admission thresholds.
        dynamic_adjustment: Relax thresholds once when the budget is underused.
        log_selected_fragments: Log a selection summary after each run.
        weights: Relevance factor weights.
        style_guide_path: Style guide location relative to the project root.
        templates_dir: Template tree location relative to the project root.
    """

    enabled: bool = False
    max_tokens: int = Field(default=16000, ge=0)
    include_threshold: IncludeThresholdConfig = Field(default_factory=IncludeThresholdConfig)
    dynamic_adjustment: bool = False
    log_selected_fragments: bool = False
    weights: ScoringWeightsConfig = Field(default_factory=ScoringWeightsConfig)
    style_guide_path: str = DEFAULT_STYLE_GUIDE
    templates_dir: str = DEFAULT_TEMPLATES_DIR

    @field_validator("style_guide_path", "templates_dir")
    @classmethod
    def validate_relative(cls, v: str) -> str:
        """Reject empty locations."""
        if not v.strip():
            msg = "Path must not be empty"
            raise ValueError(msg)
        return v

    def thresholds(self) -> dict[str, float]:
        """Thresholds as the mapping the composer consumes."""
        return self.include_threshold.model_dump()


class PromptPackConfig(BaseModel):
    """Complete promptpack configuration.

    Example:
        >>> config = PromptPackConfig.default()
        >>> config.prompt_optimization.max_tokens
        16000
    """

    version: str = "1.0"
    prompt_optimization: PromptOptimizationConfig = Field(default_factory=PromptOptimizationConfig)

    def to_yaml(self) -> str:
        """Serialize the config to YAML.

        Returns:
            YAML string representation.
        """
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def save(self, path: Path) -> None:
        """Save the config to a YAML file.

        Args:
            path: Path to save the file.
        """
        path.write_text(self.to_yaml())

    @classmethod
    def from_yaml(cls, yaml_content: str) -> PromptPackConfig:
        """Parse config from YAML content.

        Args:
            yaml_content: YAML string to parse.

        Returns:
            Parsed PromptPackConfig instance.

        Raises:
            ValueError: If the YAML is invalid.
        """
        try:
            data: dict[str, Any] = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            msg = f"Invalid YAML: {e}"
            raise ValueError(msg) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "Config YAML must be a mapping"
            raise ValueError(msg)

        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Path) -> PromptPackConfig:
        """Load config from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the YAML is invalid.
        """
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        return cls.from_yaml(path.read_text())

    @classmethod
    def default(cls) -> PromptPackConfig:
        """Create a default configuration."""
        return cls()


def load_config(path: Path | None) -> PromptPackConfig:
    """Load a config file, falling back to defaults when no path is given.

    Args:
        path: Config file path or None.

    Returns:
        The loaded configuration.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        return PromptPackConfig.default()
    try:
        return PromptPackConfig.load(path)
    except FileNotFoundError as e:
        raise ConfigError(str(e), config_path=path) from e
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ConfigError(f"Invalid config: {e}", config_path=path, field=field) from e
    except ValueError as e:
        raise ConfigError(str(e), config_path=path) from e
