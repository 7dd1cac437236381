"""Environment settings for the CLI."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class CLISettings(BaseSettings):
    """Environment defaults for the promptpack CLI.

    Environment variables:
        PROMPTPACK_CONFIG: Config file used when --config is not given
        PROMPTPACK_LOG_LEVEL: Minimum level of CLI log output
    """

    config_path: Path | None = Field(
        default=None,
        validation_alias="PROMPTPACK_CONFIG",
        description="Config file used when --config is not given",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="PROMPTPACK_LOG_LEVEL",
        description="Minimum level of CLI log output",
    )

    model_config = {
        "env_prefix": "",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard logging level names in any case."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @property
    def log_level_number(self) -> int:
        """Numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]
