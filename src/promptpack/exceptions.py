"""Custom exceptions for promptpack."""

from pathlib import Path


class PromptPackError(Exception):
    """Base exception for all promptpack errors."""

    pass


class ConfigError(PromptPackError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_path: Path | None = None,
        field: str = "",
    ) -> None:
        super().__init__(message)
        self.config_path = config_path
        self.field = field


class OutputError(PromptPackError):
    """Raised when a prompt artifact cannot be written."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.path = path
