"""Prompt rendering and the working prompt file."""

from promptpack.prompts.renderer import PromptRenderer

__all__ = ["PromptRenderer"]
