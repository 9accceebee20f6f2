"""Prompt templates and loader."""

from insightbot.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
