"""Prompt building for community sentiment analysis.

This package loads the packaged prompt templates and renders batch sentiment
prompts, per-community insight prompts and the community report prompt
from them.
"""

from .builder import (
    FrameworkPromptBuilder,
    InsightPromptBuilder,
    PromptBuilder,
    SentimentPromptBuilder,
)
from .exceptions import PromptBuildError, PromptError, TemplateNotFoundError

__all__ = [
    "PromptBuilder",
    "SentimentPromptBuilder",
    "InsightPromptBuilder",
    "FrameworkPromptBuilder",
    "PromptError",
    "TemplateNotFoundError",
    "PromptBuildError",
]
