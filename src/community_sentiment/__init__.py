"""Community sentiment analysis over forum posts and comments.

This package turns forum posts, their bodies and threaded comments into
per-item sentiment scores and community-level aggregates using a Large
Language Model provider (Anthropic Claude, or an OpenAI chat model as
fallback).
"""

__version__ = "0.1.0"

from .config import ConfigError, NoProviderAvailableError, Settings, setup_logging
from .pipeline import (
    AnalysisRun,
    CancellationToken,
    RunOutcome,
    SentimentAnalyzer,
    analyze_default,
)
from .processing import AggregateResult, CommentRecord, ItemScore, PostRecord

__all__ = [
    "ConfigError",
    "NoProviderAvailableError",
    "Settings",
    "setup_logging",
    "AnalysisRun",
    "CancellationToken",
    "RunOutcome",
    "SentimentAnalyzer",
    "analyze_default",
    "AggregateResult",
    "CommentRecord",
    "ItemScore",
    "PostRecord",
]
