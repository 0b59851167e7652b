"""Processing module for community sentiment analysis.

This module provides the pure, provider-independent stages of the pipeline:
input validation, text collection and filtering, batch planning, recovery
parsing of provider responses and statistical aggregation.
"""

# Data models and entities
from .entities import (
    AggregateResult,
    Batch,
    BatchAnalysis,
    CommentRecord,
    GroupStats,
    ItemScore,
    PostRecord,
    SentimentLabel,
    SourceKind,
    TextSource,
    TextUnit,
    TimelineBucket,
)

# Pipeline stages
from .validator import RecordValidator
from .collector import CollectionStats, TextCollector
from .planner import BatchPlanner
from .parser import ResponseParser
from .aggregator import ResultAggregator

# Exceptions
from .exceptions import (
    MalformedResponseError,
    ProcessingError,
    ValidationError,
)

__all__ = [
    # Data models
    "AggregateResult",
    "Batch",
    "BatchAnalysis",
    "CommentRecord",
    "GroupStats",
    "ItemScore",
    "PostRecord",
    "SentimentLabel",
    "SourceKind",
    "TextSource",
    "TextUnit",
    "TimelineBucket",

    # Pipeline stages
    "RecordValidator",
    "CollectionStats",
    "TextCollector",
    "BatchPlanner",
    "ResponseParser",
    "ResultAggregator",

    # Exceptions
    "ProcessingError",
    "ValidationError",
    "MalformedResponseError",
]
