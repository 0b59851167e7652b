"""Community sentiment pipeline components.

This package provides the run orchestration (sync and async), progress
reporting with cooperative cancellation, run statistics and the optional
per-community insight and structured report passes.
"""

from .analyzer import SentimentAnalyzer, analyze_default, create_analyzer
from .framework import FrameworkAnalysis, FrameworkAnalyzer, build_cleaned_data
from .insights import CommunityInsightGenerator
from .progress import (
    CancellationToken,
    ProgressReporter,
    ProgressUpdate,
    create_progress_logger,
)
from .stats import AnalysisRun, RunOutcome, RunStats

__all__ = [
    # Orchestration
    "SentimentAnalyzer",
    "analyze_default",
    "create_analyzer",
    "CommunityInsightGenerator",
    "FrameworkAnalysis",
    "FrameworkAnalyzer",
    "build_cleaned_data",

    # Progress and cancellation
    "CancellationToken",
    "ProgressReporter",
    "ProgressUpdate",
    "create_progress_logger",

    # Statistics
    "AnalysisRun",
    "RunOutcome",
    "RunStats",
]
