"""Run statistics and outcome types for the community sentiment pipeline.

This module provides the data classes returned from a pipeline run: the
outcome tag, the counters tracked while batches resolve, and the run
envelope that carries the aggregate result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..processing import AggregateResult
from .framework import FrameworkAnalysis


class RunOutcome(Enum):
    """How a run ended. Cancellation is an outcome, not an error."""
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass
class RunStats:
    """Statistics for one pipeline run.

    Attributes:
        submitted: Text units collected for analysis.
        scored: Item scores actually produced.
        total_batches: Batches planned.
        completed_batches: Batches whose provider call succeeded.
        failed_batches: Batches abandoned after retries or a non-retryable error.
        start_time: Run start (epoch seconds).
        end_time: Run end (None while running).
    """
    submitted: int = 0
    scored: int = 0
    total_batches: int = 0
    completed_batches: int = 0
    failed_batches: int = 0
    start_time: float = 0.0
    end_time: Optional[float] = None

    @property
    def resolved_batches(self) -> int:
        return self.completed_batches + self.failed_batches

    @property
    def coverage_gap(self) -> int:
        """Text units submitted that ended up without a score."""
        return self.submitted - self.scored

    @property
    def success_rate(self) -> float:
        """Calculate the share of submitted units that were scored, as a percentage."""
        if self.submitted == 0:
            return 0.0
        return (self.scored / self.submitted) * 100.0

    @property
    def is_complete(self) -> bool:
        return self.end_time is not None

    @property
    def processing_time(self) -> float:
        if self.end_time is None:
            return 0.0
        return self.end_time - self.start_time

    @property
    def throughput(self) -> float:
        """Calculate items scored per second.

        Returns:
            Throughput as items per second. Returns 0 if processing time is zero.
        """
        if self.processing_time == 0:
            return 0.0
        return self.scored / self.processing_time


@dataclass
class AnalysisRun:
    """Everything a pipeline run hands back to its caller.

    Attributes:
        result: Aggregate over every batch that completed.
        outcome: Whether the run finished or was cancelled.
        stats: Counters for the run.
        insights: Free-text take per community, when requested.
        framework: Structured community report, when requested.
    """
    result: AggregateResult
    outcome: RunOutcome
    stats: RunStats
    insights: Dict[str, str] = field(default_factory=dict)
    framework: Optional[FrameworkAnalysis] = None

    @property
    def cancelled(self) -> bool:
        return self.outcome is RunOutcome.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        data['outcome'] = self.outcome.value
        data['coverage'] = {
            'submitted': self.stats.submitted,
            'scored': self.stats.scored,
            'gap': self.stats.coverage_gap,
            'totalBatches': self.stats.total_batches,
            'completedBatches': self.stats.completed_batches,
            'failedBatches': self.stats.failed_batches,
        }
        if self.insights:
            data['insights'] = dict(self.insights)
        if self.framework is not None:
            data['frameworkAnalysis'] = self.framework.to_dict()
        return data
