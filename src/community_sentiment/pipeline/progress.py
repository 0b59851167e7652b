"""Per-batch progress reporting and cooperative cancellation."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..processing import AggregateResult


@dataclass(frozen=True)
class ProgressUpdate:
    """Status emitted after each batch resolves.

    Attributes:
        batch_ordinal: Batch that just resolved.
        total_batches: Batches planned for the run.
        percent_complete: Resolved batches as a percentage of planned ones.
        items_processed: Text units in resolved batches, scored or not.
        batch_succeeded: Whether this batch produced a provider response.
        partial_aggregate: Aggregate over everything scored so far.
    """
    batch_ordinal: int
    total_batches: int
    percent_complete: float
    items_processed: int
    batch_succeeded: bool
    partial_aggregate: AggregateResult


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressReporter:
    """Pushes updates to an optional callback and keeps the latest for polling."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._latest: Optional[ProgressUpdate] = None

    @property
    def latest(self) -> Optional[ProgressUpdate]:
        """Most recent update, or None before the first batch resolves."""
        return self._latest

    def report(self, update: ProgressUpdate) -> None:
        """Store the update and hand it to the callback.

        Errors raised by the callback are logged; they never stop the run.
        """
        self._latest = update
        if self._callback is None:
            return
        try:
            self._callback(update)
        except Exception as e:
            logging.error('Progress callback failed for batch %d: %s', update.batch_ordinal, e, exc_info=True)


class CancellationToken:
    """Thread-safe cooperative cancellation flag, checked between batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


def create_progress_logger(log_interval: float = 0.0) -> ProgressCallback:
    """Create a progress callback that logs batch status.

    Args:
        log_interval: Minimum seconds between log lines; the final batch is
            always logged.
    """
    last_log_time = 0.0

    def log_progress(update: ProgressUpdate) -> None:
        nonlocal last_log_time
        current_time = time.time()
        is_last = update.batch_ordinal == update.total_batches

        if is_last or current_time - last_log_time >= log_interval:
            logging.info(
                'Batch %d/%d %s (%.1f%% complete, %d texts processed, %d scored, average %.2f)',
                update.batch_ordinal,
                update.total_batches,
                'succeeded' if update.batch_succeeded else 'failed',
                update.percent_complete,
                update.items_processed,
                len(update.partial_aggregate.items),
                update.partial_aggregate.average_score,
            )
            last_log_time = current_time

    return log_progress
