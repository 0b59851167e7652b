"""Batch sentiment pipeline orchestration.

This module runs the full pipeline for one corpus: collect text units, plan
batches, send each batch through the retry controller to the provider, parse
and bind the response, and aggregate. Batches run sequentially with a fixed
pacing delay after each successful batch. A failed batch contributes nothing
and the run moves on; cancellation is checked before every batch and returns
the aggregate over what already completed.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from ..config import ConfigValidator, ProviderProfile, Settings
from ..llm import Client, LLMClientError, RetryController, RetryPolicy, create_llm_client, select_provider
from ..processing import (
    Batch,
    BatchPlanner,
    ItemScore,
    PostRecord,
    RecordValidator,
    ResponseParser,
    ResultAggregator,
    TextCollector,
)
from ..processing.validator import PostInput
from ..prompt import SentimentPromptBuilder
from .framework import FrameworkAnalyzer
from .insights import CommunityInsightGenerator
from .progress import CancellationToken, ProgressCallback, ProgressReporter, ProgressUpdate
from .stats import AnalysisRun, RunOutcome, RunStats


class SentimentAnalyzer:
    """Runs the batch sentiment pipeline against one provider client.

    The provider is fixed for the lifetime of the analyzer; choosing between
    providers happens before construction (see analyze_default).
    """

    def __init__(
            self,
            client: Client,
            *,
            profile: Optional[ProviderProfile] = None,
            prompt_builder: Optional[SentimentPromptBuilder] = None,
            retry_policy: Optional[RetryPolicy] = None,
            collector: Optional[TextCollector] = None,
            aggregator: Optional[ResultAggregator] = None,
            sleep: Callable[[float], None] = time.sleep,
            async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the analyzer.

        Args:
            client: Provider client used for every batch.
            profile: Batch size, truncation and pacing; defaults to the
                profile configured for the client's provider.
            prompt_builder: Batch prompt builder; defaults to the packaged template.
            retry_policy: Attempt ceiling and backoff scales.
            collector: Text collector.
            aggregator: Result aggregator.
            sleep: Blocking sleep for pacing and backoff.
            async_sleep: Coroutine sleep for pacing and backoff.
        """
        self.client = client
        self.profile = profile or Settings.get_provider_profile(client.client_type)
        self.planner = BatchPlanner.from_profile(self.profile)
        self.prompt_builder = prompt_builder or SentimentPromptBuilder()
        self.retry = RetryController(retry_policy, sleep=sleep, async_sleep=async_sleep)
        self.collector = collector or TextCollector()
        self.aggregator = aggregator or ResultAggregator()
        self._sleep = sleep
        self._async_sleep = async_sleep
        self._reporter: Optional[ProgressReporter] = None

        logging.info(
            'SentimentAnalyzer ready: provider=%s, batch_size=%d, max_text_length=%d, pacing=%.1fs',
            self.client.client_type,
            self.profile.batch_size,
            self.profile.max_text_length,
            self.profile.pacing_seconds,
        )

    @property
    def latest_progress(self) -> Optional[ProgressUpdate]:
        """Most recent update of the current or last run, for callers that poll."""
        return self._reporter.latest if self._reporter else None

    def _prepare(self, posts: Sequence[PostInput]) -> Tuple[List[PostRecord], List[Batch], RunStats]:
        records = RecordValidator.validate_records(posts)
        units = self.collector.collect(records)
        batches = self.planner.plan(units)
        stats = RunStats(
            submitted=len(units),
            total_batches=len(batches),
            start_time=time.time(),
        )
        return records, batches, stats

    def _bind(self, batch: Batch, raw_response: str) -> List[ItemScore]:
        analysis = ResponseParser.parse(raw_response)
        if analysis.is_placeholder:
            logging.warning('Batch %d: unparseable response, no items recovered', batch.ordinal)
        return ResponseParser.to_item_scores(analysis, batch)

    def _batch_failed(self, batch: Batch, total: int, error: LLMClientError) -> None:
        logging.error(
            'Batch %d/%d failed, skipping %d texts: %s', batch.ordinal, total, len(batch), error
        )

    def _record_batch(
            self,
            batch: Batch,
            scores: Optional[List[ItemScore]],
            items: List[ItemScore],
            stats: RunStats,
            reporter: ProgressReporter,
    ) -> None:
        """Fold one resolved batch into the accumulator and report progress."""
        if scores is None:
            stats.failed_batches += 1
        else:
            stats.completed_batches += 1
            items.extend(scores)
            stats.scored = len(items)

        processed = batch.offset + len(batch)
        reporter.report(ProgressUpdate(
            batch_ordinal=batch.ordinal,
            total_batches=stats.total_batches,
            percent_complete=100.0 * stats.resolved_batches / stats.total_batches,
            items_processed=processed,
            batch_succeeded=scores is not None,
            partial_aggregate=self.aggregator.aggregate(items),
        ))

    def _should_pace(self, batch: Batch, succeeded: bool, total: int,
                     cancel_token: Optional[CancellationToken]) -> bool:
        if not succeeded or batch.ordinal >= total or self.profile.pacing_seconds <= 0:
            return False
        return not (cancel_token and cancel_token.is_cancelled)

    @staticmethod
    def _is_cancelled(batch: Batch, total: int, cancel_token: Optional[CancellationToken]) -> bool:
        if cancel_token is not None and cancel_token.is_cancelled:
            logging.warning(
                'Run cancelled before batch %d/%d; returning partial results', batch.ordinal, total
            )
            return True
        return False

    def _finish(
            self,
            records: List[PostRecord],
            items: List[ItemScore],
            stats: RunStats,
            outcome: RunOutcome,
    ) -> AnalysisRun:
        stats.end_time = time.time()
        result = self.aggregator.aggregate(items, records)
        logging.info(
            'Sentiment run %s: %d/%d texts scored (%d batches ok, %d failed, gap %d) in %.2fs',
            outcome.value,
            stats.scored,
            stats.submitted,
            stats.completed_batches,
            stats.failed_batches,
            stats.coverage_gap,
            stats.processing_time,
        )
        return AnalysisRun(result=result, outcome=outcome, stats=stats)

    def _framework_analyzer(self) -> FrameworkAnalyzer:
        return FrameworkAnalyzer(
            self.client, retry=self.retry, sleep=self._sleep, async_sleep=self._async_sleep
        )

    def analyze(
            self,
            posts: Sequence[PostInput],
            *,
            progress_callback: Optional[ProgressCallback] = None,
            cancel_token: Optional[CancellationToken] = None,
            include_insights: bool = False,
            include_framework: bool = False,
            show_progress: bool = True,
    ) -> AnalysisRun:
        """Analyze a corpus synchronously.

        Args:
            posts: Post records in upstream order.
            progress_callback: Called after every resolved batch.
            cancel_token: Checked before every batch.
            include_insights: Also generate a free-text insight per community.
            include_framework: Also generate the structured community report.
            show_progress: Display a tqdm bar over batches.

        Returns:
            The run envelope; ``outcome`` tells whether it was cancelled.

        Raises:
            ValidationError: If a post record is malformed.
        """
        records, batches, stats = self._prepare(posts)
        reporter = self._reporter = ProgressReporter(progress_callback)
        items: List[ItemScore] = []
        outcome = RunOutcome.COMPLETED
        total = len(batches)

        if not batches:
            logging.info('No analysable text found; skipping provider calls')

        for batch in tqdm(batches, desc='Analyzing sentiment batches', disable=not show_progress):
            if self._is_cancelled(batch, total, cancel_token):
                outcome = RunOutcome.CANCELLED
                break

            prompt = self.prompt_builder.build(batch, self.planner.truncate)
            try:
                raw_response = self.retry.call(lambda: self.client.call(prompt))
                scores = self._bind(batch, raw_response)
            except LLMClientError as e:
                self._batch_failed(batch, total, e)
                scores = None

            self._record_batch(batch, scores, items, stats, reporter)
            if self._should_pace(batch, scores is not None, total, cancel_token):
                self._sleep(self.profile.pacing_seconds)

        run = self._finish(records, items, stats, outcome)
        if include_insights and outcome is RunOutcome.COMPLETED and records:
            run.insights = CommunityInsightGenerator(
                self.client, retry=self.retry, sleep=self._sleep, async_sleep=self._async_sleep
            ).generate(records)
        if include_framework and outcome is RunOutcome.COMPLETED and records:
            if Settings.FRAMEWORK_DELAY_SECONDS > 0:
                self._sleep(Settings.FRAMEWORK_DELAY_SECONDS)
            run.framework = self._framework_analyzer().analyze(records, run.result)
        return run

    async def analyze_async(
            self,
            posts: Sequence[PostInput],
            *,
            progress_callback: Optional[ProgressCallback] = None,
            cancel_token: Optional[CancellationToken] = None,
            include_insights: bool = False,
            include_framework: bool = False,
    ) -> AnalysisRun:
        """Analyze a corpus on the event loop; same semantics as analyze()."""
        records, batches, stats = self._prepare(posts)
        reporter = self._reporter = ProgressReporter(progress_callback)
        items: List[ItemScore] = []
        outcome = RunOutcome.COMPLETED
        total = len(batches)

        for batch in batches:
            if self._is_cancelled(batch, total, cancel_token):
                outcome = RunOutcome.CANCELLED
                break

            prompt = self.prompt_builder.build(batch, self.planner.truncate)
            try:
                raw_response = await self.retry.call_async(lambda: self.client.call_async(prompt))
                scores = self._bind(batch, raw_response)
            except LLMClientError as e:
                self._batch_failed(batch, total, e)
                scores = None

            self._record_batch(batch, scores, items, stats, reporter)
            if self._should_pace(batch, scores is not None, total, cancel_token):
                await self._async_sleep(self.profile.pacing_seconds)

        run = self._finish(records, items, stats, outcome)
        if include_insights and outcome is RunOutcome.COMPLETED and records:
            run.insights = await CommunityInsightGenerator(
                self.client, retry=self.retry, sleep=self._sleep, async_sleep=self._async_sleep
            ).generate_async(records)
        if include_framework and outcome is RunOutcome.COMPLETED and records:
            if Settings.FRAMEWORK_DELAY_SECONDS > 0:
                await self._async_sleep(Settings.FRAMEWORK_DELAY_SECONDS)
            run.framework = await self._framework_analyzer().analyze_async(records, run.result)
        return run


def create_analyzer(preferred: Optional[str] = None, **kwargs) -> SentimentAnalyzer:
    """Select a provider from configured credentials and build an analyzer for it.

    Args:
        preferred: Provider to try first; defaults to Settings.PREFERRED_PROVIDER.
        **kwargs: Passed through to SentimentAnalyzer.

    Raises:
        NoProviderAvailableError: If no provider has a usable credential.
        ConfigValidationError: If the batching configuration is invalid.
    """
    provider = select_provider(preferred)
    ConfigValidator.validate_all(provider)
    client = create_llm_client(provider)
    kwargs.setdefault('retry_policy', RetryPolicy(max_attempts=Settings.MAX_ATTEMPTS))
    return SentimentAnalyzer(client, profile=Settings.get_provider_profile(provider), **kwargs)


def analyze_default(
        posts: Sequence[PostInput],
        preferred: Optional[str] = None,
        *,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        include_insights: bool = False,
        include_framework: bool = False,
        show_progress: bool = True,
) -> AnalysisRun:
    """Analyze posts with whichever provider the environment is configured for.

    Raises:
        NoProviderAvailableError: Before any batch, if no credential is usable.
    """
    analyzer = create_analyzer(preferred)
    return analyzer.analyze(
        posts,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
        include_insights=include_insights,
        include_framework=include_framework,
        show_progress=show_progress,
    )
