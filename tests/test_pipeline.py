"""End-to-end tests for the sentiment pipeline with an in-memory provider."""

import asyncio
from unittest.mock import Mock, patch

import pytest

from community_sentiment.config import NoProviderAvailableError, ProviderProfile, Settings
from community_sentiment.llm import APIError, AuthenticationError
from community_sentiment.llm import openai_client as openai_module
from community_sentiment.pipeline import (
    CancellationToken,
    CommunityInsightGenerator,
    ProgressReporter,
    RunOutcome,
    SentimentAnalyzer,
    analyze_default,
    create_progress_logger,
)
from community_sentiment.processing import ValidationError

from .helpers import FakeClient, make_post, prompt_indices, score_everything, scored_response


def _profile(batch_size, pacing=0.3):
    return ProviderProfile(provider='claude', batch_size=batch_size, max_text_length=600, pacing_seconds=pacing)


def _analyzer(client, sleeper, batch_size=50, pacing=0.3):
    return SentimentAnalyzer(
        client,
        profile=_profile(batch_size, pacing),
        sleep=sleeper,
        async_sleep=sleeper.async_sleep,
    )


def test_partial_provider_response(three_posts, sleeper):
    """12 raw texts, 10 kept, one batch, provider answers 8 indices: result built from those 8."""
    client = FakeClient(lambda p: scored_response([i for i in prompt_indices(p) if i not in (4, 7)]))

    run = _analyzer(client, sleeper).analyze(three_posts, show_progress=False)

    assert len(client.prompts) == 1
    assert prompt_indices(client.prompts[0]) == list(range(1, 11))
    assert run.outcome is RunOutcome.COMPLETED
    assert run.stats.submitted == 10
    assert run.stats.total_batches == 1
    assert run.stats.scored == 8
    assert run.stats.coverage_gap == 2
    assert run.to_dict()['coverage']['gap'] == 2
    assert run.to_dict()['outcome'] == 'completed'
    assert len(run.result.items) == 8
    assert sorted(item.index for item in run.result.items) == [1, 2, 3, 5, 6, 8, 9, 10]
    assert 97 <= sum(run.result.distribution.values()) <= 103
    assert run.result.by_group['gaming'].total == 6
    assert run.result.by_group['pcgaming'].total == 2
    assert [(b.date, b.total) for b in run.result.timeline] == [('2023-11-14', 3), ('2023-11-16', 5)]
    assert sleeper.calls == []


def test_cancellation_keeps_completed_batches(three_posts, sleeper):
    """Cancelling after batch 2 of 5 keeps exactly batches 1-2."""
    token = CancellationToken()
    client = FakeClient()

    def cancel_after_second(update):
        if update.batch_ordinal == 2:
            token.cancel()

    run = _analyzer(client, sleeper, batch_size=2).analyze(
        three_posts, progress_callback=cancel_after_second, cancel_token=token, show_progress=False
    )

    assert run.stats.total_batches == 5
    assert run.outcome is RunOutcome.CANCELLED
    assert run.cancelled
    assert len(client.prompts) == 2
    assert len(run.result.items) == 4
    assert {item.batch_ordinal for item in run.result.items} == {1, 2}
    assert run.stats.coverage_gap == 6
    assert sleeper.calls == [0.3]


def test_cancelled_before_start(three_posts, sleeper):
    token = CancellationToken()
    token.cancel()
    client = FakeClient()

    run = _analyzer(client, sleeper).analyze(three_posts, cancel_token=token, show_progress=False)

    assert client.prompts == []
    assert run.outcome is RunOutcome.CANCELLED
    assert run.result.summary == 'No content available for analysis'


def test_failed_batch_is_skipped_and_pacing_follows_success(three_posts, sleeper):
    client = FakeClient(queue=[
        scored_response([1, 2, 3, 4]),
        AuthenticationError('bad key'),
        scored_response([1, 2]),
    ])

    run = _analyzer(client, sleeper, batch_size=4).analyze(three_posts, show_progress=False)

    assert run.outcome is RunOutcome.COMPLETED
    assert run.stats.completed_batches == 2
    assert run.stats.failed_batches == 1
    assert len(run.result.items) == 6
    assert {item.batch_ordinal for item in run.result.items} == {1, 3}
    # paced after batch 1 only: batch 2 failed, batch 3 was last
    assert sleeper.calls == [0.3]


def test_retries_exhausted_marks_batch_failed(three_posts, sleeper):
    overloaded = [APIError('overloaded', status_code=529) for _ in range(3)]
    client = FakeClient(queue=overloaded)

    run = _analyzer(client, sleeper).analyze(three_posts, show_progress=False)

    assert len(client.prompts) == 3
    assert sleeper.calls == [2.0, 4.0]
    assert run.stats.failed_batches == 1
    assert run.result.items == []
    assert run.result.summary == 'No content available for analysis'


def test_transient_failure_recovered(three_posts, sleeper):
    client = FakeClient(queue=[APIError('unavailable', status_code=503)])

    run = _analyzer(client, sleeper).analyze(three_posts, show_progress=False)

    assert sleeper.calls == [5.0]
    assert run.stats.completed_batches == 1
    assert len(run.result.items) == 10


def test_unparseable_response_counts_as_completed(three_posts, sleeper):
    client = FakeClient(lambda p: 'Sorry, I cannot help with that.')

    run = _analyzer(client, sleeper).analyze(three_posts, show_progress=False)

    assert run.stats.completed_batches == 1
    assert run.stats.failed_batches == 0
    assert run.result.items == []


@pytest.mark.parametrize('posts', [
    [],
    [make_post('p1', 'lol', score=1, comments=[{'id': 'c1', 'body': '[removed]', 'score': 9}])],
])
def test_no_analysable_text(posts, sleeper):
    client = FakeClient()

    run = _analyzer(client, sleeper).analyze(posts, show_progress=False)

    assert client.prompts == []
    assert run.stats.total_batches == 0
    assert run.outcome is RunOutcome.COMPLETED
    assert run.result.summary == 'No content available for analysis'
    assert run.result.average_score == 0.0


def test_bad_timestamp_rejected_before_any_batch(three_posts, sleeper):
    client = FakeClient()
    posts = three_posts + [make_post('p4', 'Loving the new raid boss', created_utc='yesterday')]

    with pytest.raises(ValidationError):
        _analyzer(client, sleeper).analyze(posts, show_progress=False)
    assert client.prompts == []


def test_zulu_timestamps_bucket_by_utc_day(sleeper):
    posts = [make_post('p1', 'Loving the new raid boss', created_utc='2023-11-14T22:13:20Z')]

    run = _analyzer(FakeClient(), sleeper).analyze(posts, show_progress=False)

    assert [(b.date, b.total) for b in run.result.timeline] == [('2023-11-14', 1)]


def test_progress_updates(three_posts, sleeper):
    updates = []

    run = _analyzer(FakeClient(), sleeper, batch_size=4).analyze(
        three_posts, progress_callback=updates.append, show_progress=False
    )

    assert [u.batch_ordinal for u in updates] == [1, 2, 3]
    assert [round(u.percent_complete, 1) for u in updates] == [33.3, 66.7, 100.0]
    assert [u.items_processed for u in updates] == [4, 8, 10]
    assert [len(u.partial_aggregate.items) for u in updates] == [4, 8, 10]
    assert all(u.batch_succeeded for u in updates)
    assert run.stats.success_rate == 100.0


def test_callback_errors_do_not_abort(three_posts, sleeper):
    def broken(update):
        raise RuntimeError('display went away')

    run = _analyzer(FakeClient(), sleeper, batch_size=4).analyze(
        three_posts, progress_callback=broken, show_progress=False
    )

    assert run.stats.completed_batches == 3
    assert len(run.result.items) == 10


def test_latest_progress_can_be_polled(three_posts, sleeper):
    analyzer = _analyzer(FakeClient(), sleeper, batch_size=4)
    assert analyzer.latest_progress is None

    analyzer.analyze(three_posts, show_progress=False)

    assert analyzer.latest_progress.batch_ordinal == 3
    assert analyzer.latest_progress.percent_complete == 100.0
    assert ProgressReporter().latest is None


def test_progress_logger(three_posts, sleeper, caplog):
    with caplog.at_level('INFO'):
        _analyzer(FakeClient(), sleeper, batch_size=4).analyze(
            three_posts, progress_callback=create_progress_logger(), show_progress=False
        )
    assert 'Batch 3/3 succeeded' in caplog.text


def test_prompts_use_profile_truncation(sleeper):
    posts = [make_post('p1', 'x' * 50 + ' long title with words')]
    client = FakeClient()

    SentimentAnalyzer(
        client,
        profile=ProviderProfile(provider='openai', batch_size=25, max_text_length=20, pacing_seconds=1.0),
        sleep=sleeper,
    ).analyze(posts, show_progress=False)

    assert '[1] ' + 'x' * 20 in client.prompts[0]
    assert 'x' * 21 not in client.prompts[0]


class TestAsync:
    """analyze_async mirrors analyze."""

    def test_partial_and_cancel(self, three_posts, sleeper):
        token = CancellationToken()

        def cancel_after_second(update):
            if update.batch_ordinal == 2:
                token.cancel()

        client = FakeClient()
        run = asyncio.run(_analyzer(client, sleeper, batch_size=2).analyze_async(
            three_posts, progress_callback=cancel_after_second, cancel_token=token
        ))

        assert run.outcome is RunOutcome.CANCELLED
        assert len(run.result.items) == 4
        assert sleeper.calls == [0.3]

    def test_failed_batch(self, three_posts, sleeper):
        client = FakeClient(queue=[AuthenticationError('bad key')])

        run = asyncio.run(_analyzer(client, sleeper, batch_size=4).analyze_async(three_posts))

        assert run.stats.failed_batches == 1
        assert len(run.result.items) == 6
        assert sleeper.calls == [0.3]


class TestInsights:
    """Optional per-community insight pass."""

    @staticmethod
    def _handler(prompt):
        if 'give me your take' in prompt:
            return '  The community is upbeat.  '
        return score_everything(prompt)

    def test_insights_per_group(self, three_posts, sleeper):
        client = FakeClient(self._handler)

        run = _analyzer(client, sleeper).analyze(three_posts, include_insights=True, show_progress=False)

        assert run.insights == {
            'gaming': 'The community is upbeat.',
            'pcgaming': 'The community is upbeat.',
        }
        assert client.max_tokens[-1] == CommunityInsightGenerator.MAX_TOKENS
        assert run.to_dict()['insights'] == run.insights

    def test_not_generated_by_default(self, three_posts, sleeper):
        client = FakeClient(self._handler)
        run = _analyzer(client, sleeper).analyze(three_posts, show_progress=False)
        assert run.insights == {}
        assert len(client.prompts) == 1

    def test_failing_group_gets_fallback(self, three_posts, sleeper):
        def handler(prompt):
            if 'pcgaming community' in prompt:
                raise AuthenticationError('revoked')
            return 'Players are excited.'

        generator = CommunityInsightGenerator(FakeClient(handler), pacing_seconds=2.0, sleep=sleeper)
        insights = generator.generate(three_posts)

        assert insights['gaming'] == 'Players are excited.'
        assert insights['pcgaming'] == 'Unable to generate insights for pcgaming due to API error.'
        assert sleeper.calls == [2.0]

    def test_no_pause_after_failed_group(self, three_posts, sleeper):
        def handler(prompt):
            if 'gaming community' in prompt and 'pcgaming community' not in prompt:
                raise AuthenticationError('revoked')
            return 'Frustrated about outages.'

        generator = CommunityInsightGenerator(FakeClient(handler), pacing_seconds=2.0, sleep=sleeper)
        insights = generator.generate(three_posts)

        assert insights['gaming'].startswith('Unable to generate insights')
        assert insights['pcgaming'] == 'Frustrated about outages.'
        assert sleeper.calls == []

    def test_async_pacing_follows_success(self, three_posts, sleeper):
        generator = CommunityInsightGenerator(
            FakeClient(queue=[AuthenticationError('revoked')], handler=lambda p: 'Calm.'),
            pacing_seconds=2.0,
            async_sleep=sleeper.async_sleep,
        )
        posts = three_posts + [make_post('p9', 'Patch notes are out', subreddit='rpg')]
        insights = asyncio.run(generator.generate_async(posts))

        assert insights['pcgaming'] == 'Calm.'
        assert insights['rpg'] == 'Calm.'
        assert sleeper.calls == [2.0]

    def test_async(self, three_posts, sleeper):
        generator = CommunityInsightGenerator(
            FakeClient(lambda p: 'Calm.'), pacing_seconds=0, async_sleep=sleeper.async_sleep
        )
        assert asyncio.run(generator.generate_async(three_posts)) == {'gaming': 'Calm.', 'pcgaming': 'Calm.'}
        assert sleeper.calls == []


class TestFrameworkReport:
    """Optional structured report after aggregation."""

    @staticmethod
    def _handler(prompt):
        if 'COMMUNITY PROFILING' in prompt:
            return 'Report body.'
        return score_everything(prompt)

    def test_report_after_aggregation(self, three_posts, sleeper, monkeypatch):
        monkeypatch.setattr(Settings, 'FRAMEWORK_DELAY_SECONDS', 3.0)
        client = FakeClient(self._handler)

        run = _analyzer(client, sleeper).analyze(three_posts, include_framework=True, show_progress=False)

        assert run.framework.success
        assert run.framework.analysis == 'Report body.'
        assert len(client.prompts) == 2
        assert sleeper.calls == [3.0]
        assert run.to_dict()['frameworkAnalysis']['analysis'] == 'Report body.'

    def test_report_failure_keeps_run(self, three_posts, sleeper, monkeypatch):
        monkeypatch.setattr(Settings, 'FRAMEWORK_DELAY_SECONDS', 0)
        client = FakeClient(queue=[scored_response(list(range(1, 11))), AuthenticationError('revoked')])

        run = _analyzer(client, sleeper).analyze(three_posts, include_framework=True, show_progress=False)

        assert run.outcome is RunOutcome.COMPLETED
        assert run.result.average_score == 0.5
        assert not run.framework.success
        assert run.to_dict()['frameworkAnalysis'] == {'success': False, 'error': run.framework.error}

    def test_not_generated_by_default(self, three_posts, sleeper):
        run = _analyzer(FakeClient(self._handler), sleeper).analyze(three_posts, show_progress=False)
        assert run.framework is None
        assert 'frameworkAnalysis' not in run.to_dict()

    def test_skipped_when_cancelled(self, three_posts, sleeper):
        token = CancellationToken()
        token.cancel()
        client = FakeClient(self._handler)

        run = _analyzer(client, sleeper).analyze(
            three_posts, cancel_token=token, include_framework=True, show_progress=False
        )

        assert run.framework is None
        assert client.prompts == []

    def test_async(self, three_posts, sleeper, monkeypatch):
        monkeypatch.setattr(Settings, 'FRAMEWORK_DELAY_SECONDS', 1.5)
        client = FakeClient(self._handler)

        run = asyncio.run(_analyzer(client, sleeper).analyze_async(three_posts, include_framework=True))

        assert run.framework.analysis == 'Report body.'
        assert sleeper.calls == [1.5]


class TestAnalyzeDefault:
    """Provider selection from the environment."""

    def test_no_credentials_fails_before_any_batch(self, three_posts, no_credentials):
        with patch.object(openai_module.requests, 'post') as post:
            with pytest.raises(NoProviderAvailableError):
                analyze_default(three_posts, show_progress=False)
        post.assert_not_called()

    def test_uses_available_provider(self, three_posts, monkeypatch):
        monkeypatch.setattr(Settings, 'ANTHROPIC_API_KEY', 'your_claude_api_key')
        monkeypatch.setattr(Settings, 'OPENAI_API_KEY', 'sk-real')
        monkeypatch.setattr(Settings, 'OPENAI_BATCH_SIZE', 25)

        def reply(url, json, headers, timeout):
            response = Mock()
            response.status_code = 200
            response.json.return_value = {
                'choices': [{'message': {'content': score_everything(json['messages'][0]['content'])}}]
            }
            return response

        with patch.object(openai_module.requests, 'post', side_effect=reply) as post:
            run = analyze_default(three_posts, preferred='claude', show_progress=False)

        assert post.call_count == 1
        assert run.outcome is RunOutcome.COMPLETED
        assert len(run.result.items) == 10
