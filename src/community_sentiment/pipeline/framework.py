"""Structured community report generated after aggregation.

The report asks the provider for a long-form analysis (community profile,
patterns, temporal trends, recommendations) over a cleaned digest of the
posts and the aggregate result. It is optional and never fails a run: a
provider error is returned as an unsuccessful FrameworkAnalysis.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..llm import Client, LLMClientError, ProviderTransientError, RetryController
from ..processing import AggregateResult, PostRecord, RecordValidator
from ..processing.validator import PostInput
from ..prompt import FrameworkPromptBuilder, PromptError

POSTS_SAMPLE = 20
SAMPLE_COMMENTS = 5
BODY_EXCERPT = 300
COMMENT_EXCERPT = 200
HIGH_ENGAGEMENT_SCORE = 100
HIGH_ENGAGEMENT_COMMENTS = 50
CONTROVERSIAL_COMMENTS = 10
HIGHLIGHT_LIMIT = 10


def _excerpt(text: Optional[str], limit: int) -> str:
    text = text or ''
    return text[:limit] + '...' if len(text) > limit else text


def _timestamp(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def build_cleaned_data(posts: Sequence[PostRecord], result: AggregateResult) -> Dict[str, Any]:
    """Digest of the corpus and its aggregate, sized for one report prompt.

    Args:
        posts: Validated post records in upstream order.
        result: Aggregate result of the sentiment run.

    Returns:
        JSON-ready dictionary with metadata, a posts sample, the sentiment
        patterns, and the high-engagement and controversial posts.
    """
    overall = result.to_dict()
    groups = list(dict.fromkeys(post.group_key for post in posts))

    return {
        'analysis_metadata': {
            'groups': groups,
            'total_posts': len(posts),
            'total_comments': sum(len(post.comments) for post in posts),
            'overall_sentiment': result.average_score,
            'dominant_themes': list(result.dominant_themes),
            'key_emotions': list(result.key_emotions),
        },
        'posts_sample': [
            {
                'id': post.id,
                'title': post.title,
                'score': post.weight,
                'num_comments': len(post.comments),
                'group': post.group_key,
                'created_at': _timestamp(post.created_at),
                'body': _excerpt(post.body, BODY_EXCERPT),
                'top_comments': [
                    {
                        'id': comment.id,
                        'body': _excerpt(comment.body, COMMENT_EXCERPT),
                        'score': comment.weight,
                    }
                    for comment in post.comments[:SAMPLE_COMMENTS]
                ],
            }
            for post in posts[:POSTS_SAMPLE]
        ],
        'sentiment_patterns': {
            'by_group': overall['byGroup'],
            'timeline': overall['timeline'],
            'score_distribution': dict(result.distribution),
        },
        'high_engagement_posts': [
            {
                'title': post.title,
                'score': post.weight,
                'num_comments': len(post.comments),
                'group': post.group_key,
                'top_comment_scores': [c.weight for c in post.comments[:3]],
            }
            for post in posts
            if post.weight > HIGH_ENGAGEMENT_SCORE or len(post.comments) > HIGH_ENGAGEMENT_COMMENTS
        ][:HIGHLIGHT_LIMIT],
        'controversial_indicators': [
            {
                'title': post.title,
                'score': post.weight,
                'comment_count': len(post.comments),
                'comment_scores': [c.weight for c in post.comments],
                'group': post.group_key,
            }
            for post in posts
            if len(post.comments) > CONTROVERSIAL_COMMENTS
        ][:HIGHLIGHT_LIMIT],
    }


@dataclass
class FrameworkAnalysis:
    """Outcome of the report request.

    Attributes:
        success: Whether the provider produced a report.
        analysis: Report text when successful.
        error: Human-readable reason when unsuccessful.
        generated_at: ISO 8601 UTC time the report was produced.
    """
    success: bool
    analysis: Optional[str] = None
    error: Optional[str] = None
    generated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {'success': True, 'analysis': self.analysis, 'generatedAt': self.generated_at}
        return {'success': False, 'error': self.error}


class FrameworkAnalyzer:
    """Requests the structured community report from the provider."""

    MAX_TOKENS = 8000

    def __init__(
            self,
            client: Client,
            *,
            prompt_builder: Optional[FrameworkPromptBuilder] = None,
            retry: Optional[RetryController] = None,
            sleep: Callable[[float], None] = time.sleep,
            async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.prompt_builder = prompt_builder or FrameworkPromptBuilder()
        self.retry = retry or RetryController(sleep=sleep, async_sleep=async_sleep)

    @staticmethod
    def _failure(error: Exception) -> FrameworkAnalysis:
        logging.error('Framework analysis failed: %s', error)
        failure_class = getattr(error, 'failure_class', None)
        if isinstance(error, ProviderTransientError) and failure_class == 'rate_limited':
            message = 'Rate limited by the provider. Please try again in a few minutes.'
        elif isinstance(error, ProviderTransientError) and failure_class == 'overloaded':
            message = 'The provider is currently overloaded. Please try again in a few minutes.'
        else:
            message = f'Failed to generate framework analysis: {error}'
        return FrameworkAnalysis(success=False, error=message)

    @staticmethod
    def _success(text: str) -> FrameworkAnalysis:
        logging.info('Framework analysis completed (length: %d)', len(text))
        return FrameworkAnalysis(
            success=True,
            analysis=text.strip(),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def _prompt(self, posts: Sequence[PostInput], result: AggregateResult) -> str:
        records: List[PostRecord] = RecordValidator.validate_records(posts)
        return self.prompt_builder.build(build_cleaned_data(records, result))

    def analyze(self, posts: Sequence[PostInput], result: AggregateResult) -> FrameworkAnalysis:
        """Generate the report for a finished run.

        Raises:
            ValidationError: If a post record is malformed.
        """
        logging.info('Generating framework analysis...')
        try:
            prompt = self._prompt(posts, result)
            text = self.retry.call(lambda: self.client.call(prompt, max_tokens=self.MAX_TOKENS))
        except (LLMClientError, PromptError) as e:
            return self._failure(e)
        return self._success(text)

    async def analyze_async(self, posts: Sequence[PostInput], result: AggregateResult) -> FrameworkAnalysis:
        """Async variant of analyze()."""
        logging.info('Generating framework analysis...')
        try:
            prompt = self._prompt(posts, result)
            text = await self.retry.call_async(
                lambda: self.client.call_async(prompt, max_tokens=self.MAX_TOKENS)
            )
        except (LLMClientError, PromptError) as e:
            return self._failure(e)
        return self._success(text)
