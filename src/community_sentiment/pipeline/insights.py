"""Free-text community insights.

After scoring, the provider can be asked once per community for a short
qualitative take on the community's mood, themes and pain points.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..config import Settings
from ..llm import Client, LLMClientError, RetryController
from ..processing import PostRecord, RecordValidator
from ..processing.validator import PostInput
from ..prompt import InsightPromptBuilder, PromptError


def group_posts(posts: Sequence[PostRecord]) -> Dict[str, List[PostRecord]]:
    """Group posts by community, keeping first-seen order."""
    groups: Dict[str, List[PostRecord]] = {}
    for post in posts:
        groups.setdefault(post.group_key, []).append(post)
    return groups


class CommunityInsightGenerator:
    """Generates one free-text insight per community.

    A failing community gets a fixed fallback text and never stops the
    others.
    """

    MAX_TOKENS = 1000
    FALLBACK_TEMPLATE = 'Unable to generate insights for {group} due to API error.'

    def __init__(
            self,
            client: Client,
            *,
            pacing_seconds: Optional[float] = None,
            prompt_builder: Optional[InsightPromptBuilder] = None,
            retry: Optional[RetryController] = None,
            sleep: Callable[[float], None] = time.sleep,
            async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.pacing_seconds = Settings.INSIGHT_PACING_SECONDS if pacing_seconds is None else pacing_seconds
        self.prompt_builder = prompt_builder or InsightPromptBuilder()
        self.retry = retry or RetryController(sleep=sleep, async_sleep=async_sleep)
        self._sleep = sleep
        self._async_sleep = async_sleep

    def _should_pace(self, position: int, total: int) -> bool:
        """Pause only after a successful group that is not the last."""
        return position < total and self.pacing_seconds > 0

    def _fallback(self, group_key: str, error: Exception) -> str:
        logging.error('Insight generation failed for %s: %s', group_key, error)
        return self.FALLBACK_TEMPLATE.format(group=group_key)

    def generate(self, posts: Sequence[PostInput]) -> Dict[str, str]:
        """Generate insights for every community in ``posts``.

        Returns:
            Mapping of group key to insight text.

        Raises:
            ValidationError: If a post record is malformed.
        """
        groups = group_posts(RecordValidator.validate_records(posts))
        insights: Dict[str, str] = {}

        for position, (group_key, group) in enumerate(groups.items(), start=1):
            logging.info('Generating insights for %s (%d posts)...', group_key, len(group))
            try:
                prompt = self.prompt_builder.build(group_key, group)
                text = self.retry.call(lambda: self.client.call(prompt, max_tokens=self.MAX_TOKENS))
                insights[group_key] = text.strip()
            except (LLMClientError, PromptError) as e:
                insights[group_key] = self._fallback(group_key, e)
                continue

            if self._should_pace(position, len(groups)):
                self._sleep(self.pacing_seconds)

        return insights

    async def generate_async(self, posts: Sequence[PostInput]) -> Dict[str, str]:
        """Async variant of generate()."""
        groups = group_posts(RecordValidator.validate_records(posts))
        insights: Dict[str, str] = {}

        for position, (group_key, group) in enumerate(groups.items(), start=1):
            logging.info('Generating insights for %s (%d posts)...', group_key, len(group))
            try:
                prompt = self.prompt_builder.build(group_key, group)
                text = await self.retry.call_async(
                    lambda: self.client.call_async(prompt, max_tokens=self.MAX_TOKENS)
                )
                insights[group_key] = text.strip()
            except (LLMClientError, PromptError) as e:
                insights[group_key] = self._fallback(group_key, e)
                continue

            if self._should_pace(position, len(groups)):
                await self._async_sleep(self.pacing_seconds)

        return insights
