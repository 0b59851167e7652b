"""Statistical aggregation of per-item sentiment scores.

Folds ItemScores into overall statistics, per-community statistics and a
per-day timeline keyed on the originating post's creation date.
"""

import logging
import math
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from .entities import (
    AggregateResult,
    GroupStats,
    ItemScore,
    PostRecord,
    SentimentLabel,
    TimelineBucket,
    post_date,
)

NO_CONTENT_SUMMARY = 'No content available for analysis'
LABEL_ORDER = (SentimentLabel.POSITIVE, SentimentLabel.NEUTRAL, SentimentLabel.NEGATIVE)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive input."""
    return int(math.floor(value + 0.5))


class ResultAggregator:
    """Builds the AggregateResult for a run."""

    TOP_N = 5
    SUMMARY_THEMES = 3
    NEUTRAL_BAND = 0.1

    def aggregate(
            self,
            items: Sequence[ItemScore],
            posts: Optional[Sequence[PostRecord]] = None,
    ) -> AggregateResult:
        """Aggregate item scores into the final result.

        Args:
            items: Every ItemScore produced so far, in run order.
            posts: Optional post records; when given, each post's date gets a
                timeline bucket even if none of its texts were scored.

        Returns:
            The aggregate result. An empty ``items`` gives the zeroed result.
        """
        items = list(items)
        total = len(items)
        if total == 0:
            logging.info('No scored items to aggregate')
            return self.empty_result()

        average = sum(item.score for item in items) / total
        label_counts = Counter(item.label for item in items)
        distribution = {
            label.value: round_half_up(100 * label_counts[label] / total)
            for label in LABEL_ORDER
        }
        themes = self._top_values(theme for item in items for theme in item.themes)
        emotions = self._top_values(emotion for item in items for emotion in item.emotions)

        return AggregateResult(
            average_score=round(average, 2),
            distribution=distribution,
            dominant_themes=themes,
            key_emotions=emotions,
            summary=self.summarize(average, distribution, themes),
            items=items,
            by_group=self._by_group(items),
            timeline=self._timeline(items, posts),
        )

    @staticmethod
    def empty_result() -> AggregateResult:
        return AggregateResult(
            average_score=0.0,
            distribution={label.value: 0 for label in LABEL_ORDER},
            dominant_themes=[],
            key_emotions=[],
            summary=NO_CONTENT_SUMMARY,
        )

    @classmethod
    def _top_values(cls, values: Iterable[str]) -> List[str]:
        # Counter keeps insertion order, so equal counts stay in first-seen order
        return [value for value, _ in Counter(values).most_common(cls.TOP_N)]

    @classmethod
    def summarize(cls, average: float, distribution: Dict[str, int], themes: Sequence[str]) -> str:
        """One-line description of the overall sentiment.

        Args:
            average: Unrounded mean score.
            distribution: Percentages per label.
            themes: Dominant themes, most frequent first.
        """
        tone = SentimentLabel.from_score(average, cls.NEUTRAL_BAND).value
        dominant = max(
            (label.value for label in LABEL_ORDER),
            key=lambda name: distribution.get(name, 0),
        )
        summary = f'The overall sentiment is {tone} ({dominant} {distribution.get(dominant, 0)}%).'
        top_themes = ', '.join(themes[:cls.SUMMARY_THEMES])
        if top_themes:
            summary += f' Key themes include: {top_themes}.'
        return summary

    @staticmethod
    def _by_group(items: Sequence[ItemScore]) -> Dict[str, GroupStats]:
        scores: Dict[str, List[float]] = {}
        groups: Dict[str, GroupStats] = {}
        for item in items:
            key = item.source.group_key
            stats = groups.setdefault(key, GroupStats())
            scores.setdefault(key, []).append(item.score)
            setattr(stats, item.label.value, getattr(stats, item.label.value) + 1)

        for key, stats in groups.items():
            stats.total = len(scores[key])
            stats.average_score = sum(scores[key]) / stats.total
        return groups

    @staticmethod
    def _timeline(
            items: Sequence[ItemScore],
            posts: Optional[Sequence[PostRecord]],
    ) -> List[TimelineBucket]:
        """Bucket items by the calendar day their originating post was created."""
        buckets: Dict[str, List[ItemScore]] = {}
        for post in posts or []:
            buckets.setdefault(post.created_date.isoformat(), [])
        for item in items:
            day = post_date(item.source.post_created_at).isoformat()
            buckets.setdefault(day, []).append(item)

        timeline = []
        for day in sorted(buckets):
            day_items = buckets[day]
            counts = Counter(item.label for item in day_items)
            timeline.append(TimelineBucket(
                date=day,
                average_score=(
                    sum(item.score for item in day_items) / len(day_items) if day_items else 0.0
                ),
                positive=counts[SentimentLabel.POSITIVE],
                neutral=counts[SentimentLabel.NEUTRAL],
                negative=counts[SentimentLabel.NEGATIVE],
                total=len(day_items),
            ))
        return timeline
