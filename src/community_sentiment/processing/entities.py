"""Data models for the community sentiment pipeline.

This module provides data classes for input post records, the text units
derived from them, provider batches, per-item scores and the aggregate result
handed back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import ValidationError

Timestamp = Union[int, float, datetime]


class SourceKind(Enum):
    """Where a text unit came from within a post."""
    POST_TITLE = 'post_title'
    POST_BODY = 'post_body'
    COMMENT = 'comment'


class SentimentLabel(Enum):
    """Sentiment classification of one text unit."""
    POSITIVE = 'positive'
    NEUTRAL = 'neutral'
    NEGATIVE = 'negative'

    @classmethod
    def from_value(cls, value: Any) -> Optional['SentimentLabel']:
        """Parse a label case-insensitively, returning None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def from_score(cls, score: float, band: float = 0.1) -> 'SentimentLabel':
        """Derive a label from a score with a neutral band around zero."""
        if score > band:
            return cls.POSITIVE
        if score < -band:
            return cls.NEGATIVE
        return cls.NEUTRAL


def normalize_timestamp(value: Any) -> Timestamp:
    """Coerce an upstream creation time to epoch seconds or a datetime.

    Numbers and numeric strings are epoch seconds. Other strings must be ISO
    8601; a trailing ``Z`` is read as UTC.

    Raises:
        ValueError: If the value is not a usable timestamp.
    """
    if isinstance(value, bool):
        raise ValueError(f'Invalid timestamp: {value!r}')
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            if text[-1:] in ('Z', 'z'):
                text = text[:-1] + '+00:00'
            return datetime.fromisoformat(text)
    else:
        raise ValueError(f'Invalid timestamp: {value!r}')

    try:
        datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f'Timestamp out of range: {value!r}') from e
    return value if isinstance(value, (int, float)) else seconds


def post_date(created_at: Timestamp) -> date:
    """Calendar day of a post's creation time.

    Epoch timestamps are UTC, as the upstream forum API reports them. Aware
    datetimes keep their own timezone; naive datetimes are taken as-is.
    """
    created_at = normalize_timestamp(created_at)
    if isinstance(created_at, datetime):
        return created_at.date()
    return datetime.fromtimestamp(float(created_at), tz=timezone.utc).date()


@dataclass
class CommentRecord:
    """A comment attached to a post.

    Attributes:
        id: Comment identifier.
        body: Comment text.
        weight: Popularity weight (e.g. upvote count).
    """
    id: str
    body: str
    weight: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CommentRecord':
        """Create a CommentRecord from upstream JSON (``score`` is accepted for weight)."""
        try:
            return cls(
                id=str(data.get('id', '')),
                body=str(data.get('body') or ''),
                weight=int(data.get('weight', data.get('score', 0)) or 0),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f'Invalid comment data: {e}') from e


@dataclass
class PostRecord:
    """A forum post with its comments, as delivered by the upstream fetcher.

    Attributes:
        id: Post identifier.
        title: Post title.
        group_key: Community the post belongs to (e.g. subreddit name).
        created_at: Creation time as UNIX epoch seconds (UTC) or a datetime;
            numeric and ISO 8601 strings are normalised by from_dict.
        body: Optional self-text.
        comments: Comments in thread order.
        weight: Popularity weight of the post itself.
    """
    id: str
    title: str
    group_key: str
    created_at: Timestamp
    body: Optional[str] = None
    comments: List[CommentRecord] = field(default_factory=list)
    weight: int = 0

    @property
    def created_date(self) -> date:
        return post_date(self.created_at)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PostRecord':
        """Create a PostRecord from upstream JSON.

        Accepts both the pipeline's own keys and the forum API's names
        (``selftext``, ``subreddit``, ``created_utc``, ``score``).

        Raises:
            ValidationError: If required fields are missing or malformed.
        """
        created_at = data.get('created_at', data.get('created_utc'))
        group_key = data.get('group_key', data.get('subreddit'))
        missing = [
            name for name, value in (
                ('id', data.get('id')),
                ('group_key', group_key),
                ('created_at', created_at),
            )
            if value in (None, '')
        ]
        if missing:
            raise ValidationError(
                f'Missing required fields: {missing}',
                record_id=str(data.get('id', 'unknown')),
                missing_fields=missing,
            )
        try:
            return cls(
                id=str(data['id']),
                title=str(data.get('title') or ''),
                group_key=str(group_key),
                created_at=normalize_timestamp(created_at),
                body=data.get('body', data.get('selftext')) or None,
                comments=[CommentRecord.from_dict(c) for c in data.get('comments') or []],
                weight=int(data.get('weight', data.get('score', 0)) or 0),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f'Invalid post data: {e}', record_id=str(data.get('id'))
            ) from e


@dataclass(frozen=True)
class TextSource:
    """Provenance of a text unit.

    Attributes:
        kind: Title, body or comment.
        post_id: Originating post.
        group_key: Community of the originating post.
        original_weight: Popularity weight of the fragment.
        post_created_at: Creation time of the originating post.
        comment_id: Comment identifier for comment units.
    """
    kind: SourceKind
    post_id: str
    group_key: str
    original_weight: int
    post_created_at: Timestamp
    comment_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'kind': self.kind.value,
            'postId': self.post_id,
            'groupKey': self.group_key,
            'originalWeight': self.original_weight,
        }
        if self.comment_id is not None:
            data['commentId'] = self.comment_id
        return data


@dataclass(frozen=True)
class TextUnit:
    """One cleaned, filtered text fragment plus its provenance."""
    content: str
    source: TextSource


@dataclass(frozen=True)
class Batch:
    """A contiguous slice of text units sent in one provider call.

    Attributes:
        items: Text units in prompt order; position i holds index i + 1.
        ordinal: 1-based batch number within the run.
        offset: Global position of ``items[0]`` in the collected unit list.
    """
    items: Tuple[TextUnit, ...]
    ordinal: int
    offset: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def unit_for_index(self, index: int) -> Optional[TextUnit]:
        """Text unit for a 1-based batch-local index, or None if out of range."""
        if 1 <= index <= len(self.items):
            return self.items[index - 1]
        return None

    def global_position(self, index: int) -> int:
        """Global 0-based position of a 1-based batch-local index."""
        return self.offset + index - 1


@dataclass
class ItemScore:
    """Sentiment result for one text unit.

    Attributes:
        index: 1-based index within its batch.
        score: Sentiment score in [-1, 1].
        label: Positive, negative or neutral.
        confidence: Model confidence in [0, 1].
        themes: Key themes named by the model.
        source: Provenance copied from the originating text unit.
        emotions: Emotions named by the model, when provided.
        batch_ordinal: Batch the score came from.
    """
    index: int
    score: float
    label: SentimentLabel
    confidence: float
    themes: List[str]
    source: TextSource
    emotions: List[str] = field(default_factory=list)
    batch_ordinal: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'score': self.score,
            'label': self.label.value,
            'confidence': self.confidence,
            'themes': list(self.themes),
            'emotions': list(self.emotions),
            'batch': self.batch_ordinal,
            'source': self.source.to_dict(),
        }


@dataclass
class BatchAnalysis:
    """Structured object recovered from one raw provider response.

    Attributes:
        items: Raw per-item dictionaries (keys normalised).
        overall: Raw batch-level summary block (keys normalised).
        strategy: Name of the recovery strategy that produced it.
    """
    items: List[Dict[str, Any]]
    overall: Dict[str, Any]
    strategy: str

    @property
    def is_placeholder(self) -> bool:
        """True when no strategy succeeded and the neutral placeholder was used."""
        return 'parsing_error' in self.overall.get('dominantThemes', [])


@dataclass
class GroupStats:
    """Per-community statistics."""
    average_score: float = 0.0
    total: int = 0
    positive: int = 0
    neutral: int = 0
    negative: int = 0


@dataclass
class TimelineBucket:
    """Statistics for all items whose originating post was created on ``date``."""
    date: str
    average_score: float
    positive: int
    neutral: int
    negative: int
    total: int


@dataclass
class AggregateResult:
    """Final output of a pipeline run.

    Attributes:
        average_score: Mean score over scored items, 2 decimals.
        distribution: Percentages per label, each rounded independently.
        dominant_themes: Up to five most frequent themes.
        key_emotions: Up to five most frequent emotions.
        summary: One-line description of the overall sentiment.
        items: Every item score that was produced.
        by_group: Per-community statistics.
        timeline: Per-day statistics, ascending by date.
    """
    average_score: float
    distribution: Dict[str, int]
    dominant_themes: List[str]
    key_emotions: List[str]
    summary: str
    items: List[ItemScore] = field(default_factory=list)
    by_group: Dict[str, GroupStats] = field(default_factory=dict)
    timeline: List[TimelineBucket] = field(default_factory=list)

    def overall(self) -> Dict[str, Any]:
        """The overall block alone, as plain data."""
        return {
            'averageScore': self.average_score,
            'distribution': dict(self.distribution),
            'dominantThemes': list(self.dominant_themes),
            'keyEmotions': list(self.key_emotions),
            'summary': self.summary,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-ready representation for external callers."""
        return {
            'overall': self.overall(),
            'items': [item.to_dict() for item in self.items],
            'byGroup': {
                key: {
                    'averageScore': stats.average_score,
                    'total': stats.total,
                    'positive': stats.positive,
                    'neutral': stats.neutral,
                    'negative': stats.negative,
                }
                for key, stats in self.by_group.items()
            },
            'timeline': [
                {
                    'date': bucket.date,
                    'averageScore': bucket.average_score,
                    'positive': bucket.positive,
                    'neutral': bucket.neutral,
                    'negative': bucket.negative,
                    'total': bucket.total,
                }
                for bucket in self.timeline
            ],
        }
