"""Text extraction and filtering for the community sentiment pipeline.

Turns post records into an ordered list of cleaned TextUnits, dropping
fragments that carry no analysable sentiment (deleted comments, one-word
replies, bare links and numbers). Popular fragments survive the low-effort
filters because their weight shows the community reacted to them.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, List, Optional, Tuple

from .entities import PostRecord, SourceKind, TextSource, TextUnit
from .validator import PostInput, RecordValidator

_QUOTE_MARKER = re.compile(r'^[ \t]*(?:>|&gt;)+[ \t]?', re.MULTILINE)
_MARKDOWN_LINK = re.compile(r'\[([^\]]+)\]\([^)\s]*\)')
_URL = re.compile(r'(?:https?://|www\.)\S+', re.IGNORECASE)
_EMPHASIS = re.compile(r'\*\*|__|~~|\*|`|(?<!\w)_|_(?!\w)')
_WHITESPACE = re.compile(r'\s+')
_THREE_LETTERS = re.compile(r'[^\W\d_]{3}')
_NO_LETTERS = re.compile(r'^[\W\d_]+$')


@dataclass
class CollectionStats:
    """Counts describing one collection pass.

    Attributes:
        raw_count: Candidate fragments seen (titles, bodies, comments).
        kept_count: Fragments turned into TextUnits.
        rejected: Rejections by reason.
    """
    raw_count: int = 0
    kept_count: int = 0
    rejected: Counter = field(default_factory=Counter)

    @property
    def rejected_count(self) -> int:
        return sum(self.rejected.values())


class TextCollector:
    """Extracts and filters candidate text units from post records."""

    LINK_PLACEHOLDER: ClassVar[str] = '[link]'
    MIN_LENGTH: ClassVar[int] = 5
    SHORT_LENGTH: ClassVar[int] = 15
    SHORT_TEXT_MIN_WEIGHT: ClassVar[int] = 5
    LOW_EFFORT_MIN_WEIGHT: ClassVar[int] = 10
    DELETION_PLACEHOLDERS: ClassVar[frozenset] = frozenset({'[deleted]', '[removed]'})
    LOW_EFFORT_PHRASES: ClassVar[frozenset] = frozenset({
        'lol', 'lmao', 'lmfao', 'rofl', 'haha', 'hahaha', 'this', 'this^', '^this',
        'same', 'same here', '+1', 'thanks', 'thank you', 'thx', 'ty', 'ok', 'okay',
        'yes', 'yep', 'yeah', 'no', 'nope', 'nice', 'cool', 'agreed', 'f', 'rip',
        'bump', 'wow', 'true', 'exactly', 'based', 'first', 'edit', 'k',
    })

    @classmethod
    def clean(cls, text: Optional[str]) -> str:
        """Normalise markup in a raw fragment.

        Link syntax is unwrapped to its anchor text, bare URLs become a
        placeholder, emphasis and quote markers are stripped and whitespace
        is collapsed.

        Args:
            text: Raw fragment.

        Returns:
            Cleaned text ('' for None).
        """
        if not text:
            return ''
        cleaned = _QUOTE_MARKER.sub('', text)
        cleaned = _MARKDOWN_LINK.sub(r'\1', cleaned)
        cleaned = _URL.sub(cls.LINK_PLACEHOLDER, cleaned)
        cleaned = _EMPHASIS.sub('', cleaned)
        return _WHITESPACE.sub(' ', cleaned).strip()

    @classmethod
    def rejection_reason(cls, text: Optional[str], weight: int = 0) -> Optional[str]:
        """Why a fragment would be dropped, or None if it is kept.

        Args:
            text: Fragment to check (normally already cleaned).
            weight: Popularity weight of the fragment.

        Returns:
            One of 'empty', 'deleted', 'link_only', 'low_effort', 'too_short',
            or None.
        """
        stripped = (text or '').strip()
        if not stripped:
            return 'empty'

        lowered = stripped.lower()
        if lowered in cls.DELETION_PLACEHOLDERS:
            return 'deleted'

        if not lowered.replace(cls.LINK_PLACEHOLDER, '').strip():
            return 'link_only'

        if cls._is_low_effort(lowered):
            return None if weight >= cls.LOW_EFFORT_MIN_WEIGHT else 'low_effort'

        if len(stripped) < cls.MIN_LENGTH:
            return 'too_short'

        if len(stripped) < cls.SHORT_LENGTH:
            if not _THREE_LETTERS.search(stripped) and weight < cls.SHORT_TEXT_MIN_WEIGHT:
                return 'too_short'

        return None

    @classmethod
    def should_include(cls, text: Optional[str], weight: int = 0) -> bool:
        """Check whether a fragment is worth sending for analysis."""
        return cls.rejection_reason(text, weight) is None

    @classmethod
    def _is_low_effort(cls, lowered: str) -> bool:
        without_links = lowered.replace(cls.LINK_PLACEHOLDER, ' ').strip()
        if _NO_LETTERS.match(without_links):
            return True
        return lowered.rstrip('.!?') in cls.LOW_EFFORT_PHRASES or lowered in cls.LOW_EFFORT_PHRASES

    @staticmethod
    def _candidates(post: PostRecord) -> Iterator[Tuple[str, TextSource]]:
        """Yield (raw text, source) for a post's title, body, then comments."""
        def source(kind: SourceKind, weight: int, comment_id: Optional[str] = None) -> TextSource:
            return TextSource(
                kind=kind,
                post_id=post.id,
                group_key=post.group_key,
                original_weight=weight,
                post_created_at=post.created_at,
                comment_id=comment_id,
            )

        if post.title:
            yield post.title, source(SourceKind.POST_TITLE, post.weight)
        if post.body:
            yield post.body, source(SourceKind.POST_BODY, post.weight)
        for comment in post.comments:
            yield comment.body, source(SourceKind.COMMENT, comment.weight, comment.id)

    def collect_with_stats(self, posts: List[PostInput]) -> Tuple[List[TextUnit], CollectionStats]:
        """Extract TextUnits from posts and report what was filtered.

        Args:
            posts: Post records (PostRecord or upstream dictionaries) in order.

        Returns:
            Tuple of (text units in input order, collection statistics).

        Raises:
            ValidationError: If a post record is malformed.
        """
        records = RecordValidator.validate_records(posts)
        stats = CollectionStats()
        units: List[TextUnit] = []

        for post in records:
            for raw_text, source in self._candidates(post):
                stats.raw_count += 1
                content = self.clean(raw_text)
                reason = self.rejection_reason(content, source.original_weight)
                if reason is not None:
                    stats.rejected[reason] += 1
                    continue
                units.append(TextUnit(content=content, source=source))

        stats.kept_count = len(units)
        logging.info(
            'Collected %d text units from %d posts (%d candidates, %d rejected: %s)',
            stats.kept_count,
            len(records),
            stats.raw_count,
            stats.rejected_count,
            dict(stats.rejected),
        )
        return units, stats

    def collect(self, posts: List[PostInput]) -> List[TextUnit]:
        """Extract TextUnits from posts, preserving order and provenance."""
        units, _ = self.collect_with_stats(posts)
        return units
