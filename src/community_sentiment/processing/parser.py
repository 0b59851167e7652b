"""Response parsing for the community sentiment pipeline.

This module recovers the structured batch result from a provider's raw text.
Model output is not contractually well-formed, so parsing is an ordered chain
of recovery strategies; the first that yields a usable JSON object wins and
a neutral placeholder terminates the chain so one bad batch never aborts a run.
"""
import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from .entities import Batch, BatchAnalysis, ItemScore, SentimentLabel
from .exceptions import MalformedResponseError

Strategy = Callable[[str], Dict[str, Any]]

PLACEHOLDER_STRATEGY = 'placeholder'
PARSING_ERROR_THEME = 'parsing_error'

_CODE_FENCE = re.compile(r'```[a-zA-Z]*\s*|```')

# Older response shapes still produced by some prompts and models
_TOP_LEVEL_ALIASES = {
    'individual_scores': 'items',
    'overall_analysis': 'overall',
}
_EXPECTED_KEYS = {'items', 'overall', *_TOP_LEVEL_ALIASES}
_ITEM_ALIASES = {
    'sentiment': 'label',
    'key_themes': 'themes',
    'keyThemes': 'themes',
}
_OVERALL_ALIASES = {
    'average_score': 'averageScore',
    'dominant_themes': 'dominantThemes',
    'key_emotions': 'keyEmotions',
    'sentiment_distribution': 'distribution',
}


def strip_code_fences(raw: str) -> str:
    """Remove markdown code fences (```json ... ```) around a response."""
    return _CODE_FENCE.sub('', raw).strip()


def _has_expected_keys(value: Any) -> bool:
    return isinstance(value, dict) and bool(_EXPECTED_KEYS & value.keys())


def _require_object(value: Any, strategy: str, content: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedResponseError(
            f'Expected a JSON object, got {type(value).__name__}',
            strategy=strategy,
            content=content,
        )
    if not _has_expected_keys(value):
        raise MalformedResponseError(
            f'Object has none of the expected keys: {sorted(value)[:5]}',
            strategy=strategy,
            content=content,
        )
    return value


def parse_direct(raw: str) -> Dict[str, Any]:
    """Strategy 1: parse the whole text as JSON."""
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f'Direct parse failed: {e}', strategy='direct', content=raw
        ) from e
    return _require_object(value, 'direct', raw)


def parse_brace_trim(raw: str) -> Dict[str, Any]:
    """Strategy 2: drop text before the first '{' and after the last '}'."""
    start = raw.find('{')
    end = raw.rfind('}')
    if start == -1 or end <= start:
        raise MalformedResponseError(
            'No brace-delimited region found', strategy='brace_trim', content=raw
        )
    trimmed = raw[start:end + 1]
    try:
        value = json.loads(trimmed)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f'Brace-trimmed parse failed: {e}', strategy='brace_trim', content=trimmed
        ) from e
    return _require_object(value, 'brace_trim', trimmed)


def balanced_objects(raw: str) -> List[str]:
    """Find every balanced ``{...}`` substring, nested ones included.

    Braces inside JSON string literals are ignored. An unmatched closing
    brace is skipped; unclosed openings produce no candidate.
    """
    candidates = []
    stack: List[int] = []
    in_string = False
    escaped = False

    for position, char in enumerate(raw):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            # Quotes only delimit strings inside an object
            in_string = bool(stack)
        elif char == '{':
            stack.append(position)
        elif char == '}' and stack:
            start = stack.pop()
            candidates.append(raw[start:position + 1])

    return candidates


def parse_largest_object(raw: str) -> Dict[str, Any]:
    """Strategy 3: try balanced substrings, largest first.

    Accepts the first candidate that parses to an object containing
    ``items`` or ``overall`` (or their legacy names).
    """
    for candidate in sorted(balanced_objects(raw), key=len, reverse=True):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if _has_expected_keys(value):
            return value
    raise MalformedResponseError(
        'No balanced object containing items or overall', strategy='largest_object', content=raw
    )


def placeholder_result() -> Dict[str, Any]:
    """Neutral result used when every strategy fails."""
    return {
        'items': [],
        'overall': {
            'averageScore': 0,
            'distribution': {'positive': 33, 'neutral': 34, 'negative': 33},
            'dominantThemes': [PARSING_ERROR_THEME],
            'keyEmotions': ['unknown'],
            'summary': 'Analysis failed due to JSON parsing issues',
        },
    }


def _rename_keys(data: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    renamed = {}
    for key, value in data.items():
        target = aliases.get(key, key)
        if target in renamed and target == key:
            renamed[target] = value
        else:
            renamed.setdefault(target, value)
    return renamed


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value)]


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    number = _as_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


class ResponseParser:
    """Recovers a BatchAnalysis from raw provider text."""

    STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
        ('direct', parse_direct),
        ('brace_trim', parse_brace_trim),
        ('largest_object', parse_largest_object),
    )
    DEFAULT_CONFIDENCE = 0.5

    @classmethod
    def parse(cls, raw_response: Optional[str]) -> BatchAnalysis:
        """Parse a raw response, falling back through the recovery chain.

        Args:
            raw_response: Text returned by the provider.

        Returns:
            BatchAnalysis from the first successful strategy, or the neutral
            placeholder. Never raises.
        """
        text = strip_code_fences(raw_response or '')
        for name, strategy in cls.STRATEGIES:
            try:
                data = strategy(text)
            except MalformedResponseError as e:
                logging.debug('Parse strategy %s failed: %s', name, e)
                continue
            if name != 'direct':
                logging.info('Recovered provider response with strategy %s', name)
            return cls._normalize(data, name)

        logging.warning(
            'Could not parse provider response (%d chars); using placeholder result',
            len(text)
        )
        return cls._normalize(placeholder_result(), PLACEHOLDER_STRATEGY)

    @staticmethod
    def _normalize(data: Dict[str, Any], strategy: str) -> BatchAnalysis:
        """Map legacy key names and coerce the top-level shape."""
        data = _rename_keys(data, _TOP_LEVEL_ALIASES)

        raw_items = data.get('items')
        if not isinstance(raw_items, list):
            raw_items = []
        items = [_rename_keys(item, _ITEM_ALIASES) for item in raw_items if isinstance(item, dict)]

        overall = data.get('overall')
        overall = _rename_keys(overall, _OVERALL_ALIASES) if isinstance(overall, dict) else {}

        return BatchAnalysis(items=items, overall=overall, strategy=strategy)

    @classmethod
    def to_item_scores(cls, analysis: BatchAnalysis, batch: Batch) -> List[ItemScore]:
        """Convert parsed items into ItemScores bound to the batch's text units.

        Items whose index is missing, outside ``1..len(batch)`` or repeated
        are dropped. Scores are clamped to [-1, 1] and confidences to [0, 1].

        Args:
            analysis: Parsed response for the batch.
            batch: The batch the response answers.

        Returns:
            ItemScores ordered by index.
        """
        scores: Dict[int, ItemScore] = {}
        for raw_item in analysis.items:
            index = _as_index(raw_item.get('index'))
            unit = batch.unit_for_index(index) if index is not None else None
            if unit is None:
                logging.warning(
                    'Batch %d: dropping item with invalid index %r', batch.ordinal, raw_item.get('index')
                )
                continue
            if index in scores:
                logging.warning('Batch %d: dropping duplicate index %d', batch.ordinal, index)
                continue

            score = _as_float(raw_item.get('score'))
            score = 0.0 if score is None else max(-1.0, min(1.0, score))

            confidence = _as_float(raw_item.get('confidence'))
            confidence = cls.DEFAULT_CONFIDENCE if confidence is None else max(0.0, min(1.0, confidence))

            label = SentimentLabel.from_value(raw_item.get('label')) or SentimentLabel.from_score(score)

            scores[index] = ItemScore(
                index=index,
                score=score,
                label=label,
                confidence=confidence,
                themes=_as_string_list(raw_item.get('themes')),
                emotions=_as_string_list(raw_item.get('emotions')),
                source=unit.source,
                batch_ordinal=batch.ordinal,
            )

        if len(scores) < len(batch):
            logging.info(
                'Batch %d: provider scored %d of %d texts', batch.ordinal, len(scores), len(batch)
            )
        return [scores[index] for index in sorted(scores)]
