"""Shared test doubles for the community sentiment tests."""

import json
import re
from typing import Callable, Dict, List, Optional, Union

from community_sentiment.llm import Client

_INDEX = re.compile(r'^\[(\d+)\] ', re.MULTILINE)

Handler = Callable[[str], str]


def prompt_indices(prompt: str) -> List[int]:
    """Indices rendered as ``[i] text`` in a batch prompt."""
    return [int(i) for i in _INDEX.findall(prompt)]


def scored_response(
        indices: List[int],
        score: float = 0.5,
        label: Optional[str] = None,
        themes: Optional[List[str]] = None,
        emotions: Optional[List[str]] = None,
) -> str:
    """JSON response scoring each index with the same values."""
    if label is None:
        label = 'positive' if score > 0.1 else 'negative' if score < -0.1 else 'neutral'
    return json.dumps({
        'items': [
            {
                'index': i,
                'score': score,
                'label': label,
                'confidence': 0.9,
                'themes': themes if themes is not None else ['gameplay'],
                'emotions': emotions if emotions is not None else ['joy'],
            }
            for i in indices
        ],
        'overall': {'averageScore': score, 'summary': 'ok'},
    })


def score_everything(prompt: str) -> str:
    return scored_response(prompt_indices(prompt))


class FakeClient(Client):
    """In-memory provider: each call is answered by a handler or a queued result."""

    def __init__(
            self,
            handler: Handler = score_everything,
            queue: Optional[List[Union[str, Exception]]] = None,
    ) -> None:
        super().__init__('fake-model')
        self.handler = handler
        self.queue = list(queue or [])
        self.prompts: List[str] = []
        self.max_tokens: List[Optional[int]] = []

    def _answer(self, prompt: str, max_tokens: Optional[int]) -> str:
        self._validate_prompt(prompt)
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if self.queue:
            result = self.queue.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return self.handler(prompt)

    def call(self, prompt: str, *, max_tokens: Optional[int] = None) -> str:
        return self._answer(prompt, max_tokens)

    async def call_async(self, prompt: str, *, max_tokens: Optional[int] = None) -> str:
        return self._answer(prompt, max_tokens)


class SleepRecorder:
    """Stands in for time.sleep / asyncio.sleep and records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    async def async_sleep(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_post(
        post_id: str,
        title: str,
        *,
        body: Optional[str] = None,
        comments: Optional[List[Dict]] = None,
        subreddit: str = 'gaming',
        created_utc: float = 1700000000,
        score: int = 10,
) -> Dict:
    """Post in the upstream forum JSON shape."""
    return {
        'id': post_id,
        'title': title,
        'selftext': body or '',
        'subreddit': subreddit,
        'created_utc': created_utc,
        'score': score,
        'comments': comments or [],
    }
