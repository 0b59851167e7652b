"""Shared fixtures for the community sentiment tests."""

import pytest

from community_sentiment.config import ProviderProfile, Settings

from .helpers import FakeClient, SleepRecorder, make_post


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def claude_profile():
    return ProviderProfile(provider='claude', batch_size=50, max_text_length=600, pacing_seconds=0.3)


@pytest.fixture
def no_credentials(monkeypatch):
    """Settings with no usable provider credential."""
    monkeypatch.setattr(Settings, 'ANTHROPIC_API_KEY', None)
    monkeypatch.setattr(Settings, 'OPENAI_API_KEY', None)


@pytest.fixture
def three_posts():
    """3 posts x (title, body, 2 comments): 12 raw texts, 10 worth analysing."""
    return [
        make_post(
            'p1', 'New patch finally fixed the matchmaking',
            body='Queue times dropped from ten minutes to under one.',
            comments=[
                {'id': 'c1', 'body': 'Feels so much better to play now', 'score': 12},
                {'id': 'c2', 'body': '[deleted]', 'score': 50},
            ],
            created_utc=1700000000,
        ),
        make_post(
            'p2', 'Server outages again this weekend',
            body='Third weekend in a row that ranked was unplayable.',
            comments=[
                {'id': 'c3', 'body': 'lol', 'score': 2},
                {'id': 'c4', 'body': 'Support never answered my ticket either', 'score': 8},
            ],
            subreddit='pcgaming',
            created_utc=1700100000,
        ),
        make_post(
            'p3', 'Which class is best for beginners?',
            body='Just started and the skill trees look overwhelming.',
            comments=[
                {'id': 'c5', 'body': 'Paladin is very forgiving for new players', 'score': 20},
                {'id': 'c6', 'body': 'Try the ranger, great solo class', 'score': 4},
            ],
            created_utc=1700100000,
        ),
    ]
