"""Tests for the provider clients, with the vendor SDK and HTTP layer mocked."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import anthropic
import httpx
import pytest
import requests

from community_sentiment.llm import (
    APIError,
    AuthenticationError,
    ClaudeClient,
    FailureClass,
    LLMConnectionError,
    LLMValidationError,
    OpenAIClient,
    RateLimitError,
    classify_failure,
)
from community_sentiment.llm import claude_client as claude_module
from community_sentiment.llm import openai_client as openai_module

ANTHROPIC_REQUEST = httpx.Request('POST', 'https://api.anthropic.com/v1/messages')


def _claude_message(text):
    return SimpleNamespace(content=[SimpleNamespace(type='text', text=text)])


def _anthropic_status(cls, status, headers=None):
    return cls(
        f'HTTP {status}',
        response=httpx.Response(status, request=ANTHROPIC_REQUEST, headers=headers or {}),
        body=None,
    )


@pytest.fixture
def claude():
    with patch.object(claude_module.anthropic, 'Anthropic'), \
            patch.object(claude_module.anthropic, 'AsyncAnthropic'), \
            patch.object(claude_module.tiktoken, 'get_encoding') as get_encoding:
        get_encoding.return_value.encode.return_value = [1, 2, 3]
        yield ClaudeClient(api_key='sk-ant-test', model='claude-3-5-sonnet-20241022')


@pytest.fixture
def openai_client():
    return OpenAIClient(api_key='sk-test', model='gpt-3.5-turbo')


def _http_response(status=200, payload=None, headers=None, text=''):
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    response.text = text
    response.json.return_value = payload
    return response


def _completion(text):
    return {'choices': [{'message': {'role': 'assistant', 'content': text}}]}


class TestClaudeClient:
    """Anthropic Messages API client."""

    def test_client_type(self, claude):
        assert claude.client_type == 'claude'

    def test_sdk_retries_disabled(self):
        with patch.object(claude_module.anthropic, 'Anthropic') as sync_cls, \
                patch.object(claude_module.anthropic, 'AsyncAnthropic') as async_cls, \
                patch.object(claude_module.tiktoken, 'get_encoding'):
            ClaudeClient(api_key='sk-ant-test', model='claude-3-5-sonnet-20241022', timeout=30)
        sync_cls.assert_called_once_with(api_key='sk-ant-test', max_retries=0, timeout=30)
        async_cls.assert_called_once_with(api_key='sk-ant-test', max_retries=0, timeout=30)

    def test_call_returns_text(self, claude):
        claude.client.messages.create.return_value = _claude_message('{"items": []}')

        assert claude.call('analyze this') == '{"items": []}'

        kwargs = claude.client.messages.create.call_args.kwargs
        assert kwargs['model'] == 'claude-3-5-sonnet-20241022'
        assert kwargs['max_tokens'] == 8192
        assert kwargs['messages'] == [{'role': 'user', 'content': 'analyze this'}]
        assert 'JSON' in kwargs['system']

    def test_call_async(self, claude):
        claude.async_client.messages.create = AsyncMock(return_value=_claude_message('done'))
        assert asyncio.run(claude.call_async('analyze this', max_tokens=100)) == 'done'
        assert claude.async_client.messages.create.call_args.kwargs['max_tokens'] == 100

    def test_empty_response(self, claude):
        claude.client.messages.create.return_value = SimpleNamespace(content=[])
        with pytest.raises(APIError):
            claude.call('analyze this')

    def test_empty_prompt(self, claude):
        with pytest.raises(LLMValidationError):
            claude.call('   ')
        claude.client.messages.create.assert_not_called()

    def test_rate_limit_carries_retry_after(self, claude):
        claude.client.messages.create.side_effect = _anthropic_status(
            anthropic.RateLimitError, 429, headers={'retry-after': '12'}
        )
        with pytest.raises(RateLimitError) as exc_info:
            claude.call('analyze this')
        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.client_type == 'claude'

    def test_overloaded(self, claude):
        claude.client.messages.create.side_effect = _anthropic_status(anthropic.APIStatusError, 529)
        with pytest.raises(APIError) as exc_info:
            claude.call('analyze this')
        assert exc_info.value.status_code == 529
        assert classify_failure(exc_info.value) is FailureClass.OVERLOADED

    def test_authentication(self, claude):
        claude.client.messages.create.side_effect = _anthropic_status(anthropic.AuthenticationError, 401)
        with pytest.raises(AuthenticationError):
            claude.call('analyze this')

    def test_connection_and_timeout(self, claude):
        claude.client.messages.create.side_effect = anthropic.APIConnectionError(request=ANTHROPIC_REQUEST)
        with pytest.raises(LLMConnectionError):
            claude.call('analyze this')

        claude.client.messages.create.side_effect = anthropic.APITimeoutError(request=ANTHROPIC_REQUEST)
        with pytest.raises(APIError) as exc_info:
            claude.call('analyze this')
        assert exc_info.value.status_code is None

    @pytest.mark.parametrize('kwargs', [
        {'api_key': ''},
        {'max_tokens': 9000},
        {'temperature': 1.5},
        {'timeout': 0},
    ])
    def test_invalid_arguments(self, kwargs):
        params = {'api_key': 'sk-ant-test', 'model': 'claude-3-5-sonnet-20241022', **kwargs}
        with pytest.raises(ValueError):
            ClaudeClient(**params)


class TestOpenAIClient:
    """Chat completions HTTP client."""

    def test_call_posts_bearer_request(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(payload=_completion('{"items": []}'))
            assert openai_client.call('analyze this') == '{"items": []}'

        args, kwargs = post.call_args
        assert args[0] == 'https://api.openai.com/v1/chat/completions'
        assert kwargs['headers']['Authorization'] == 'Bearer sk-test'
        assert kwargs['json']['model'] == 'gpt-3.5-turbo'
        assert kwargs['json']['max_tokens'] == 4000
        assert kwargs['json']['temperature'] == 0.3
        assert kwargs['json']['messages'] == [{'role': 'user', 'content': 'analyze this'}]
        assert kwargs['timeout'] == 120.0

    @pytest.mark.parametrize('status, error_type', [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (429, RateLimitError),
        (503, APIError),
        (400, APIError),
    ])
    def test_status_errors(self, openai_client, status, error_type):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(status=status, text='error body')
            with pytest.raises(error_type):
                openai_client.call('analyze this')

    def test_rate_limit_retry_after(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(status=429, headers={'Retry-After': '7'})
            with pytest.raises(RateLimitError) as exc_info:
                openai_client.call('analyze this')
        assert exc_info.value.retry_after == 7.0
        assert classify_failure(exc_info.value) is FailureClass.RATE_LIMITED

    def test_server_error_is_transient(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(status=502)
            with pytest.raises(APIError) as exc_info:
                openai_client.call('analyze this')
        assert exc_info.value.status_code == 502
        assert classify_failure(exc_info.value) is FailureClass.TRANSIENT

    def test_network_errors(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.side_effect = requests.exceptions.ConnectionError('refused')
            with pytest.raises(LLMConnectionError) as exc_info:
                openai_client.call('analyze this')
            assert exc_info.value.endpoint == openai_client.endpoint

            post.side_effect = requests.exceptions.Timeout('slow')
            with pytest.raises(APIError):
                openai_client.call('analyze this')

    def test_malformed_payload(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(payload={'choices': []})
            with pytest.raises(APIError):
                openai_client.call('analyze this')

    def test_call_async(self, openai_client):
        response = MagicMock()
        response.status = 200
        response.json = AsyncMock(return_value=_completion('async result'))
        session = MagicMock()
        session.post.return_value.__aenter__.return_value = response

        with patch.object(openai_module.aiohttp, 'ClientSession') as session_cls:
            session_cls.return_value.__aenter__.return_value = session
            assert asyncio.run(openai_client.call_async('analyze this')) == 'async result'

        assert session.post.call_args.kwargs['headers']['Authorization'] == 'Bearer sk-test'

    def test_call_async_rate_limited(self, openai_client):
        response = MagicMock()
        response.status = 429
        response.text = AsyncMock(return_value='limited')
        response.headers = {'Retry-After': '3'}
        session = MagicMock()
        session.post.return_value.__aenter__.return_value = response

        with patch.object(openai_module.aiohttp, 'ClientSession') as session_cls:
            session_cls.return_value.__aenter__.return_value = session
            with pytest.raises(RateLimitError) as exc_info:
                asyncio.run(openai_client.call_async('analyze this'))
        assert exc_info.value.retry_after == 3.0


class TestCheckConnection:
    """Connectivity check shared by both clients."""

    def test_success(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(payload=_completion(' API test successful \n'))
            check = openai_client.check_connection()

        assert check.success is True
        assert check.details == 'API test successful'
        assert post.call_args.kwargs['json']['max_tokens'] == 50

    def test_failure_is_reported_not_raised(self, openai_client):
        with patch.object(openai_module.requests, 'post') as post:
            post.return_value = _http_response(status=401)
            check = openai_client.check_connection()

        assert check.success is False
        assert 'openai' in check.message

    def test_claude_connection_check(self, claude):
        claude.client.messages.create.return_value = _claude_message('API test successful')
        check = claude.check_connection()
        assert check.success is True
        assert claude.client.messages.create.call_args.kwargs['max_tokens'] == 50
