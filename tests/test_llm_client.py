"""Unit tests for the model client wrapper and error classification."""
import asyncio
from types import SimpleNamespace

import pytest

from sitegen.errors import ErrorCategory, ModelError
from sitegen.llm_client import (
    AnthropicModelClient,
    classify_error,
    classify_error_text,
    parse_json_object,
    strip_code_fences,
)
from sitegen.models import TokenUsage


class _FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.kwargs = None

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def _gen():
            for chunk in self.chunks:
                yield chunk
        return _gen()

    async def get_final_message(self):
        return SimpleNamespace(usage=SimpleNamespace(input_tokens=12, output_tokens=7))


def _client_with_stream(settings, stream):
    client = AnthropicModelClient(settings)
    calls = []

    def _stream(**kwargs):
        calls.append(kwargs)
        return stream

    client._client = SimpleNamespace(messages=SimpleNamespace(stream=_stream))
    return client, calls


class TestClassifyErrorText:

    @pytest.mark.parametrize("message, category, status", [
        ("Error code: 429 - rate_limit_error", ErrorCategory.quota, 429),
        ("Error code: 401 - invalid x-api-key", ErrorCategory.auth, 401),
        ("Error code: 403 - forbidden", ErrorCategory.auth, 403),
        ("Error code: 503 - overloaded", ErrorCategory.service, 503),
        ("Error code: 500 - internal", ErrorCategory.service, 503),
        ("something odd", ErrorCategory.generic, 500),
    ])
    def test_categories(self, message, category, status):
        error = classify_error_text(message)
        assert error.category == category
        assert error.status_code == status
        assert error.message == message

    def test_timeout_is_service(self):
        error = classify_error(asyncio.TimeoutError())
        assert error.category == ErrorCategory.service
        assert error.message == "Model call timed out"
        assert error.status_code == 503

    def test_model_error_passes_through(self):
        original = ModelError(ErrorCategory.quota, "x")
        assert classify_error(original) is original

    def test_user_messages_differ_per_category(self):
        messages = {classify_error_text(m).user_message for m in ("429", "401", "503", "odd")}
        assert len(messages) == 4


class TestJsonHelpers:

    def test_strip_fences(self):
        assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
        assert strip_code_fences("plain") == "plain"

    def test_object_inside_chatter(self):
        assert parse_json_object('Here you go:\n{"components": []}\nThanks!') == {"components": []}

    @pytest.mark.parametrize("text", ["no json", "[1, 2]", "{broken"])
    def test_rejects_non_objects(self, text):
        with pytest.raises(ValueError):
            parse_json_object(text)


class TestAnthropicModelClient:

    async def test_missing_key_is_auth_error(self, settings):
        client = AnthropicModelClient(settings.model_copy(update={"anthropic_api_key": ""}))
        with pytest.raises(ModelError) as exc_info:
            await client.complete("hi")
        assert exc_info.value.category == ErrorCategory.auth

    async def test_streams_text_and_records_usage(self, settings):
        client, calls = _client_with_stream(settings, _FakeStream(['{"co', 'de": 1}']))
        usage = TokenUsage()

        raw = await client.complete("prompt", system="sys", max_tokens=100, temperature=0.5, usage=usage)

        assert raw == '{"code": 1}'
        assert usage.total_input_tokens == 12
        assert usage.total_output_tokens == 7
        assert usage.total_tokens == 19
        assert usage.requests == 1
        assert calls[0]["model"] == settings.default_model
        assert calls[0]["max_tokens"] == 100
        assert calls[0]["temperature"] == 0.5
        assert calls[0]["system"][0]["text"] == "sys"

    async def test_upstream_failure_is_classified(self, settings):
        client, _ = _client_with_stream(settings, _FakeStream([], error=RuntimeError("Error code: 429 - slow down")))
        with pytest.raises(ModelError) as exc_info:
            await client.complete("prompt")
        assert exc_info.value.category == ErrorCategory.quota
        assert exc_info.value.status_code == 429
