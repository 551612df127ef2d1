"""Test the OpenRouter client against a mocked transport."""
import asyncio
import json

import httpx
import pytest

from execution.api_clients import (
    JSON_OBJECT,
    EmptyCompletion,
    LLMRequestError,
    OpenRouterClient,
    get_chat_client,
    normalize_openai_usage,
    parse_model_id,
)
from execution.retry_handler import RetryHandler
from extraction.models import ChatMessage

MESSAGES = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")]


def make_client(handler):
    http = httpx.AsyncClient(base_url="https://openrouter.test/api/v1", transport=httpx.MockTransport(handler))
    return OpenRouterClient(api_key="test-key", http_client=http, retry_handler=RetryHandler(max_retries=3, base_delay=0))


def test_chat_complete_sends_body_and_reads_usage():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "choices": [{"message": {"content": "{\"chapters\": []}"}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
        })

    client = make_client(handler)
    result = asyncio.run(client.chat_complete("google/gemini-2.0-flash-001", MESSAGES, 0.2, 2000, JSON_OBJECT))

    assert seen["path"] == "/api/v1/chat/completions"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["messages"][1] == {"role": "user", "content": "hi"}
    assert result.usage.total_tokens == 15


def test_server_errors_are_retried():
    responses = [httpx.Response(502, text="bad gateway"), httpx.Response(200, json={
        "choices": [{"message": {"content": "done"}}],
    })]

    client = make_client(lambda request: responses.pop(0))
    result = asyncio.run(client.chat_complete("a/b", MESSAGES, 0.6, 100))

    assert result.content == "done"
    assert result.usage is None


def test_unauthorized_fails_fast():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="no auth")

    with pytest.raises(LLMRequestError) as exc_info:
        asyncio.run(make_client(handler).chat_complete("a/b", MESSAGES, 0.6, 100))

    assert exc_info.value.status_code == 401
    assert len(calls) == 1


def test_empty_content_raises_after_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  "}}]})

    with pytest.raises(EmptyCompletion):
        asyncio.run(make_client(handler).chat_complete("a/b", MESSAGES, 0.6, 100))
    assert len(calls) == 3


def test_pricing_lookup():
    def handler(request):
        assert request.url.path == "/api/v1/models/openai/gpt-5.2/endpoints"
        return httpx.Response(200, json={"data": {"endpoints": [
            {"pricing": {"prompt": "0.000002", "completion": "0.00001", "request": "0"}},
        ]}})

    pricing = asyncio.run(make_client(handler).get_pricing("openai/gpt-5.2"))

    assert pricing.prompt_usd_per_token == pytest.approx(0.000002)
    assert pricing.completion_usd_per_token == pytest.approx(0.00001)
    assert pricing.request_usd == 0


def test_pricing_unavailable_is_none():
    client = make_client(lambda request: httpx.Response(404))

    assert asyncio.run(client.get_pricing("openai/missing")) is None
    assert asyncio.run(client.get_pricing("not-a-model-id")) is None


def test_parse_model_id():
    assert parse_model_id("moonshotai/kimi-k2-thinking") == ("moonshotai", "kimi-k2-thinking")
    assert parse_model_id("no-slash") is None
    assert parse_model_id("a/b/c") is None


def test_normalize_usage():
    assert normalize_openai_usage({"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}).total_tokens == 3
    assert normalize_openai_usage({"prompt_tokens": 1}) is None
    assert normalize_openai_usage(None) is None


def test_unknown_provider():
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        get_chat_client("carrier-pigeon")
