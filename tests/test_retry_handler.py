"""Test retry policy for LLM calls."""
import asyncio

import httpx
import pytest

from execution.api_clients import EmptyCompletion, LLMRequestError
from execution.retry_handler import RetryHandler, is_retryable_error


@pytest.mark.parametrize("status, retryable", [
    (500, True), (502, True), (503, True), (429, True),
    (400, False), (401, False), (403, False), (404, False),
])
def test_status_codes(status, retryable):
    assert is_retryable_error(LLMRequestError("boom", status_code=status)) is retryable


def test_network_errors_and_empty_completions_retry():
    request = httpx.Request("POST", "https://example.test")

    assert is_retryable_error(httpx.ConnectError("down", request=request))
    assert is_retryable_error(httpx.ReadTimeout("slow", request=request))
    assert is_retryable_error(EmptyCompletion("empty"))


def test_unrelated_errors_fail_fast():
    assert not is_retryable_error(ValueError("bad input"))


def test_retries_until_success():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise LLMRequestError("overloaded", status_code=503)
        return "ok"

    handler = RetryHandler(max_retries=3, base_delay=0)

    assert asyncio.run(handler.execute_with_retry(flaky)) == "ok"
    assert len(attempts) == 3


def test_gives_up_after_max_retries():
    attempts = []

    async def always_busy():
        attempts.append(1)
        raise LLMRequestError("rate limited", status_code=429)

    with pytest.raises(LLMRequestError):
        asyncio.run(RetryHandler(max_retries=3, base_delay=0).execute_with_retry(always_busy))
    assert len(attempts) == 3


def test_client_errors_are_not_retried():
    attempts = []

    async def unauthorized():
        attempts.append(1)
        raise LLMRequestError("bad key", status_code=401)

    with pytest.raises(LLMRequestError):
        asyncio.run(RetryHandler(max_retries=3, base_delay=0).execute_with_retry(unauthorized))
    assert len(attempts) == 1
