"""
Tests for partial results handling.
"""

import asyncio

import httpx
import pytest

from oci_metrics_query.domain.errors import BackendError
from oci_metrics_query.utils.partial_results import (
    PartialResult,
    _classify_error,
    _is_retryable,
    gather_sequential,
)


def _value(value):
    async def _op():
        return value

    return _op


def _fail(exc):
    async def _op():
        raise exc

    return _op


@pytest.mark.asyncio
async def test_all_operations_succeed():
    result = await gather_sequential({"a": _value(1), "b": _value(2)}, "test")

    assert result.successes == {"a": 1, "b": 2}
    assert not result.has_failures
    assert result.success_rate == 1.0


@pytest.mark.asyncio
async def test_failures_recorded_and_others_kept():
    result = await gather_sequential(
        {
            "a": _value(1),
            "b": _fail(httpx.ConnectError("refused")),
            "c": _value(3),
        },
        "test",
    )

    assert result.successes == {"a": 1, "c": 3}
    assert result.failed_identifiers == ["b"]
    failure = result.failures[0]
    assert failure.error_type == "connection_error"
    assert failure.retryable is True
    assert result.success_rate == pytest.approx(2 / 3)


@pytest.mark.asyncio
async def test_operations_run_one_at_a_time():
    running = 0
    peak = 0

    def _tracked():
        async def _op():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1
            return True

        return _op

    await gather_sequential({str(i): _tracked() for i in range(5)}, "test")

    assert peak == 1


@pytest.mark.asyncio
async def test_cancellation_propagates():
    with pytest.raises(asyncio.CancelledError):
        await gather_sequential({"a": _fail(asyncio.CancelledError())}, "test")


def test_empty_result_rate():
    assert PartialResult().success_rate == 0.0


def test_classify_errors():
    request = httpx.Request("POST", "http://example")

    def status(code):
        return httpx.HTTPStatusError(
            "x", request=request, response=httpx.Response(code, request=request)
        )

    assert _classify_error(status(503)) == "server_error"
    assert _classify_error(status(429)) == "rate_limit"
    assert _classify_error(status(403)) == "auth_error"
    assert _classify_error(status(404)) == "not_found"
    assert _classify_error(status(400)) == "http_error"
    assert _classify_error(httpx.ReadTimeout("slow")) == "timeout"
    assert _classify_error(BackendError("not json")) == "malformed_response"
    assert _classify_error(ValueError("bad")) == "parse_error"
    assert _classify_error(KeyError("k")) == "missing_field"
    assert _classify_error(RuntimeError("?")) == "unknown_error"


def test_retryable_types():
    assert _is_retryable("timeout")
    assert _is_retryable("server_error")
    assert not _is_retryable("auth_error")
    assert not _is_retryable("parse_error")
