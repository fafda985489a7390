"""Tests for ReliableRequestExecutor retry behaviour."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from reliable_request.errors import HttpConnectionError, ParameterError
from reliable_request.http.client import ReliableRequestExecutor, RequestOptions
from reliable_request.http.types import RequestSpec
from reliable_request.http.validation import InvalidParamsPolicy


def _executor(transport, sleep) -> ReliableRequestExecutor:
    return ReliableRequestExecutor(transport, sleep=sleep)


class TestTimeouts:
    """Attempts that exceed their deadline."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    async def test_always_timing_out_exhausts_attempts(
        self, make_transport, recording_sleep, max_attempts: int
    ) -> None:
        """N attempts produce N sends, N-1 delays and a False result."""
        transport = make_transport([make_transport.HANG])
        executor = _executor(transport, recording_sleep)

        result = await executor.get_async("http://example.com", 10, max_attempts)

        assert result is False
        assert len(transport.sent) == max_attempts
        assert recording_sleep.calls == [0.25] * (max_attempts - 1)

    @pytest.mark.asyncio
    async def test_timeout_messages_follow_attempt_order(
        self, make_transport, recording_sleep, log_messages
    ) -> None:
        transport = make_transport([make_transport.HANG])
        executor = _executor(transport, recording_sleep)

        await executor.post_async("http://example.com", 10, 3, on_log=log_messages.append)

        assert log_messages == [
            "request exceeded timeout 10",
            "attempt 1 failed, retrying in 250 ms",
            "request exceeded timeout 10",
            "attempt 2 failed, retrying in 250 ms",
            "request exceeded timeout 10",
        ]

    @pytest.mark.asyncio
    async def test_timedelta_timeout_is_accepted(self, make_transport, recording_sleep) -> None:
        transport = make_transport([make_transport.HANG, 200])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async("http://example.com", timedelta(milliseconds=10), 2)
        assert len(transport.sent) == 2

    @pytest.mark.asyncio
    async def test_get_bytes_returns_none_when_exhausted(
        self, make_transport, recording_sleep
    ) -> None:
        transport = make_transport([make_transport.HANG])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async_bytes("http://example.com", 10, 2) is None


class TestEventualSuccess:
    """Failures followed by a successful attempt."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("max_attempts", "k"), [(2, 2), (3, 2), (5, 3), (3, 1)])
    async def test_stops_at_first_success(
        self, make_transport, recording_sleep, connection_refused, max_attempts: int, k: int
    ) -> None:
        transport = make_transport([connection_refused] * (k - 1) + [200])
        executor = _executor(transport, recording_sleep)

        assert await executor.post_async("http://example.com", 100, max_attempts, body="x")
        assert len(transport.sent) == k
        assert len(recording_sleep.calls) == k - 1

    @pytest.mark.asyncio
    async def test_get_bytes_returns_exact_body(
        self, make_transport, recording_sleep, connection_refused
    ) -> None:
        transport = make_transport([connection_refused, 503, (200, b"\x00payload\xff")])
        executor = _executor(transport, recording_sleep)

        body = await executor.get_async_bytes("http://example.com", 100, 3)

        assert body == b"\x00payload\xff"
        assert len(transport.sent) == 3
        final = transport.responses[-1]
        assert final.read_calls == 1
        assert final.closed

    @pytest.mark.asyncio
    async def test_get_bytes_distinguishes_empty_body(self, make_transport, recording_sleep) -> None:
        transport = make_transport([204])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async_bytes("http://example.com", 100, 1) == b""

    @pytest.mark.asyncio
    async def test_transport_error_is_logged(
        self, make_transport, recording_sleep, log_messages
    ) -> None:
        transport = make_transport([HttpConnectionError("connection refused"), 200])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async("http://example.com", 100, 2, on_log=log_messages.append)
        assert log_messages == [
            "error: connection refused",
            "attempt 1 failed, retrying in 250 ms",
        ]


class TestErrorStatus:
    """Responses outside the success range."""

    @pytest.mark.asyncio
    async def test_post_does_not_retry_error_status(
        self, make_transport, recording_sleep, log_messages
    ) -> None:
        transport = make_transport([500, 200])
        executor = _executor(transport, recording_sleep)

        result = await executor.post_async(
            "http://example.com", 100, 3, body="data", on_log=log_messages.append
        )

        assert result is False
        assert len(transport.sent) == 1
        assert recording_sleep.calls == []
        assert log_messages == ["unsuccessful status 500"]
        assert transport.responses[0].closed

    @pytest.mark.asyncio
    async def test_get_retries_error_status(self, make_transport, recording_sleep) -> None:
        transport = make_transport([500, 500, 200])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async("http://example.com", 100, 3) is True
        assert len(transport.sent) == 3
        assert all(response.closed for response in transport.responses)

    @pytest.mark.asyncio
    async def test_get_bytes_exhausted_on_error_status(
        self, make_transport, recording_sleep
    ) -> None:
        transport = make_transport([(500, b"oops")])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async_bytes("http://example.com", 100, 2) is None
        assert len(transport.sent) == 2
        assert all(response.read_calls == 0 for response in transport.responses)


class TestParameterValidation:
    """Invalid url, timeout or max_attempts."""

    INVALID = [
        pytest.param("", 100, 3, "url", id="empty-url"),
        pytest.param("   ", 100, 3, "url", id="blank-url"),
        pytest.param("http://example.com", 0, 3, "timeout", id="zero-timeout"),
        pytest.param("http://example.com", -5, 3, "timeout", id="negative-timeout"),
        pytest.param("http://example.com", 100, 0, "max_attempts", id="zero-attempts"),
    ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("url", "timeout", "max_attempts", "parameter"), INVALID)
    @pytest.mark.parametrize("operation", ["post_async", "get_async", "get_async_bytes"])
    async def test_sink_gets_one_message_and_no_send(
        self,
        make_transport,
        recording_sleep,
        log_messages,
        operation: str,
        url: str,
        timeout: int,
        max_attempts: int,
        parameter: str,
    ) -> None:
        transport = make_transport([200])
        executor = _executor(transport, recording_sleep)

        result = await getattr(executor, operation)(
            url, timeout, max_attempts, on_log=log_messages.append
        )

        assert result in (False, None)
        assert (result is None) == (operation == "get_async_bytes")
        assert transport.sent == []
        assert len(log_messages) == 1
        assert parameter in log_messages[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("url", "timeout", "max_attempts", "parameter"), INVALID)
    async def test_raises_without_sink(
        self,
        make_transport,
        recording_sleep,
        url: str,
        timeout: int,
        max_attempts: int,
        parameter: str,
    ) -> None:
        transport = make_transport([200])
        executor = _executor(transport, recording_sleep)

        with pytest.raises(ParameterError) as excinfo:
            await executor.get_async(url, timeout, max_attempts)

        assert excinfo.value.parameter == parameter
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_explicit_raise_overrides_sink(
        self, make_transport, recording_sleep, log_messages
    ) -> None:
        executor = _executor(make_transport([200]), recording_sleep)
        options = RequestOptions(
            on_log=log_messages.append, on_invalid_params=InvalidParamsPolicy.RAISE
        )

        with pytest.raises(ParameterError, match="max_attempts"):
            await executor.post_async("http://example.com", 100, 0, options)
        assert log_messages == []

    @pytest.mark.asyncio
    async def test_explicit_log_and_return_without_sink(
        self, make_transport, recording_sleep
    ) -> None:
        transport = make_transport([200])
        executor = _executor(transport, recording_sleep)

        result = await executor.get_async(
            "", 100, 3, on_invalid_params=InvalidParamsPolicy.LOG_AND_RETURN
        )

        assert result is False
        assert transport.sent == []


class TestRequestConstruction:
    """What reaches the transport."""

    @pytest.mark.asyncio
    async def test_template_is_cloned_onto_new_target(
        self, make_transport, recording_sleep
    ) -> None:
        template = RequestSpec("GET", "http://old", headers=(("X-Test", "1"),))
        transport = make_transport([500, 200])
        executor = _executor(transport, recording_sleep)

        assert await executor.get_async("http://new", 100, 2, template=template)

        for sent in transport.sent:
            assert sent.url == "http://new"
            assert ("X-Test", "1") in sent.headers
        assert transport.sent[0] is not transport.sent[1]
        assert template.url == "http://old"

    @pytest.mark.asyncio
    async def test_post_body_is_encoded(self, make_transport, recording_sleep) -> None:
        transport = make_transport([200])
        executor = _executor(transport, recording_sleep)

        await executor.post_async("http://example.com", 100, 1, body="héllo")

        sent = transport.sent[0]
        assert sent.method == "POST"
        assert sent.body == "héllo".encode()
        assert sent.header("content-type") == "text/plain; charset=utf-8"

    @pytest.mark.asyncio
    async def test_get_ignores_body_option(self, make_transport, recording_sleep) -> None:
        transport = make_transport([200])
        executor = _executor(transport, recording_sleep)

        await executor.get_async("http://example.com", 100, 1, body="ignored")

        assert transport.sent[0].body is None

    @pytest.mark.asyncio
    async def test_unknown_override_is_rejected(self, make_transport, recording_sleep) -> None:
        executor = _executor(make_transport([200]), recording_sleep)

        with pytest.raises(TypeError, match="Unexpected request option"):
            await executor.get_async("http://example.com", 100, 1, retries=3)


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_unclassified_exception_propagates(
        self, make_transport, recording_sleep
    ) -> None:
        transport = make_transport([RuntimeError("bug in transport"), 200])
        executor = _executor(transport, recording_sleep)

        with pytest.raises(RuntimeError, match="bug in transport"):
            await executor.get_async("http://example.com", 100, 3)
        assert len(transport.sent) == 1
        assert recording_sleep.calls == []


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_calls_keep_their_own_logs(
        self, make_transport, recording_sleep
    ) -> None:
        transport = make_transport([500, 500, 500, 200])
        executor = _executor(transport, recording_sleep)
        first: list[str] = []
        second: list[str] = []

        results = await asyncio.gather(
            executor.post_async("http://a.example", 100, 2, on_log=first.append),
            executor.post_async("http://b.example", 100, 2, on_log=second.append),
        )

        assert results == [False, False]
        assert first == ["unsuccessful status 500"]
        assert second == ["unsuccessful status 500"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_borrowed_transport_is_not_closed(self, make_transport, recording_sleep) -> None:
        transport = make_transport([200])
        async with ReliableRequestExecutor(transport, sleep=recording_sleep) as executor:
            assert await executor.get_async("http://example.com", 100, 1)
        assert transport.closed is False
