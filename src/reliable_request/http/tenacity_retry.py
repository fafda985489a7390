"""Tenacity-based retry loop with a fixed inter-attempt delay.

:func:`attempt_once` performs one bounded send and classifies it into an
:class:`~reliable_request.http.types.Outcome`. :class:`FixedDelayRetryStrategy`
drives attempts through :class:`tenacity.AsyncRetrying`, retrying on retryable
outcomes and turning exhaustion into the last outcome instead of an exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from reliable_request.errors import HttpError, HttpTimeoutError
from reliable_request.http.policy import RetryPolicy
from reliable_request.http.types import LogSink, Outcome, RequestSpec, ResponseLike, Transport
from reliable_request.logging import get_logger

__all__ = [
    "FixedDelayRetryStrategy",
    "attempt_once",
    "read_body",
]

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _format_ms(value: float) -> str:
    return f"{value:g}"


def _timeout_message(policy: RetryPolicy) -> str:
    return f"request exceeded timeout {_format_ms(policy.timeout_ms)}"


async def attempt_once(
    transport: Transport,
    request: RequestSpec,
    policy: RetryPolicy,
    emit: LogSink,
) -> Outcome:
    """Send ``request`` once under a fresh deadline and classify the result.

    Parameters
    ----------
    transport : Transport
        Transport used for the single send.
    request : RequestSpec
        Request built for this attempt.
    policy : RetryPolicy
        Supplies the deadline, the success range and the error-status rule.
    emit : LogSink
        Receives one message per failed attempt.

    Returns
    -------
    Outcome
        SUCCESS, TIMEOUT, TRANSPORT_ERROR or UNSUCCESSFUL_RESPONSE. A retryable
        unsuccessful response is closed before returning.

    Notes
    -----
    Exceptions outside the timeout and :class:`HttpError` families are not
    classified; they are logged and propagate to the caller.
    """
    try:
        async with asyncio.timeout(policy.timeout_s):
            response = await transport.send(request)
    except (TimeoutError, HttpTimeoutError):
        message = _timeout_message(policy)
        emit(message)
        return Outcome.timeout(message)
    except HttpError as exc:
        emit(f"error: {exc}")
        return Outcome.transport_error(str(exc))
    except Exception:
        logger.exception(
            "Unexpected failure while sending request",
            extra={"operation": request.method.lower(), "url": request.url},
        )
        raise

    if policy.is_success(response.status_code):
        return Outcome.success(response)

    outcome = Outcome.unsuccessful(response, retryable=policy.retry_on_error_status)
    emit(outcome.message or "")
    if outcome.retryable:
        await response.aclose()
    return outcome


async def read_body(response: ResponseLike, policy: RetryPolicy, emit: LogSink) -> Outcome:
    """Buffer the body of a successful response under one attempt deadline.

    The response is closed whatever happens. A read that times out or fails in
    the transport is reported like a failed send and yields a negative outcome.

    Returns
    -------
    Outcome
        SUCCESS carrying the body, or TIMEOUT / TRANSPORT_ERROR.
    """
    try:
        async with asyncio.timeout(policy.timeout_s):
            body = await response.aread()
    except (TimeoutError, HttpTimeoutError):
        message = _timeout_message(policy)
        emit(message)
        return Outcome.timeout(message)
    except HttpError as exc:
        emit(f"error: {exc}")
        return Outcome.transport_error(str(exc))
    except Exception:
        logger.exception("Unexpected failure while reading response body")
        raise
    finally:
        await response.aclose()
    return Outcome.success(response, body)


def _is_retryable(outcome: Outcome) -> bool:
    return outcome.retryable


def _last_outcome(retry_state: RetryCallState) -> Outcome:
    """Return the final attempt's outcome once attempts are exhausted."""
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


class FixedDelayRetryStrategy:
    """Retry an attempt callable with a constant delay.

    Parameters
    ----------
    policy : RetryPolicy
        Attempt bound and delay.
    emit : LogSink
        Receives the retry announcement before each delay.
    sleep : Sleep, optional
        Coroutine used for the delay. Defaults to :func:`asyncio.sleep`.
    """

    def __init__(self, policy: RetryPolicy, emit: LogSink, sleep: Sleep = asyncio.sleep) -> None:
        self.policy = policy
        self._emit = emit
        self._sleep = sleep

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        self._emit(
            f"attempt {retry_state.attempt_number} failed, "
            f"retrying in {_format_ms(self.policy.delay_ms)} ms"
        )

    def _build_retrying(self) -> AsyncRetrying:
        """Create a configured Tenacity AsyncRetrying instance.

        Returns
        -------
        AsyncRetrying
            Stops after ``max_attempts``, waits ``delay_ms`` between attempts,
            retries only retryable outcomes, and hands back the last outcome on
            exhaustion.
        """
        return AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_fixed(self.policy.delay_s),
            retry=retry_if_result(_is_retryable),
            before_sleep=self._before_sleep,
            retry_error_callback=_last_outcome,
        )

    async def run(self, fn: Callable[[], Awaitable[Outcome]]) -> Outcome:
        """Execute ``fn`` until it succeeds, fails terminally, or attempts run out.

        Parameters
        ----------
        fn : Callable[[], Awaitable[Outcome]]
            Performs one attempt.

        Returns
        -------
        Outcome
            The outcome that ended the loop.
        """
        return await self._build_retrying()(fn)
