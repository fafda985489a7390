"""Reliable request executor.

This module provides :class:`ReliableRequestExecutor`, which issues GET and POST
requests with a per-attempt timeout, a bounded number of attempts and a fixed
delay between them, reporting progress through an optional log callback.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import TracebackType
from typing import Self

import httpx

from reliable_request.http.builder import Payload, build_request, snapshot_template
from reliable_request.http.policy import RetryPolicy, VerbPolicyDoc, default_verb_policies
from reliable_request.http.tenacity_retry import (
    FixedDelayRetryStrategy,
    Sleep,
    attempt_once,
    read_body,
)
from reliable_request.http.transport import HttpxTransport
from reliable_request.http.types import LogSink, Outcome, OutcomeKind, RequestSpec, Transport
from reliable_request.http.validation import InvalidParamsPolicy, Timeout, check_parameters
from reliable_request.logging import LoggerAdapter, get_logger, with_fields
from reliable_request.settings import ExecutorSettings

__all__ = [
    "ReliableRequestExecutor",
    "RequestOptions",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestOptions:
    """Optional per-call parameters.

    Attributes
    ----------
    body : Payload | None
        POST payload used when there is no template body.
    template : RequestSpec | httpx.Request | None
        Blueprint whose method, headers and body are cloned onto the call's url.
    on_log : LogSink | None
        Callback receiving one human-readable message per event.
    on_invalid_params : InvalidParamsPolicy | None
        Explicit validation error policy. When None, invalid parameters are
        logged and the call returns its negative result if ``on_log`` is set,
        and raised otherwise.
    """

    _ALLOWED_KEYS = frozenset({"body", "template", "on_log", "on_invalid_params"})

    body: Payload | None = None
    template: RequestSpec | httpx.Request | None = None
    on_log: LogSink | None = None
    on_invalid_params: InvalidParamsPolicy | None = None

    def with_overrides(self, overrides: Mapping[str, object]) -> RequestOptions:
        """Return a new options object with overrides applied.

        Parameters
        ----------
        overrides : Mapping[str, object]
            Option overrides. Keys must be in the allowed set: body, template,
            on_log, on_invalid_params.

        Returns
        -------
        RequestOptions
            New instance with overrides merged, or self when overrides is empty.

        Raises
        ------
        TypeError
            If any key in overrides is not in the allowed set of option keys.
        """
        if not overrides:
            return self
        unexpected = set(overrides) - self._ALLOWED_KEYS
        if unexpected:
            msg = f"Unexpected request option(s): {sorted(unexpected)}"
            raise TypeError(msg)
        return replace(self, **{k: overrides[k] for k in overrides})

    @property
    def invalid_params_policy(self) -> InvalidParamsPolicy:
        if self.on_invalid_params is not None:
            return InvalidParamsPolicy(self.on_invalid_params)
        if self.on_log is not None:
            return InvalidParamsPolicy.LOG_AND_RETURN
        return InvalidParamsPolicy.RAISE


def _make_emitter(sink: LogSink | None, log: LoggerAdapter) -> LogSink:
    def _emit(message: str) -> None:
        log.warning(message)
        if sink is not None:
            sink(message)

    return _emit


async def _release(outcome: Outcome) -> None:
    if outcome.response is not None:
        await outcome.response.aclose()


class ReliableRequestExecutor:
    """Issue GET/POST requests with bounded retries and a fixed delay.

    Calls are independent; one executor (and its transport) may serve many
    concurrent calls to different URLs.

    Parameters
    ----------
    transport : Transport | None, optional
        Transport used for every send. Defaults to a new :class:`HttpxTransport`
        owned by the executor.
    settings : ExecutorSettings | None, optional
        Source of the default verb policies. Defaults to settings loaded from
        the environment.
    verb_policies : Mapping[str, VerbPolicyDoc] | None, optional
        Policies keyed by method, overriding the defaults derived from settings.
    sleep : Sleep, optional
        Coroutine used for the inter-attempt delay.

    Raises
    ------
    SettingsError
        If ``settings`` is omitted and the environment holds invalid values.

    Examples
    --------
    >>> async with ReliableRequestExecutor() as executor:  # doctest: +SKIP
    ...     ok = await executor.get_async("https://example.com", 500, 3, on_log=print)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        settings: ExecutorSettings | None = None,
        verb_policies: Mapping[str, VerbPolicyDoc] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.verb_policies: dict[str, VerbPolicyDoc] = default_verb_policies(settings)
        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpxTransport()
        if verb_policies:
            self.verb_policies.update({k.upper(): v for k, v in verb_policies.items()})
        self._sleep = sleep

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        del exc_type, exc_val, exc_tb
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if the executor created it."""
        if self._owns_transport:
            await self.transport.aclose()

    async def post_async(
        self,
        url: str,
        timeout: Timeout,
        max_attempts: int,
        options: RequestOptions | None = None,
        **overrides: object,
    ) -> bool:
        """POST to ``url``; an error status ends the call without retrying by default.

        Parameters
        ----------
        url : str
            Target URL.
        timeout : Timeout
            Per-attempt timeout in milliseconds or as a timedelta.
        max_attempts : int
            Upper bound on sends.
        options : RequestOptions | None, optional
            Body, template, log callback and validation policy.
        **overrides : object
            Keyword overrides applied on top of ``options``.

        Returns
        -------
        bool
            True when a response in the success range was received.

        Raises
        ------
        ParameterError
            If parameters are invalid and the validation policy is RAISE.
        """
        outcome = await self._execute("POST", url, timeout, max_attempts, options, overrides)
        await _release(outcome)
        return outcome.succeeded

    async def get_async(
        self,
        url: str,
        timeout: Timeout,
        max_attempts: int,
        options: RequestOptions | None = None,
        **overrides: object,
    ) -> bool:
        """GET ``url``, retrying failures and error statuses until attempts run out.

        Returns
        -------
        bool
            True when a response in the success range was received.

        Raises
        ------
        ParameterError
            If parameters are invalid and the validation policy is RAISE.
        """
        outcome = await self._execute("GET", url, timeout, max_attempts, options, overrides)
        await _release(outcome)
        return outcome.succeeded

    async def get_async_bytes(
        self,
        url: str,
        timeout: Timeout,
        max_attempts: int,
        options: RequestOptions | None = None,
        **overrides: object,
    ) -> bytes | None:
        """GET ``url`` like :meth:`get_async` and return the successful body.

        Returns
        -------
        bytes | None
            The body of the successful response (possibly ``b""``), or None when
            no attempt succeeded or the body could not be read. The body is read
            once, after the retry loop, under the same per-attempt deadline.

        Raises
        ------
        ParameterError
            If parameters are invalid and the validation policy is RAISE.
        """
        outcome = await self._execute(
            "GET", url, timeout, max_attempts, options, overrides, read_response=True
        )
        if outcome.succeeded:
            return outcome.body
        await _release(outcome)
        return None

    async def _execute(
        self,
        method: str,
        url: str,
        timeout: Timeout,
        max_attempts: int,
        options: RequestOptions | None,
        overrides: Mapping[str, object],
        *,
        read_response: bool = False,
    ) -> Outcome:
        resolved = (options or RequestOptions()).with_overrides(overrides)
        with with_fields(logger, operation=method.lower(), url=url) as log:
            emit = _make_emitter(resolved.on_log, log)

            error = check_parameters(url, timeout, max_attempts)
            if error is not None:
                if resolved.invalid_params_policy is InvalidParamsPolicy.RAISE:
                    log.error(
                        "Rejected request parameters",
                        extra={"parameter": error.parameter, "status": "rejected"},
                    )
                    raise error
                emit(str(error))
                return Outcome.not_attempted(str(error))

            policy = RetryPolicy.for_call(timeout, max_attempts, self.verb_policies[method])
            template = await snapshot_template(resolved.template)
            payload = resolved.body if method == "POST" else None

            async def _attempt() -> Outcome:
                request = build_request(method, url, payload=payload, template=template)
                return await attempt_once(self.transport, request, policy, emit)

            outcome = await FixedDelayRetryStrategy(policy, emit, self._sleep).run(_attempt)
            if read_response and outcome.succeeded and outcome.response is not None:
                outcome = await read_body(outcome.response, policy, emit)
            if outcome.kind is OutcomeKind.SUCCESS:
                log.info("Request succeeded", extra={"status": "success"})
            else:
                log.warning(
                    "Request gave up",
                    extra={"status": "error", "outcome": str(outcome.kind)},
                )
            return outcome
