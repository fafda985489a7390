"""Shared pytest fixtures for reliable_request tests.

This module provides:
- A scripted transport that replays statuses, bodies, failures and hangs
- A recording sleep so retry delays cost no wall-clock time
- A log sink collecting callback messages
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import pytest

from reliable_request.errors import HttpError
from reliable_request.http.types import RequestSpec

HANG = "hang"


class FakeResponse:
    """Minimal response double implementing ResponseLike."""

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body
        self.read_calls = 0
        self.closed = False

    async def aread(self) -> bytes:
        self.read_calls += 1
        return self.body

    async def aclose(self) -> None:
        self.closed = True


class ScriptedTransport:
    """Transport double that plays back one scripted step per send.

    Steps may be an ``int`` status, a ``(status, body)`` tuple, an exception
    instance to raise, or :data:`HANG` to block until the deadline fires. The
    last step repeats once the script runs out.
    """

    HANG = HANG

    def __init__(self, steps: Iterable[object]) -> None:
        self.steps = list(steps)
        self.sent: list[RequestSpec] = []
        self.responses: list[FakeResponse] = []
        self.closed = False

    async def send(self, request: RequestSpec) -> FakeResponse:
        index = min(len(self.sent), len(self.steps) - 1)
        self.sent.append(request)
        step = self.steps[index]
        if step == HANG:
            await asyncio.sleep(3600)
        if isinstance(step, BaseException):
            raise step
        status, body = step if isinstance(step, tuple) else (step, b"")
        response = FakeResponse(status, body)
        self.responses.append(response)
        return response

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def log_messages() -> list[str]:
    return []


@pytest.fixture
def connection_refused() -> HttpError:
    return HttpError("connection refused")


@pytest.fixture
def make_transport() -> type[ScriptedTransport]:
    return ScriptedTransport
