"""Type definitions for the reliable request executor.

This module defines the immutable :class:`RequestSpec` sent on every attempt, the
tagged :class:`Outcome` of one attempt, and the protocols a transport and its
responses must conform to.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

__all__ = [
    "LogSink",
    "Outcome",
    "OutcomeKind",
    "RequestSpec",
    "ResponseLike",
    "Transport",
]

LogSink = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """A request blueprint; one is built per attempt.

    Attributes
    ----------
    method : str
        HTTP method, upper-cased on construction.
    url : str
        Target URL.
    body : bytes | None
        Raw body, or None for no body.
    headers : tuple[tuple[str, str], ...]
        Header pairs in insertion order, kept verbatim.
    """

    method: str
    url: str
    body: bytes | None = None
    headers: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", tuple((str(k), str(v)) for k, v in self.headers))

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive), if any."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


class ResponseLike(Protocol):
    """What the executor needs from a transport response."""

    @property
    def status_code(self) -> int: ...

    async def aread(self) -> bytes: ...

    async def aclose(self) -> None: ...


class Transport(Protocol):
    """Protocol for the underlying HTTP transport.

    Implementations send exactly one request per call and raise a member of the
    :class:`~reliable_request.errors.HttpError` family on transport-level
    failure. The executor bounds each call with its own deadline.
    """

    async def send(self, request: RequestSpec) -> ResponseLike:
        """Send ``request`` once and return the response with its body unread."""
        ...

    async def aclose(self) -> None:
        """Release resources owned by the transport."""
        ...


class OutcomeKind(StrEnum):
    """Classification of one attempt."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    UNSUCCESSFUL_RESPONSE = "unsuccessful_response"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True, slots=True)
class Outcome:
    """Tagged result of a single attempt.

    Attributes
    ----------
    kind : OutcomeKind
        What happened.
    response : ResponseLike | None
        The response for SUCCESS and UNSUCCESSFUL_RESPONSE.
    message : str | None
        Failure description for TIMEOUT, TRANSPORT_ERROR and NOT_ATTEMPTED.
    retryable : bool
        Whether the retry loop may try again after this outcome.
    body : bytes | None
        The buffered body of a SUCCESS whose body was read.
    """

    kind: OutcomeKind
    response: ResponseLike | None = None
    message: str | None = None
    retryable: bool = False
    body: bytes | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, response: ResponseLike, body: bytes | None = None) -> Outcome:
        return cls(OutcomeKind.SUCCESS, response=response, body=body)

    @classmethod
    def timeout(cls, message: str) -> Outcome:
        return cls(OutcomeKind.TIMEOUT, message=message, retryable=True)

    @classmethod
    def transport_error(cls, message: str) -> Outcome:
        return cls(OutcomeKind.TRANSPORT_ERROR, message=message, retryable=True)

    @classmethod
    def unsuccessful(cls, response: ResponseLike, *, retryable: bool) -> Outcome:
        return cls(
            OutcomeKind.UNSUCCESSFUL_RESPONSE,
            response=response,
            message=f"unsuccessful status {response.status_code}",
            retryable=retryable,
        )

    @classmethod
    def not_attempted(cls, message: str) -> Outcome:
        return cls(OutcomeKind.NOT_ATTEMPTED, message=message)
