"""Typed exception hierarchy for reliable_request.

All package exceptions inherit from :class:`ReliableRequestError`, which carries a
stable :class:`ErrorCode`, an optional cause and a context mapping. Transport
failures use the :class:`HttpError` family so the retry loop can classify them
without catching arbitrary exceptions.

Examples
--------
>>> from reliable_request.errors import ErrorCode, ParameterError
>>> try:
...     raise ParameterError("url", "must not be empty or whitespace")
... except ParameterError as e:
...     assert e.code == ErrorCode.INVALID_PARAMETER
...     assert e.parameter == "url"
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

__all__ = [
    "ErrorCode",
    "HttpConnectionError",
    "HttpError",
    "HttpRequestError",
    "HttpTimeoutError",
    "HttpTlsError",
    "HttpTooManyRedirectsError",
    "ParameterError",
    "PolicyError",
    "ReliableRequestError",
    "SettingsError",
]


class ErrorCode(StrEnum):
    """Stable error codes for reliable_request exceptions."""

    INVALID_PARAMETER = "invalid-parameter"
    REQUEST_TIMEOUT = "request-timeout"
    TRANSPORT_ERROR = "transport-error"
    SETTINGS_INVALID = "settings-invalid"
    POLICY_INVALID = "policy-invalid"
    RUNTIME_ERROR = "runtime-error"


class ReliableRequestError(Exception):
    """Base exception for all reliable_request errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    code : ErrorCode, optional
        Stable error code. Defaults to ``ErrorCode.RUNTIME_ERROR``.
    cause : Exception | None, optional
        Underlying exception, also chained via ``__cause__`` when given.
    context : Mapping[str, object] | None, optional
        Additional structured details.
    """

    code: ErrorCode = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context: dict[str, object] = dict(context or {})
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message


class ParameterError(ReliableRequestError, ValueError):
    """Raised when url, timeout or max_attempts is invalid.

    Parameters
    ----------
    parameter : str
        Name of the offending parameter.
    reason : str
        Why the value was rejected.
    value : object, optional
        The rejected value, kept in ``context``.
    """

    code = ErrorCode.INVALID_PARAMETER

    def __init__(self, parameter: str, reason: str, value: object = None) -> None:
        super().__init__(
            f"invalid parameter '{parameter}': {reason}",
            context={"parameter": parameter, "value": value},
        )
        self.parameter = parameter
        self.reason = reason


class SettingsError(ReliableRequestError):
    """Raised when executor settings fail validation."""

    code = ErrorCode.SETTINGS_INVALID


class PolicyError(ReliableRequestError):
    """Raised when a verb policy document cannot be loaded."""

    code = ErrorCode.POLICY_INVALID


class HttpError(ReliableRequestError):
    """Base exception for transport-level failures."""

    code = ErrorCode.TRANSPORT_ERROR


class HttpTimeoutError(HttpError):
    """Exception raised when the transport reports a timeout."""

    code = ErrorCode.REQUEST_TIMEOUT


class HttpConnectionError(HttpError):
    """Exception raised when connection fails."""


class HttpTlsError(HttpError):
    """Exception raised when TLS/SSL error occurs."""


class HttpTooManyRedirectsError(HttpError):
    """Exception raised when too many redirects occur."""


class HttpRequestError(HttpError):
    """Exception raised for general request errors."""
