"""Parameter validation for executor calls.

Checks run in a fixed order (url, timeout, max_attempts) and stop at the first
problem, so a caller always gets a single descriptive message.
"""

from __future__ import annotations

import math
from datetime import timedelta
from enum import StrEnum

from reliable_request.errors import ParameterError

__all__ = [
    "InvalidParamsPolicy",
    "Timeout",
    "check_parameters",
    "resolve_timeout_ms",
    "validate_parameters",
]

Timeout = int | float | timedelta


class InvalidParamsPolicy(StrEnum):
    """What to do when a call receives invalid parameters."""

    LOG_AND_RETURN = "log_and_return"
    RAISE = "raise"


def resolve_timeout_ms(timeout: Timeout) -> float:
    """Return ``timeout`` in milliseconds.

    Numbers are taken as milliseconds already; a :class:`~datetime.timedelta`
    is converted.
    """
    if isinstance(timeout, timedelta):
        return timeout.total_seconds() * 1000.0
    return float(timeout)


def check_parameters(url: object, timeout: object, max_attempts: object) -> ParameterError | None:
    """Return the first parameter problem, or None when all are valid.

    Parameters
    ----------
    url : object
        Target URL; must be a non-blank string.
    timeout : object
        Per-attempt timeout in milliseconds or as a timedelta; must be > 0.
    max_attempts : object
        Number of attempts; must be an integer > 0.

    Returns
    -------
    ParameterError | None
        The error describing the first invalid parameter.
    """
    if not isinstance(url, str) or not url.strip():
        return ParameterError("url", "must not be empty or whitespace", url)

    if isinstance(timeout, bool) or not isinstance(timeout, (int, float, timedelta)):
        return ParameterError("timeout", "must be a number of milliseconds or a timedelta", timeout)
    timeout_ms = resolve_timeout_ms(timeout)
    if math.isnan(timeout_ms) or timeout_ms <= 0:
        return ParameterError("timeout", f"must be greater than 0, got {timeout!r}", timeout)

    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        return ParameterError("max_attempts", "must be an integer", max_attempts)
    if max_attempts <= 0:
        return ParameterError(
            "max_attempts", f"must be greater than 0, got {max_attempts!r}", max_attempts
        )
    return None


def validate_parameters(url: object, timeout: object, max_attempts: object) -> None:
    """Raise the first parameter problem found by :func:`check_parameters`.

    Raises
    ------
    ParameterError
        If url, timeout or max_attempts is invalid.
    """
    error = check_parameters(url, timeout, max_attempts)
    if error is not None:
        raise error
