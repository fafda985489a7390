"""reliable_request: a minimal retrying HTTP client helper.

Examples
--------
>>> from reliable_request import ReliableRequestExecutor
>>> executor = ReliableRequestExecutor()  # doctest: +SKIP
>>> await executor.post_async("https://example.com/hook", 500, 3, body="ping")  # doctest: +SKIP
True
"""

from __future__ import annotations

from reliable_request.errors import HttpError, ParameterError, ReliableRequestError
from reliable_request.http import (
    BoundRequest,
    HttpxTransport,
    InvalidParamsPolicy,
    ReliableRequestExecutor,
    RequestOptions,
    RequestSpec,
    make_executor_with_policy,
)
from reliable_request.settings import ExecutorSettings, configure_logging, load_settings

__all__ = [
    "BoundRequest",
    "ExecutorSettings",
    "HttpError",
    "HttpxTransport",
    "InvalidParamsPolicy",
    "ParameterError",
    "ReliableRequestError",
    "ReliableRequestExecutor",
    "RequestOptions",
    "RequestSpec",
    "configure_logging",
    "load_settings",
    "make_executor_with_policy",
]

__version__ = "0.1.0"
