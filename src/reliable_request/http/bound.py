"""A request bound to one target, validated when it is created."""

from __future__ import annotations

from reliable_request.http.client import ReliableRequestExecutor, RequestOptions
from reliable_request.http.validation import InvalidParamsPolicy, Timeout, validate_parameters

__all__ = ["BoundRequest"]


class BoundRequest:
    """Fixed url, timeout and attempt count shared by every call.

    Parameters are checked up front, so later calls cannot fail validation.

    Parameters
    ----------
    executor : ReliableRequestExecutor
        Executor performing the calls.
    url : str
        Target URL.
    timeout : Timeout
        Per-attempt timeout in milliseconds or as a timedelta.
    max_attempts : int
        Upper bound on sends per call.

    Raises
    ------
    ParameterError
        If any parameter is invalid.
    """

    def __init__(
        self,
        executor: ReliableRequestExecutor,
        url: str,
        timeout: Timeout,
        max_attempts: int,
    ) -> None:
        validate_parameters(url, timeout, max_attempts)
        self.executor = executor
        self.url = url
        self.timeout = timeout
        self.max_attempts = max_attempts

    @staticmethod
    def _options(
        options: RequestOptions | None, overrides: dict[str, object]
    ) -> RequestOptions:
        resolved = (options or RequestOptions()).with_overrides(overrides)
        return resolved.with_overrides({"on_invalid_params": InvalidParamsPolicy.RAISE})

    async def post(self, options: RequestOptions | None = None, **overrides: object) -> bool:
        return await self.executor.post_async(
            self.url, self.timeout, self.max_attempts, self._options(options, overrides)
        )

    async def get(self, options: RequestOptions | None = None, **overrides: object) -> bool:
        return await self.executor.get_async(
            self.url, self.timeout, self.max_attempts, self._options(options, overrides)
        )

    async def get_bytes(
        self, options: RequestOptions | None = None, **overrides: object
    ) -> bytes | None:
        return await self.executor.get_async_bytes(
            self.url, self.timeout, self.max_attempts, self._options(options, overrides)
        )
