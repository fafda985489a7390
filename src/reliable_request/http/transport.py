"""Default transport backed by :class:`httpx.AsyncClient`."""

from __future__ import annotations

import ssl

import httpx

from reliable_request.errors import (
    HttpConnectionError,
    HttpError,
    HttpRequestError,
    HttpTimeoutError,
    HttpTlsError,
    HttpTooManyRedirectsError,
)
from reliable_request.http.types import RequestSpec
from reliable_request.logging import get_logger

__all__ = ["HttpxTransport", "StreamedResponse"]

logger = get_logger(__name__)


def _translate(exc: httpx.HTTPError | httpx.InvalidURL) -> HttpError:
    """Map an httpx failure onto the package's transport error family."""
    if isinstance(exc, httpx.TimeoutException):
        return HttpTimeoutError(str(exc) or "transport timeout", cause=exc)
    if isinstance(exc, httpx.TooManyRedirects):
        return HttpTooManyRedirectsError(str(exc), cause=exc)
    if isinstance(exc, httpx.ConnectError) and isinstance(exc.__context__, ssl.SSLError):
        return HttpTlsError(str(exc), cause=exc)
    if isinstance(exc, httpx.NetworkError):
        return HttpConnectionError(str(exc) or type(exc).__name__, cause=exc)
    return HttpRequestError(str(exc) or type(exc).__name__, cause=exc)


class StreamedResponse:
    """An unread :class:`httpx.Response` whose body reads raise :class:`HttpError`.

    Parameters
    ----------
    response : httpx.Response
        Streamed response returned by the client.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.raw = response

    @property
    def status_code(self) -> int:
        return self.raw.status_code

    async def aread(self) -> bytes:
        """Read the whole body.

        Raises
        ------
        HttpError
            A member of the transport error family if the stream fails.
        """
        try:
            return await self.raw.aread()
        except httpx.HTTPError as exc:
            logger.debug(
                "Body read failure",
                extra={"url": str(self.raw.request.url), "error_type": type(exc).__name__},
            )
            raise _translate(exc) from exc

    async def aclose(self) -> None:
        await self.raw.aclose()


class HttpxTransport:
    """Send :class:`RequestSpec` objects through an :class:`httpx.AsyncClient`.

    Each send builds a new :class:`httpx.Request`; responses are streamed so the
    body is only read when the caller asks for it.

    Parameters
    ----------
    client : httpx.AsyncClient | None, optional
        Client to borrow. When omitted the transport creates and owns one.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        # Per-attempt deadlines are enforced by the executor.
        self._client = client or httpx.AsyncClient(timeout=None)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def build(self, request: RequestSpec) -> httpx.Request:
        """Return a new httpx request for ``request``.

        Header names and values are passed as UTF-8 bytes, so they reach the wire
        as given instead of going through httpx's ASCII encoding.
        """
        headers = [
            (name.encode("utf-8"), value.encode("utf-8")) for name, value in request.headers
        ]
        return self._client.build_request(
            request.method,
            request.url,
            content=request.body,
            headers=headers,
        )

    async def send(self, request: RequestSpec) -> StreamedResponse:
        """Send ``request`` once.

        Raises
        ------
        HttpError
            A member of the transport error family for any httpx failure.
        """
        try:
            response = await self._client.send(self.build(request), stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(
                "Transport failure",
                extra={
                    "operation": request.method.lower(),
                    "url": request.url,
                    "error_type": type(exc).__name__,
                },
            )
            raise _translate(exc) from exc
        return StreamedResponse(response)

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
