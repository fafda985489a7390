"""Request construction and template cloning.

A template is snapshotted once per call with :func:`snapshot_template`; every
attempt then clones from that snapshot with :func:`build_request`, so a
streamed template body is read exactly once and the caller's template stays
usable.
"""

from __future__ import annotations

import httpx

from reliable_request.http.types import RequestSpec

__all__ = [
    "Payload",
    "build_request",
    "encode_payload",
    "snapshot_template",
]

Payload = bytes | str

# Computed by the transport for the actual target and body.
_TRANSPORT_HEADERS = frozenset({"host", "content-length", "transfer-encoding"})

_TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def encode_payload(payload: Payload | None) -> bytes | None:
    """Return ``payload`` as bytes, or None when it is absent or empty."""
    if not payload:
        return None
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


async def snapshot_template(template: RequestSpec | httpx.Request | None) -> RequestSpec | None:
    """Take a read-only copy of ``template`` for cloning.

    Parameters
    ----------
    template : RequestSpec | httpx.Request | None
        Caller-supplied blueprint.

    Returns
    -------
    RequestSpec | None
        An immutable copy. For an :class:`httpx.Request` the body is buffered
        with a single ``aread()`` and transport-computed headers are dropped.
    """
    if template is None or isinstance(template, RequestSpec):
        return template
    body = await template.aread()
    encoding = template.headers.encoding
    headers = tuple(
        (key.decode(encoding), value.decode(encoding))
        for key, value in template.headers.raw
        if key.decode(encoding).lower() not in _TRANSPORT_HEADERS
    )
    return RequestSpec(
        method=template.method,
        url=str(template.url),
        body=body or None,
        headers=headers,
    )


def build_request(
    method: str,
    url: str,
    *,
    payload: Payload | None = None,
    template: RequestSpec | None = None,
) -> RequestSpec:
    """Build the request for one attempt.

    Parameters
    ----------
    method : str
        Verb of the calling operation ("GET" or "POST").
    url : str
        Target URL; always wins over the template's URL.
    payload : Payload | None, optional
        Body to send when the template has none. Empty payloads send no body.
    template : RequestSpec | None, optional
        Snapshot from :func:`snapshot_template`.

    Returns
    -------
    RequestSpec
        A fresh request. With a template, headers are copied verbatim; GET keeps
        the template's method while POST is always POST.
    """
    if template is None:
        body = encode_payload(payload)
        headers: tuple[tuple[str, str], ...] = ()
        if body is not None and isinstance(payload, str):
            headers = (("Content-Type", _TEXT_CONTENT_TYPE),)
        return RequestSpec(method=method, url=url, body=body, headers=headers)

    resolved_method = template.method if method == "GET" else method
    headers = template.headers
    if template.body is not None:
        body = template.body
    else:
        body = encode_payload(payload)
        if (
            body is not None
            and isinstance(payload, str)
            and template.header("Content-Type") is None
        ):
            headers = (*headers, ("Content-Type", _TEXT_CONTENT_TYPE))
    return RequestSpec(method=resolved_method, url=url, body=body, headers=headers)
