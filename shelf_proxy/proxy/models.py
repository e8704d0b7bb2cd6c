from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator

import httpx
from starlette.datastructures import Headers as StarletteHeaders
from starlette.requests import Request
from starlette.responses import StreamingResponse


@dataclass
class ProxyRequest:
    """
    An inbound request as seen by the proxy handler.

    Attributes:
        method: HTTP method, forwarded verbatim
        path: percent-encoded path relative to where the handler is mounted,
            with a leading slash and an optional ``?query``
        headers: case-insensitive headers, repeated values preserved
        protocol_version: inbound HTTP version, e.g. "1.1"
        body: lazy byte stream, consumed at most once
    """

    method: str
    path: str
    headers: httpx.Headers
    protocol_version: str
    body: AsyncIterable[bytes]

    @classmethod
    def from_starlette(cls, request: Request, path: str) -> "ProxyRequest":
        """Adapt a Starlette/FastAPI request mounted so that ``path`` is what remains."""
        if not path.startswith("/"):
            path = "/" + path
        query = request.url.query
        return cls(
            method=request.method,
            path=f"{path}?{query}" if query else path,
            headers=httpx.Headers(request.headers.raw),
            protocol_version=request.scope.get("http_version", "1.1"),
            body=request.stream(),
        )


@dataclass
class ProxyResponse:
    """The upstream response after header rewriting, body still unread."""

    status_code: int
    headers: httpx.Headers
    body: AsyncIterator[bytes]

    def to_starlette(self) -> StreamingResponse:
        # Starlette headers keep repeated entries such as Set-Cookie apart
        return StreamingResponse(
            self.body,
            status_code=self.status_code,
            headers=StarletteHeaders(raw=self.headers.raw),
        )
