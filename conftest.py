# Shared fixtures: a recording fake upstream served through httpx.MockTransport
# and a factory for inbound ProxyRequest objects.
from typing import Callable, Iterable, List, Optional

import httpx
import pytest

from shelf_proxy.proxy.models import ProxyRequest


async def _iterate(chunks: Iterable[bytes]):
    for chunk in chunks:
        yield chunk


class StreamedBody(httpx.AsyncByteStream):
    """Upstream response body handed out chunk by chunk, not read in advance."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


class RecordingUpstream:
    """Fake upstream server recording every request it receives."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(
                200, headers={"content-type": "text/plain"}, content=b"hello"
            )
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        self.requests.append(request)
        self.bodies.append(body)
        return self.respond(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def upstream():
    return RecordingUpstream()


@pytest.fixture
def upstream_client(upstream):
    """An httpx client whose every request is answered by the fake upstream."""
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle))


@pytest.fixture
def make_proxy_request():
    """Build an inbound ProxyRequest with a lazily produced body."""

    def _create(
        method: str = "GET",
        path: str = "/",
        headers: Optional[dict] = None,
        body_chunks: Iterable[bytes] = (),
        protocol_version: str = "1.1",
    ) -> ProxyRequest:
        return ProxyRequest(
            method=method,
            path=path,
            headers=httpx.Headers(headers or {}),
            protocol_version=protocol_version,
            body=_iterate(body_chunks),
        )

    return _create


@pytest.fixture
def streamed_response():
    """Build an upstream response whose body is still unread when returned."""

    def _create(status_code: int = 200, headers=None, chunks: Iterable[bytes] = ()):
        return httpx.Response(
            status_code, headers=headers, stream=StreamedBody(*chunks)
        )

    return _create
