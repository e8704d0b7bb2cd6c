"""
Reverse-proxy handler forwarding every request to a single upstream base URL.

To build the upstream URL the inbound path is resolved below the base URL, so
with a base of ``http://example.com/docs`` a request for ``/tutorials/intro``
is forwarded to ``http://example.com/docs/tutorials/intro``.

Single-segment paths without an extension (``/about``, ``/settings``) are
treated as client-side routes of a single-page application and are served
from ``<upstream>/index.html`` instead.
"""

import asyncio
import logging
import warnings
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Set, Union
from urllib.parse import unquote

import httpx
from opentelemetry import trace

from shelf_proxy.proxy.errors import InvalidConfiguration
from shelf_proxy.proxy.headers import add_header
from shelf_proxy.proxy.models import ProxyRequest, ProxyResponse
from shelf_proxy.proxy.redirection import needs_redirection
from shelf_proxy.proxy.streams import BodySink, store
from shelf_proxy.proxy.urls import compose_url, is_within, relative_location
from shelf_proxy.utils import redact_url
from shelf_proxy.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

DEFAULT_PROXY_NAME = "shelf_proxy"


@dataclass(frozen=True)
class ProxyConfig:
    """
    Construction parameters of a ProxyHandler.

    Attributes:
        upstream: base URL requests are forwarded to, as ``httpx.URL`` or ``str``
        client: HTTP client used for upstream calls. When omitted the handler
            creates and owns one; a supplied client stays owned by the caller.
        proxy_name: token identifying this proxy in Via and Warning headers
    """

    upstream: Union[httpx.URL, str]
    client: Optional[httpx.AsyncClient] = None
    proxy_name: str = DEFAULT_PROXY_NAME

    @property
    def owns_client(self) -> bool:
        return self.client is None

    def resolve_upstream(self) -> httpx.URL:
        if isinstance(self.upstream, httpx.URL):
            url = self.upstream
        elif isinstance(self.upstream, str):
            try:
                url = httpx.URL(self.upstream)
            except httpx.InvalidURL as e:
                raise InvalidConfiguration(
                    self.upstream, f"url is not a valid URL: {e}"
                ) from e
        else:
            raise InvalidConfiguration(self.upstream)

        if not url.scheme or not url.host:
            raise InvalidConfiguration(self.upstream, "url must be an absolute URL")
        return url


async def _relay_body(response: httpx.Response, decoded: bool) -> AsyncIterator[bytes]:
    """Stream the upstream body and release the connection afterwards."""
    try:
        if response.is_stream_consumed:
            # Transports may hand back a response that has already been read
            yield response.content
        else:
            chunks = response.aiter_bytes() if decoded else response.aiter_raw()
            async for chunk in chunks:
                yield chunk
    finally:
        await response.aclose()


class ProxyHandler:
    """Async callable turning a ProxyRequest into the relayed ProxyResponse."""

    def __init__(self, config: ProxyConfig):
        self.upstream = config.resolve_upstream()
        # Raw form of the configured location, used for the index.html fallback
        self.upstream_string = str(config.upstream)
        self.proxy_name = config.proxy_name
        self.owns_client = config.owns_client
        self.client = (
            httpx.AsyncClient(follow_redirects=False)
            if config.client is None
            else config.client
        )
        self._body_tasks: Set[asyncio.Task] = set()

    def _start_body_task(self, request: ProxyRequest, sink: BodySink) -> None:
        task = asyncio.create_task(store(request.body, sink))
        self._body_tasks.add(task)
        task.add_done_callback(self._body_tasks.discard)

    def _outbound_url(self, request: ProxyRequest) -> httpx.URL:
        request_url = compose_url(self.upstream, request.path)
        if needs_redirection(unquote(request.path.split("?", 1)[0])):
            request_url = httpx.URL(self.upstream_string + "/index.html")
        return request_url

    def _outbound_headers(self, request: ProxyRequest) -> httpx.Headers:
        headers = httpx.Headers(request.headers)
        headers["Host"] = self.upstream.netloc.decode("ascii")
        # Add a Via header. See
        # http://www.w3.org/Protocols/rfc2616/rfc2616-sec14.html#sec14.45
        add_header(headers, "Via", f"{request.protocol_version} {self.proxy_name}")
        return headers

    def _rewrite_location(self, request_url: httpx.URL, location: str) -> str:
        target = request_url.join(location)
        if is_within(self.upstream, target):
            rewritten = "/" + relative_location(self.upstream, target)
        else:
            rewritten = str(target)
        logger.debug(
            f"Rewrote Location {redact_url(target)} -> {redact_url(rewritten)}"
        )
        return rewritten

    async def __call__(self, request: ProxyRequest) -> ProxyResponse:
        request_url = self._outbound_url(request)
        headers = self._outbound_headers(request)

        with traced_request(
            tracer,
            "proxy_request",
            f"Proxying {request.method} {request.path} -> {redact_url(request_url)}",
            extra_attrs={
                "proxy.method": request.method,
                "proxy.target_url": redact_url(request_url),
            },
        ) as span:
            sink = BodySink()
            self._start_body_task(request, sink)
            client_request = self.client.build_request(
                request.method, request_url, headers=headers, content=sink
            )
            client_response = await self.client.send(
                client_request, stream=True, follow_redirects=False
            )
            span.set_attribute("proxy.status_code", client_response.status_code)
            span.set_attribute("proxy.redirected", client_response.is_redirect)

        response_headers = httpx.Headers(client_response.headers)
        add_header(response_headers, "Via", f"1.1 {self.proxy_name}")

        # The client has already undone the chunked framing
        response_headers.pop("transfer-encoding", None)

        # A gzipped body is decoded by the client, so its length is unknown
        decoded = response_headers.get("content-encoding") == "gzip"
        if decoded:
            del response_headers["content-encoding"]
            response_headers.pop("content-length", None)
            # Add a Warning header. See
            # http://www.w3.org/Protocols/rfc2616/rfc2616-sec13.html#sec13.5.2
            add_header(response_headers, "Warning", f'214 {self.proxy_name} "GZIP decoded"')

        # Point Location at the proxy rather than the upstream where possible
        if client_response.is_redirect and "location" in response_headers:
            response_headers["Location"] = self._rewrite_location(
                request_url, response_headers["location"]
            )

        return ProxyResponse(
            status_code=client_response.status_code,
            headers=response_headers,
            body=_relay_body(client_response, decoded),
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this handler created it."""
        if self.owns_client:
            await self.client.aclose()


def proxy_handler(
    url: Union[httpx.URL, str],
    client: Optional[httpx.AsyncClient] = None,
    proxy_name: Optional[str] = None,
) -> ProxyHandler:
    """
    Build a handler that proxies requests to ``url``.

    Args:
        url: upstream base URL, as ``str`` or ``httpx.URL``
        client: HTTP client for upstream calls; defaults to a new
            ``httpx.AsyncClient`` owned by the handler
        proxy_name: identifies this proxy in headers. It should be a valid
            HTTP token or a hostname. Defaults to ``shelf_proxy``.

    Raises:
        InvalidConfiguration: if ``url`` is not a URL or a parseable absolute URL string
    """
    return ProxyHandler(
        ProxyConfig(
            upstream=url,
            client=client,
            proxy_name=DEFAULT_PROXY_NAME if proxy_name is None else proxy_name,
        )
    )


def create_proxy_handler(root_url: Union[httpx.URL, str]) -> ProxyHandler:
    """Deprecated, use proxy_handler instead."""
    warnings.warn(
        "create_proxy_handler is deprecated, use proxy_handler instead",
        DeprecationWarning,
        stacklevel=2,
    )
    return proxy_handler(root_url)
