import logging
from typing import Optional

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from shelf_proxy.proxy.handler import ProxyConfig, ProxyHandler, proxy_handler
from shelf_proxy.proxy.models import ProxyRequest
from shelf_proxy.utils import redact_url
from shelf_proxy.utils.exception_logging import (
    find_exception_in_exception_groups,
    format_exception_message,
    log_exception_with_details,
)
from shelf_proxy.vars import (
    PROXY_BASE_PATH,
    PROXY_NAME,
    PROXY_TARGET_URL,
    PROXY_TIMEOUT,
)

router = APIRouter(prefix=PROXY_BASE_PATH)
logger = logging.getLogger("uvicorn.error")

_handler: Optional[ProxyHandler] = None
_client: Optional[httpx.AsyncClient] = None


def get_proxy_handler() -> ProxyHandler:
    """Build the service-wide handler on first use."""
    global _handler, _client
    if _handler is None:
        if not PROXY_TARGET_URL:
            raise HTTPException(
                status_code=503,
                detail="PROXY_TARGET_URL is not configured. Proxy is unavailable.",
            )
        upstream = ProxyConfig(upstream=PROXY_TARGET_URL).resolve_upstream()
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(PROXY_TIMEOUT), follow_redirects=False
        )
        _handler = proxy_handler(PROXY_TARGET_URL, client=_client, proxy_name=PROXY_NAME)
        logger.info(f"Proxying {PROXY_BASE_PATH or '/'} to {redact_url(upstream)}")
    return _handler


def init_proxy_handler() -> None:
    """Build the handler at startup so a bad PROXY_TARGET_URL fails fast."""
    if PROXY_TARGET_URL:
        get_proxy_handler()


async def close_proxy_handler() -> None:
    """Release the service-wide client, if one was created."""
    global _handler, _client
    if _client is not None:
        await _client.aclose()
    _handler = None
    _client = None


def _path_below_prefix(request: Request) -> str:
    """Still percent-encoded path below the mount prefix."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    if PROXY_BASE_PATH and path.startswith(PROXY_BASE_PATH):
        path = path[len(PROXY_BASE_PATH) :]
    return path or "/"


async def forward_to_upstream(request: Request) -> Response:
    """
    Hand the request to the proxy handler and stream its response back.

    Dispatch failures are turned into gateway errors here; the handler itself
    never synthesizes a response.
    """
    handler = get_proxy_handler()
    proxy_request = ProxyRequest.from_starlette(request, _path_below_prefix(request))
    try:
        proxy_response = await handler(proxy_request)
    except Exception as e:
        if find_exception_in_exception_groups(e, httpx.TimeoutException) is not None:
            log_exception_with_details(logger, "[Proxy] Upstream timeout", e)
            raise HTTPException(status_code=504, detail="Gateway timeout")
        if find_exception_in_exception_groups(e, httpx.ConnectError) is not None:
            log_exception_with_details(logger, "[Proxy] Upstream unreachable", e)
            raise HTTPException(
                status_code=502, detail="Bad gateway - cannot connect to upstream"
            )
        if find_exception_in_exception_groups(e, httpx.HTTPError) is not None:
            log_exception_with_details(logger, "[Proxy] Upstream error", e)
            raise HTTPException(
                status_code=502, detail=f"Bad gateway: {format_exception_message(e)}"
            )
        raise
    return proxy_response.to_starlette()


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"],
)
async def proxy_all(request: Request, path: str):
    """Catch-all route that proxies all requests to the upstream."""
    return await forward_to_upstream(request)
