from shelf_proxy.proxy import (
    DEFAULT_PROXY_NAME,
    InvalidConfiguration,
    ProxyConfig,
    ProxyHandler,
    ProxyRequest,
    ProxyResponse,
    create_proxy_handler,
    proxy_handler,
)

__all__ = [
    "DEFAULT_PROXY_NAME",
    "InvalidConfiguration",
    "ProxyConfig",
    "ProxyHandler",
    "ProxyRequest",
    "ProxyResponse",
    "create_proxy_handler",
    "proxy_handler",
]
