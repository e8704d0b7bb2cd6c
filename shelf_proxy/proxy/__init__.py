from .errors import InvalidConfiguration
from .handler import (
    DEFAULT_PROXY_NAME,
    ProxyConfig,
    ProxyHandler,
    create_proxy_handler,
    proxy_handler,
)
from .headers import add_header
from .models import ProxyRequest, ProxyResponse
from .redirection import needs_redirection
from .streams import BodySink, store

__all__ = [
    "DEFAULT_PROXY_NAME",
    "BodySink",
    "InvalidConfiguration",
    "ProxyConfig",
    "ProxyHandler",
    "ProxyRequest",
    "ProxyResponse",
    "add_header",
    "create_proxy_handler",
    "needs_redirection",
    "proxy_handler",
    "store",
]
