import httpx


def add_header(headers: httpx.Headers, name: str, value: str) -> None:
    """
    Add a header, merging with an existing value instead of replacing it.

    Used for Via and Warning so chained proxies accumulate their entries.
    See http://www.w3.org/Protocols/rfc2616/rfc2616-sec14.html#sec14.45
    """
    if name in headers:
        headers[name] = f"{headers[name]}, {value}"
    else:
        headers[name] = value
