import httpx


def redact_url(url) -> str:
    """Render a URL for logs and spans with any password masked."""
    parsed = httpx.URL(str(url))
    if not parsed.password:
        return str(parsed)
    userinfo = parsed.userinfo.decode("ascii")
    username = userinfo.split(":", 1)[0]
    return str(parsed).replace(f"{userinfo}@", f"{username}:****@", 1)
