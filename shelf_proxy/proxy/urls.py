"""
URL helpers for composing upstream URLs and mapping upstream redirects back
onto the proxy's own path space.
"""

from typing import List

import httpx


def compose_url(base: httpx.URL, path: str) -> httpx.URL:
    """
    Resolve an inbound path (optionally with a query) against the upstream base.

    The base path is treated as a directory, so ``http://example.com/docs``
    joined with ``/tutorials`` gives ``http://example.com/docs/tutorials``.
    The path is always resolved as a relative-path reference: a first segment
    such as ``http:`` or ``mailto:x`` is never read as a scheme, and ``//host``
    is never read as an authority, so the base scheme and host are kept.
    """
    base_path = base.raw_path.split(b"?", 1)[0]
    if not base_path.endswith(b"/"):
        base_path += b"/"
    directory = base.copy_with(raw_path=base_path)
    return directory.join("./" + path.lstrip("/"))


def _segments(url: httpx.URL) -> List[str]:
    raw_path = url.raw_path.split(b"?", 1)[0].decode("ascii")
    return [segment for segment in raw_path.split("/") if segment]


def is_within(parent: httpx.URL, child: httpx.URL) -> bool:
    """Return True if ``child`` lies strictly below ``parent``'s path."""
    if child.scheme != parent.scheme or child.netloc != parent.netloc:
        return False
    parent_parts = _segments(parent)
    child_parts = _segments(child)
    return (
        len(child_parts) > len(parent_parts)
        and child_parts[: len(parent_parts)] == parent_parts
    )


def relative_location(parent: httpx.URL, child: httpx.URL) -> str:
    """
    Path of ``child`` relative to ``parent``, keeping query and fragment.

    Callers must check ``is_within(parent, child)`` first.
    """
    relative = "/".join(_segments(child)[len(_segments(parent)) :])
    if child.query:
        relative += "?" + child.query.decode("ascii")
    if child.fragment:
        relative += "#" + child.fragment
    return relative
