def needs_redirection(path: str) -> bool:
    """
    Check whether a request path should be served by the upstream index.html.

    Only paths made of a single segment without a dot qualify, e.g. ``/about``
    but not ``/app.js``, ``/a/b`` or ``/``.
    """
    if not path.startswith("/"):
        return False

    path_parts = path[1:].split("/")

    # We only consider a path which is only made up of 1 part
    if len(path_parts) == 1 and path_parts[0]:
        has_extension = len(path_parts[0].split(".")) > 1
        if not has_extension:
            return True
    return False
