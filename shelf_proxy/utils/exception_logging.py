"""
Helpers for logging proxy failures, including exception groups raised from
task groups inside the HTTP transport.
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to a string without ever raising.

    Falls back to repr() and finally to the type name when conversion fails.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def find_exception_in_exception_groups(exception: Exception, target_type: type):
    """
    Recursively search an exception and its sub-exceptions for ``target_type``.

    Returns:
        The first matching exception, or None if there is none
    """
    if isinstance(exception, target_type):
        return exception

    if hasattr(exception, "exceptions"):
        for sub_exc in _safe_get_exceptions(exception):
            inner_exc = find_exception_in_exception_groups(sub_exc, target_type)
            if inner_exc is not None:
                return inner_exc

    return None


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message, listing sub-exceptions of exception groups.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"

    sub_exceptions = (
        _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
    )
    if not sub_exceptions:
        return _safe_str(exception)

    sub_exception_strs = [
        f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}" for sub_exc in sub_exceptions
    ]
    return f"{_safe_str(exception)} (Sub-exceptions: {'; '.join(sub_exception_strs)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, expanding exception groups into one record per sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        sub_exceptions = (
            _safe_get_exceptions(exception)
            if exception is not None and hasattr(exception, "exceptions")
            else []
        )

        if sub_exceptions:
            logger.log(
                level,
                f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                logger.log(
                    level,
                    f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                    exc_info=sub_exc,
                )
        else:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
    except Exception:
        # Logging must never take the request down with it
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
