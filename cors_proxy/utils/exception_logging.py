"""
Helpers for logging exceptions raised while forwarding, including exception groups
surfaced by the async transport.
"""

import logging


def _safe_str(obj) -> str:
    """Convert an object to string, falling back to repr or the type name."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception as a single line, listing sub-exceptions of exception groups.

    Exceptions with an empty message are reported by their type name so that a
    bare ``httpx.ConnectError()`` still produces a useful diagnostic.
    """
    if exception is None:
        return "None"

    message = _safe_str(exception) or type(exception).__name__
    subs = _sub_exceptions(exception)
    if not subs:
        return message

    parts = [
        f"{type(sub).__name__}: {_safe_str(sub)}" if sub is not None else "NoneType"
        for sub in subs
    ]
    return f"{message} (Sub-exceptions: {'; '.join(parts)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback, logging each sub-exception of a group separately.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    subs = _sub_exceptions(exception)
    if not subs:
        logger.log(
            level,
            f"{prefix} Exception: {format_exception_message(exception)}",
            exc_info=exception if exception is not None else False,
        )
        return

    logger.log(
        level,
        f"{prefix} Exception with {len(subs)} sub-exceptions: {_safe_str(exception)}",
    )
    for i, sub in enumerate(subs):
        sub_type = type(sub).__name__ if sub is not None else "NoneType"
        logger.log(
            level,
            f"{prefix} Sub-exception {i+1}: {sub_type}: {_safe_str(sub)}",
            exc_info=sub,
        )
