"""
Exception logging helpers that never raise, for code paths where a failure
must be reported but must not take the caller down with it.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception as ``Type: message``, including sub-exceptions of
    exception groups.
    """
    if exception is None:
        return "None"
    message = f"{type(exception).__name__}: {_safe_str(exception)}"
    sub_exceptions = getattr(exception, "exceptions", None)
    if isinstance(sub_exceptions, (list, tuple)) and sub_exceptions:
        joined = "; ".join(format_exception_message(sub) for sub in sub_exceptions)
        message = f"{message} (Sub-exceptions: {joined})"
    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log ``exception`` under ``prefix`` with its traceback.

    Args:
        logger: The logger instance to use
        prefix: Tag for the log line (e.g. "[Cache Purge]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        logger.log(
            level,
            f"{prefix} Exception: {format_exception_message(exception)}",
            exc_info=exception if exception is not None else False,
        )
    except Exception:
        try:
            logger.log(level, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
