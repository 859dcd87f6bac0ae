"""Logging setup and call tracing for the assignment solver."""

from __future__ import annotations

import functools
import inspect
import logging
import sys
import threading
import time
from typing import Any, Callable, TypeVar

from .config import CONFIG_DIR_NAME, get_user_config_dir

LOG_FILENAME = "assignment_solver.log"

_F = TypeVar("_F", bound=Callable[..., Any])

_hook_lock = threading.Lock()
_hook_installed = False


def setup_logging(
    app_name: str = CONFIG_DIR_NAME,
    *,
    level: int = logging.INFO,
    log_filename: str = LOG_FILENAME,
) -> logging.Logger:
    """Send log records to stderr and to a file in the user config directory.

    If the root logger is already configured it is left alone.
    """

    logger = logging.getLogger(app_name)
    if logging.getLogger().handlers:
        return logger

    log_path = get_user_config_dir(app_name) / log_filename
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        logging.FileHandler(log_path, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)

    logger.info(
        "Logging initialised",
        extra={"log_path": str(log_path), "level": logging.getLevelName(level)},
    )
    return logger


def install_exception_hook(logger: logging.Logger) -> None:
    """Record uncaught exceptions, including those raised on run threads."""

    global _hook_installed
    with _hook_lock:
        if _hook_installed:
            return
        _hook_installed = True

    previous_hook = sys.excepthook
    previous_thread_hook = threading.excepthook

    def handle_exception(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.critical(
                "Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback)
            )
        previous_hook(exc_type, exc_value, exc_traceback)

    def handle_thread_exception(args):
        if not issubclass(args.exc_type, KeyboardInterrupt):
            logger.critical(
                "Unhandled exception in thread %s",
                args.thread.name if args.thread else "<unknown>",
                exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            )
        previous_thread_hook(args)

    sys.excepthook = handle_exception
    threading.excepthook = handle_thread_exception


def _describe(value: Any, *, max_length: int = 200) -> str:
    # Attachment payloads are logged by size only.
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    text = repr(value)
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text


def log_call(
    *,
    logger: logging.Logger,
    level: int = logging.DEBUG,
    include_args: bool = True,
    include_result: bool = False,
) -> Callable[[_F], _F]:
    """Log entry, duration and failures of the decorated service method."""

    def decorator(func: _F) -> _F:
        signature = inspect.signature(func)
        name = func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if include_args:
                bound = signature.bind_partial(*args, **kwargs)
                arguments = ", ".join(
                    f"{key}={_describe(value)}"
                    for key, value in bound.arguments.items()
                    if key != "self"
                )
                logger.log(level, "Calling %s(%s)", name, arguments)
            else:
                logger.log(level, "Calling %s", name)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.error(
                    "%s failed after %.3fs", name, time.perf_counter() - start, exc_info=True
                )
                raise
            elapsed = time.perf_counter() - start
            if include_result:
                logger.log(level, "%s returned %s (%.3fs)", name, _describe(result), elapsed)
            else:
                logger.log(level, "%s completed in %.3fs", name, elapsed)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["LOG_FILENAME", "install_exception_hook", "log_call", "setup_logging"]
