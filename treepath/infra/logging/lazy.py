"""Lazy evaluation support for logging.

Expensive debug messages (path dumps, row listings) are passed as callables
and only evaluated when the logger is enabled for the level.

Example:
    logger = get_lazy_logger(__name__)
    logger.debug(lambda: f"Subtree: {[str(n.path) for n in nodes]}")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callable messages and args on demand.

    Bound context passed at construction is merged into every record's
    ``extra`` so structured handlers see it.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        """Merge bound context into ``extra`` without overriding call-site keys."""
        if self.extra:
            kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log with lazy evaluation of ``msg`` and ``args``.

        Args:
            level: Numeric log level.
            msg: Message or zero-argument callable returning the message.
            *args: Format arguments, callables are evaluated.
            **kwargs: Passed through to the underlying logger.
        """
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()
        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)

        super().log(level, msg, *args, **kwargs)

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Get a logger with lazy evaluation support.

    Args:
        name: Logger name (usually __name__).
        **context: Optional context bound into every record's ``extra``.

    Returns:
        Logger adapter with lazy evaluation support.
    """
    extra: Mapping[str, Any] = dict(context)
    return LazyLoggerAdapter(logging.getLogger(name), extra)


__all__ = [
    "LazyLoggerAdapter",
    "get_lazy_logger",
]
