"""Logging helpers.

Modules log through the standard library:

    logger = logging.getLogger(__name__)
    logger.info("Rebuilt subtree", extra={"model": "Category", "rows": 12})

Debug messages with expensive formatting use the lazy adapter:

    from treepath.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Paths: {dump_paths()}")
"""

from treepath.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "LazyLoggerAdapter",
    "get_lazy_logger",
]
