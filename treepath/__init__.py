"""Materialized-path trees for SQLAlchemy models.

Example:
    from treepath import Base, IntegerPKMixin, TreeMixin, register_tree_events

    class Category(Base, IntegerPKMixin, TreeMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))

    register_tree_events(Base)
"""

from treepath.core.database import (
    Base,
    CircularReferenceError,
    IntegerPKMixin,
    InvalidSegmentError,
    MissingParentError,
    NodeCollection,
    NotFoundError,
    PathBackend,
    TreeError,
    TreeMixin,
    TreePath,
    TreeRepository,
    UnsupportedBackendError,
    UUIDPKMixin,
    register_tree_events,
)
from treepath.core.settings import TreeSettings, get_tree_settings

__version__ = "0.1.0"

__all__ = [
    "Base",
    "CircularReferenceError",
    "IntegerPKMixin",
    "InvalidSegmentError",
    "MissingParentError",
    "NodeCollection",
    "NotFoundError",
    "PathBackend",
    "TreeError",
    "TreeMixin",
    "TreePath",
    "TreeRepository",
    "TreeSettings",
    "UUIDPKMixin",
    "UnsupportedBackendError",
    "get_tree_settings",
    "register_tree_events",
]
