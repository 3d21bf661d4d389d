"""Core database package: base classes, path columns, tree mixin and repository.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming and constraint naming
    - IntegerPKMixin, UUIDPKMixin: Primary key strategies
    - TreeMixin: Materialized path columns and tree navigation

Repository:
    - TreeRepository[T]: Explicit validate/move API with session passing

Query Filters:
    - WhereRoot, WhereDepth, OrderByDepth: Level-based filtering and ordering
    - WhereSelfOrDescendantOf, WhereDescendantOf, WhereAncestorOf: Subtree filters
    - LimitOffset, FilterGroup: Pagination and composition

Change Tracking:
    - has_changes: Check if ORM instance has pending changes
    - get_loaded_value: Read an attribute only if it is already loaded

Custom Types:
    - LtreeType: PostgreSQL ltree
    - PathType: ltree or VARCHAR depending on the path backend
"""

from treepath.core.database.base import NAMING_CONVENTION, Base, IntegerPKMixin, UUIDPKMixin
from treepath.core.database.exceptions import (
    CircularReferenceError,
    InvalidFilterError,
    InvalidSegmentError,
    MissingParentError,
    NotFoundError,
    TreeDepthError,
    TreeError,
    UnsupportedBackendError,
)
from treepath.core.database.filters import (
    FilterGroup,
    LimitOffset,
    OrderByDepth,
    StatementFilter,
    WhereAncestorOf,
    WhereDepth,
    WhereDescendantOf,
    WhereRoot,
    WhereSelfOrDescendantOf,
)
from treepath.core.database.hierarchy import (
    NodeCollection,
    PathBackend,
    RebuildResult,
    TreeMixin,
    TreePath,
    register_tree_events,
)
from treepath.core.database.inspection import (
    get_loaded_value,
    has_changes,
)
from treepath.core.database.repository import TreeRepository
from treepath.core.database.types import LtreeType, PathType

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "CircularReferenceError",
    "FilterGroup",
    "IntegerPKMixin",
    "InvalidFilterError",
    "InvalidSegmentError",
    "LimitOffset",
    "LtreeType",
    "MissingParentError",
    "NodeCollection",
    "NotFoundError",
    "OrderByDepth",
    "PathBackend",
    "PathType",
    "RebuildResult",
    "StatementFilter",
    "TreeDepthError",
    "TreeError",
    "TreeMixin",
    "TreePath",
    "TreeRepository",
    "UUIDPKMixin",
    "UnsupportedBackendError",
    "WhereAncestorOf",
    "WhereDepth",
    "WhereDescendantOf",
    "WhereRoot",
    "WhereSelfOrDescendantOf",
    "get_loaded_value",
    "has_changes",
    "register_tree_events",
]
