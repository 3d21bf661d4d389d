"""Tree query filters for SQLAlchemy statements.

These filters work directly with SQLAlchemy statements without hiding the
query. Each one adds a path-aware WHERE or ORDER BY clause that renders
for whichever backend executes the statement.

Usage:
    from sqlalchemy import select
    from treepath.core.database.filters import OrderByDepth, WhereDepth, WhereDescendantOf

    stmt = select(Category)
    stmt = WhereDescendantOf(electronics).apply(stmt)
    stmt = WhereDepth(Category, 3, "<=").apply(stmt)
    stmt = OrderByDepth(Category).apply(stmt)

    result = await session.execute(stmt)
    categories = result.scalars().all()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal

from treepath.core.database.exceptions import InvalidFilterError
from treepath.core.database.hierarchy.mixins import DEPTH_OPERATORS, TreeMixin
from treepath.core.database.hierarchy.path import TreePath

if TYPE_CHECKING:
    from sqlalchemy import Select


class StatementFilter(ABC):
    """Base class for statement filters.

    All filters implement `apply()` which modifies a SQLAlchemy statement.
    """

    @abstractmethod
    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply filter to statement.

        Args:
            statement: SQLAlchemy select statement

        Returns:
            Modified select statement
        """
        ...


class WhereRoot(StatementFilter):
    """Only nodes without a parent.

    Example:
        stmt = WhereRoot(Category).apply(select(Category))
        # Generates: WHERE parent_id IS NULL
    """

    def __init__(self, model: type[TreeMixin]):
        self.model = model

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(self.model.where_root())


class WhereDepth(StatementFilter):
    """Compare the path depth of each row with a number.

    Example:
        # Second level only
        stmt = WhereDepth(Category, 2).apply(stmt)

        # Everything above the fourth level
        stmt = WhereDepth(Category, 4, "<").apply(stmt)
    """

    def __init__(self, model: type[TreeMixin], depth: int, operator: str = "="):
        """Initialize depth filter.

        Args:
            model: Tree model
            depth: Depth to compare with (roots have depth 1)
            operator: One of =, <, <=, >, >=, <>, !=

        Raises:
            InvalidFilterError: If the operator is not supported
        """
        if operator not in DEPTH_OPERATORS:
            raise InvalidFilterError(f"Unsupported depth operator {operator!r}", "depth")
        self.model = model
        self.depth = depth
        self.operator = operator

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(self.model.where_depth(self.depth, self.operator))


class OrderByDepth(StatementFilter):
    """Order rows by path depth.

    Example:
        stmt = OrderByDepth(Category, "desc").apply(stmt)
    """

    def __init__(self, model: type[TreeMixin], direction: Literal["asc", "desc"] = "asc"):
        """Initialize depth ordering.

        Raises:
            InvalidFilterError: If direction is not asc or desc
        """
        if direction.lower() not in ("asc", "desc"):
            raise InvalidFilterError(f"Unsupported order direction {direction!r}", "order_by_depth")
        self.model = model
        self.direction = direction.lower()

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.order_by(self.model.order_by_depth(self.direction))


class _NodeFilter(StatementFilter):
    """Filter relative to one node (or one path of a given model)."""

    def __init__(
        self,
        node: TreeMixin | TreePath | str,
        model: type[TreeMixin] | None = None,
    ):
        """Initialize node-relative filter.

        Args:
            node: Reference node, or a path when ``model`` is given
            model: Tree model, defaults to the reference node's class

        Raises:
            InvalidFilterError: If no model can be determined
        """
        if model is None:
            if not isinstance(node, TreeMixin):
                raise InvalidFilterError(
                    "A model is required when filtering by path", type(self).__name__
                )
            model = type(node)
        self.model = model
        self.node = node


class WhereSelfOrDescendantOf(_NodeFilter):
    """The reference node and everything below it.

    Example:
        stmt = WhereSelfOrDescendantOf(electronics).apply(stmt)
        stmt = WhereSelfOrDescendantOf("1.4", Category).apply(stmt)
    """

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(self.model.where_self_or_descendant_of(self.node))


class WhereDescendantOf(_NodeFilter):
    """Everything strictly below the reference node."""

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(self.model.where_descendant_of(self.node))


class WhereAncestorOf(_NodeFilter):
    """Strict ancestors of the reference node."""

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.where(self.model.where_ancestor_of(self.node))


class LimitOffset(StatementFilter):
    """Pagination using LIMIT and OFFSET.

    Example:
        # Page 2 of a subtree listing
        stmt = LimitOffset(limit=50, offset=50).apply(stmt)
    """

    def __init__(self, limit: int, offset: int = 0):
        self.limit = limit
        self.offset = offset

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.limit(self.limit).offset(self.offset)


class FilterGroup(StatementFilter):
    """Apply several filters in sequence (AND semantics).

    Example:
        filters = FilterGroup([
            WhereDescendantOf(electronics),
            WhereDepth(Category, 3),
            OrderByDepth(Category),
        ])
        stmt = filters.apply(stmt)
    """

    def __init__(self, filters: Sequence[StatementFilter]):
        self.filters = list(filters)

    def apply(self, statement: Select[Any]) -> Select[Any]:
        for filter_obj in self.filters:
            statement = filter_obj.apply(statement)
        return statement


__all__ = [
    "FilterGroup",
    "LimitOffset",
    "OrderByDepth",
    "StatementFilter",
    "WhereAncestorOf",
    "WhereDepth",
    "WhereDescendantOf",
    "WhereRoot",
    "WhereSelfOrDescendantOf",
]
