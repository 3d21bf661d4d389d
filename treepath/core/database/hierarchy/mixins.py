"""Mixin for models stored as a materialized-path tree.

Provides the tree columns, the parent/children relationships, path
building and tree navigation for any mapped class. A model is tree-enabled
by combining TreeMixin with a primary key and registering the lifecycle
hooks once:

    class Category(Base, IntegerPKMixin, TreeMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))

    register_tree_events(Base)

The capability the library relies on is described by class attributes:

    __key_column__           primary key attribute (default "id")
    __parent_column__        parent reference attribute (default "parent_id")
    __path_column__          path attribute (default "path")
    __path_source__          attribute used as the node's own segment
                             (default None: the primary key)
    __parent_relationship__  many-to-one relationship to the parent
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import ForeignKey, Integer, asc, desc, func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from treepath.core.database.exceptions import InvalidFilterError, TreeDepthError
from treepath.core.database.hierarchy.collections import NodeCollection
from treepath.core.database.hierarchy.expressions import (
    PathAncestorOf,
    PathDepth,
    PathDescendantOf,
    PathSelfOrDescendantOf,
)
from treepath.core.database.hierarchy.path import TreePath
from treepath.core.database.inspection import get_loaded_value
from treepath.core.database.types import PathType
from treepath.core.settings import get_tree_settings

if TYPE_CHECKING:
    from typing import Self

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.expression import ColumnElement, UnaryExpression

DEPTH_OPERATORS: dict[str, str] = {
    "=": "__eq__",
    "<": "__lt__",
    "<=": "__le__",
    ">": "__gt__",
    ">=": "__ge__",
    "<>": "__ne__",
    "!=": "__ne__",
}


class TreeMixin:
    """Mixin for models with a materialized path.

    Path columns are maintained by the lifecycle hooks; callers only ever
    set the parent (``node.parent = other`` or ``node.parent_id = key``).

    Example:
        >>> root = Category(name="Electronics")
        >>> laptops = Category(name="Laptops", parent=root)
        >>> session.add_all([root, laptops])
        >>> await session.commit()
        >>> laptops.path
        TreePath('1.2')
        >>> await laptops.get_ancestors(session)
        [<Category 1 path='1'>]

    Note:
        - Navigation methods are async and take the session explicitly
        - Pure predicates (is_root, is_ancestor_of, ...) never query
    """

    __allow_unmapped__ = True

    __key_column__: ClassVar[str] = "id"
    __parent_column__: ClassVar[str] = "parent_id"
    __path_column__: ClassVar[str] = "path"
    __path_source__: ClassVar[str | None] = None
    __parent_relationship__: ClassVar[str] = "parent"

    path: Mapped[TreePath | None] = mapped_column(
        PathType(),
        nullable=True,
        default=None,
        index=True,
        comment="Materialized path of the node, root first",
    )

    @declared_attr
    def parent_id(cls) -> Mapped[Any]:
        return mapped_column(
            ForeignKey(f"{cls.__tablename__}.{cls.__key_column__}", ondelete="CASCADE"),
            nullable=True,
            default=None,
            index=True,
            comment="Parent node, NULL for roots",
        )

    @declared_attr
    def parent(cls) -> Mapped[Any]:
        return relationship(
            cls.__name__,
            remote_side=f"{cls.__name__}.{cls.__key_column__}",
            foreign_keys=f"{cls.__name__}.{cls.__parent_column__}",
            back_populates="children",
        )

    @declared_attr
    def children(cls) -> Mapped[list[Any]]:
        return relationship(
            cls.__name__,
            foreign_keys=f"{cls.__name__}.{cls.__parent_column__}",
            back_populates="parent",
            passive_deletes=True,
        )

    # ------------------------------------------------------------------
    # Capability accessors
    # ------------------------------------------------------------------

    @classmethod
    def path_source_attribute(cls) -> str:
        """Attribute whose value is the node's own segment."""
        return cls.__path_source__ or cls.__key_column__

    @classmethod
    def path_column(cls) -> Any:
        """Mapped path attribute (for use in statements)."""
        return getattr(cls, cls.__path_column__)

    @classmethod
    def parent_column(cls) -> Any:
        """Mapped parent reference attribute."""
        return getattr(cls, cls.__parent_column__)

    def get_key(self) -> Any:
        return getattr(self, self.__key_column__)

    def get_parent_key(self) -> Any:
        return getattr(self, self.__parent_column__)

    def get_path_source(self) -> Any:
        return getattr(self, self.path_source_attribute())

    def get_path(self) -> TreePath | None:
        value = getattr(self, self.__path_column__)
        if not value:
            return None
        return TreePath.parse(value)

    def has_path(self) -> bool:
        return self.get_path() is not None

    @classmethod
    def assigns_path_after_insert(cls) -> bool:
        """Whether the path can only be written after the row is inserted.

        True when the path source is the primary key and the key is an
        auto-generated integer without a Python-side default: its value
        exists only once the INSERT has run.
        """
        mapper = sa_inspect(cls)
        if len(mapper.primary_key) != 1:
            return False
        key_column = mapper.primary_key[0]
        if mapper.get_property_by_column(key_column).key != cls.path_source_attribute():
            return False
        return (
            key_column.autoincrement in (True, "auto")
            and isinstance(key_column.type, Integer)
            and key_column.default is None
        )

    # ------------------------------------------------------------------
    # Path building
    # ------------------------------------------------------------------

    def build_path(self, parent_path: TreePath | None) -> TreePath:
        """Build this node's path under ``parent_path`` (None for roots).

        Raises:
            InvalidSegmentError: If the path source is empty, contains the
                delimiter or already appears in ``parent_path``
            TreeDepthError: If the path exceeds the configured max depth
        """
        path = TreePath.from_source(self.get_path_source(), parent=parent_path)
        max_depth = get_tree_settings().max_depth
        if max_depth is not None and path.depth > max_depth:
            raise TreeDepthError(path.depth, max_depth)
        return path

    # ------------------------------------------------------------------
    # Pure predicates (no database access)
    # ------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        """True if the node has no parent reference."""
        return self.get_parent_key() is None

    @property
    def hierarchy_depth(self) -> int:
        """Depth computed from the current path (0 while unassigned)."""
        path = self.get_path()
        return path.depth if path else 0

    @property
    def path_segments(self) -> tuple[str, ...]:
        path = self.get_path()
        return path.segments if path else ()

    def is_same_node(self, other: TreeMixin) -> bool:
        if self is other:
            return True
        if type(self) is not type(other):
            return False
        key = self.get_key()
        return key is not None and key == other.get_key()

    def is_ancestor_of(self, other: TreeMixin) -> bool:
        """True if this node appears in ``other``'s lineage and is not ``other``."""
        other_path = other.get_path()
        if other_path is None or self.is_same_node(other):
            return False
        return other_path.contains(self.get_path_source())

    def is_descendant_of(self, other: TreeMixin) -> bool:
        return other.is_ancestor_of(self)

    # ------------------------------------------------------------------
    # Composable expressions
    # ------------------------------------------------------------------

    @classmethod
    def depth_expression(cls) -> ColumnElement[int]:
        """SQL expression for the path depth, rendered for the active backend."""
        return PathDepth(cls.path_column())

    @classmethod
    def where_root(cls) -> ColumnElement[bool]:
        return cls.parent_column().is_(None)

    @classmethod
    def where_depth(cls, depth: int, operator: str = "=") -> ColumnElement[bool]:
        """Compare the path depth with ``depth``.

        Raises:
            InvalidFilterError: If ``operator`` is not one of =, <, <=, >, >=, <>, !=
        """
        method = DEPTH_OPERATORS.get(operator)
        if method is None:
            raise InvalidFilterError(f"Unsupported depth operator {operator!r}", "depth")
        return getattr(cls.depth_expression(), method)(depth)

    @classmethod
    def order_by_depth(cls, direction: str = "asc") -> UnaryExpression[Any]:
        """Ordering clause by path depth.

        Raises:
            InvalidFilterError: If ``direction`` is not asc or desc
        """
        direction = direction.lower()
        if direction == "asc":
            return asc(cls.depth_expression())
        if direction == "desc":
            return desc(cls.depth_expression())
        raise InvalidFilterError(f"Unsupported order direction {direction!r}", "order_by_depth")

    @classmethod
    def where_self_or_descendant_of(cls, node: TreeMixin | TreePath | str) -> ColumnElement[bool]:
        return PathSelfOrDescendantOf(cls.path_column(), _path_of(node))

    @classmethod
    def where_descendant_of(cls, node: TreeMixin | TreePath | str) -> ColumnElement[bool]:
        return PathDescendantOf(cls.path_column(), _path_of(node))

    @classmethod
    def where_ancestor_of(cls, node: TreeMixin | TreePath | str) -> ColumnElement[bool]:
        return PathAncestorOf(cls.path_column(), _path_of(node))

    # ------------------------------------------------------------------
    # Navigation (one query each)
    # ------------------------------------------------------------------

    async def get_parent(self, session: AsyncSession) -> Self | None:
        parent_key = self.get_parent_key()
        if parent_key is None:
            return None
        return await session.get(type(self), parent_key)

    async def get_children(self, session: AsyncSession) -> NodeCollection[Self]:
        """Immediate children, ordered by path."""
        cls = type(self)
        stmt = (
            select(cls)
            .where(cls.parent_column() == self.get_key())
            .order_by(cls.path_column())
        )
        result = await session.execute(stmt)
        return NodeCollection(result.scalars().all())

    async def get_ancestors(
        self,
        session: AsyncSession,
        *,
        include_self: bool = False,
    ) -> NodeCollection[Self]:
        """Strict ancestors ordered root first (optionally ending with self).

        Derived from the path prefix, so one query regardless of depth.
        """
        path = self.get_path()
        if path is None:
            return NodeCollection()

        cls = type(self)
        condition = cls.where_ancestor_of(path)
        if include_self:
            condition = condition | (cls.path_column() == path.value)

        stmt = select(cls).where(condition).order_by(cls.order_by_depth())
        result = await session.execute(stmt)
        return NodeCollection(result.scalars().all())

    async def get_descendants(
        self,
        session: AsyncSession,
        *,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> NodeCollection[Self]:
        """All descendants ordered by path.

        Args:
            session: Async database session
            include_self: Include this node at the start of the list
            max_depth: Maximum depth relative to this node (None for unlimited)
        """
        path = self.get_path()
        if path is None:
            return NodeCollection()

        cls = type(self)
        if include_self:
            stmt = select(cls).where(cls.where_self_or_descendant_of(path))
        else:
            stmt = select(cls).where(cls.where_descendant_of(path))

        if max_depth is not None:
            stmt = stmt.where(cls.where_depth(path.depth + max_depth, "<="))

        stmt = stmt.order_by(cls.order_by_depth(), cls.path_column())
        result = await session.execute(stmt)
        return NodeCollection(result.scalars().all())

    async def join_ancestors(self, session: AsyncSession) -> NodeCollection[Self]:
        """This node followed by its ancestors, deepest first (breadcrumbs)."""
        ancestors = await self.get_ancestors(session)
        return ancestors.sort_by_depth_desc().prepend(self)

    async def get_subtree_count(self, session: AsyncSession, *, include_self: bool = False) -> int:
        """Count descendants with a single COUNT query."""
        path = self.get_path()
        if path is None:
            return 0

        cls = type(self)
        condition = (
            cls.where_self_or_descendant_of(path)
            if include_self
            else cls.where_descendant_of(path)
        )
        stmt = select(func.count()).select_from(cls).where(condition)
        result = await session.execute(stmt)
        return result.scalar() or 0

    @classmethod
    async def get_roots(cls, session: AsyncSession) -> NodeCollection[Self]:
        """All root nodes, ordered by path."""
        stmt = select(cls).where(cls.where_root()).order_by(cls.path_column())
        result = await session.execute(stmt)
        return NodeCollection(result.scalars().all())

    @classmethod
    async def get_by_path(cls, session: AsyncSession, path: TreePath | str) -> Self | None:
        stmt = select(cls).where(cls.path_column() == TreePath.parse(path).value)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    def __repr__(self) -> str:
        # loaded state only, repr must never trigger a load
        key = get_loaded_value(self, self.__key_column__)
        path = get_loaded_value(self, self.__path_column__)
        return f"<{type(self).__name__} {key!r} path={str(path or '')!r}>"


def _path_of(node: TreeMixin | TreePath | str) -> TreePath:
    if isinstance(node, TreeMixin):
        path = node.get_path()
        if path is None:
            raise ValueError(f"{node!r} has no path yet")
        return path
    return TreePath.parse(node)


__all__ = [
    "DEPTH_OPERATORS",
    "TreeMixin",
]
