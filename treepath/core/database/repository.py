"""Explicit repository API for tree models.

The lifecycle hooks keep paths consistent whenever a tree model is flushed.
This repository makes the same steps explicit for callers who prefer to
validate a move before attempting it.

Example:
    from treepath import TreeRepository

    class CategoryRepository(TreeRepository[Category]):
        async def find_by_slug(self, session: AsyncSession, slug: str) -> Category | None:
            stmt = select(Category).where(Category.slug == slug)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    repo = CategoryRepository(Category)
    await repo.validate_move(session, laptops, computers)  # raises, changes nothing
    await repo.move(session, laptops, computers)           # validate + flush + rebuild
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import select

from treepath.core.database.exceptions import MissingParentError, NotFoundError
from treepath.core.database.hierarchy.integrity import (
    detect_circular_reference,
    find_path_problems,
    fix_paths,
)
from treepath.core.database.hierarchy.lookup import load_path
from treepath.core.database.hierarchy.mixins import TreeMixin
from treepath.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.engine import Connection
    from sqlalchemy.ext.asyncio import AsyncSession

    from treepath.core.database.hierarchy.collections import NodeCollection
    from treepath.core.database.hierarchy.integrity import PathProblem
    from treepath.core.database.hierarchy.path import TreePath


T = TypeVar("T", bound=TreeMixin)


class TreeRepository(Generic[T]):
    """Generic repository for materialized-path models.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - create(session, node) -> T
        - validate_move(session, node, new_parent) -> TreePath
        - move(session, node, new_parent) -> T
        - ancestors / descendants / roots
        - find_problems(session) / fix_paths(session)

    Session is always explicit - no hidden state. For queries not covered
    here, use the session directly with the tree filters.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: Tree model class (e.g., Category)
        """
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T | None:
        """Get node by primary key.

        Args:
            session: Database session
            id: Primary key value
            options: SQLAlchemy loader options (e.g., selectinload)

        Returns:
            Node if found, None otherwise
        """
        if options:
            key_attr = getattr(self.model, self.model.__key_column__)
            stmt = select(self.model).where(key_attr == id).options(*options)
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
        else:
            instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T:
        """Get node by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If the node doesn't exist
        """
        instance = await self.get(session, id, options=options)
        if instance is None:
            self._logger.info(
                "Node not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {self.model.__key_column__: id})
        return instance

    async def create(self, session: AsyncSession, node: T) -> T:
        """Persist a new node.

        Adds to session and flushes; the insert hooks assign the path.
        The node is refreshed so generated fields are populated.

        Raises:
            MissingParentError: If the parent does not exist or has no path
            InvalidSegmentError: If the path source cannot be a segment
        """
        session.add(node)
        await session.flush()
        await session.refresh(node)

        self._lazy.debug(
            lambda: f"db.create: {self.model.__name__}(id={node.get_key()}) path={node.get_path()}"
        )
        return node

    async def validate_move(
        self,
        session: AsyncSession,
        node: T,
        new_parent: T | None,
    ) -> TreePath:
        """Check that ``node`` can be moved under ``new_parent`` without changing anything.

        Args:
            session: Database session
            node: Node to move
            new_parent: Prospective parent, None to make ``node`` a root

        Returns:
            The path ``node`` would have after the move

        Raises:
            CircularReferenceError: If ``new_parent`` is ``node`` or one of its descendants
            MissingParentError: If ``new_parent`` is not persisted or has no path
            TreeDepthError: If the new path exceeds the configured max depth
        """
        parent_key = new_parent.get_key() if new_parent is not None else None
        model = self.model
        if new_parent is not None and parent_key is None:
            raise MissingParentError(model.__name__, None, reason="is not persisted")

        def validate(connection: Connection) -> TreePath:
            detect_circular_reference(connection, node, parent_key)
            if parent_key is None:
                return node.build_path(None)
            parent_path = load_path(connection, model, parent_key)
            if parent_path is None:
                raise MissingParentError(model.__name__, parent_key, reason="has no path")
            return node.build_path(parent_path)

        connection = await session.connection()
        return await connection.run_sync(validate)

    async def move(self, session: AsyncSession, node: T, new_parent: T | None) -> T:
        """Reparent ``node`` and rebuild its subtree.

        Validates first, then sets the parent reference and flushes; the
        update hooks rewrite the node's and its descendants' paths.

        Raises:
            CircularReferenceError: If ``new_parent`` is ``node`` or one of its descendants
            MissingParentError: If ``new_parent`` is not persisted or has no path
        """
        new_path = await self.validate_move(session, node, new_parent)
        old_path = node.get_path()

        setattr(
            node,
            self.model.__parent_column__,
            new_parent.get_key() if new_parent is not None else None,
        )
        await session.flush()
        await session.refresh(node)

        self._logger.info(
            "Node moved",
            extra={
                "entity": self.model.__name__,
                "id": str(node.get_key()),
                "old_path": str(old_path or ""),
                "new_path": new_path.value,
                "operation": "db.move",
            },
        )
        return node

    async def ancestors(self, session: AsyncSession, node: T) -> NodeCollection[T]:
        return await node.get_ancestors(session)

    async def descendants(
        self,
        session: AsyncSession,
        node: T,
        *,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> NodeCollection[T]:
        return await node.get_descendants(session, include_self=include_self, max_depth=max_depth)

    async def roots(self, session: AsyncSession) -> NodeCollection[T]:
        return await self.model.get_roots(session)

    async def find_problems(self, session: AsyncSession) -> list[PathProblem]:
        """Audit every stored path of the model against its parent chain."""
        await session.flush()
        connection = await session.connection()
        return await connection.run_sync(find_path_problems, self.model)

    async def fix_paths(self, session: AsyncSession) -> list[PathProblem]:
        """Rewrite missing and wrong paths; loaded instances are expired.

        Returns:
            The problems found (see ``find_problems``)
        """
        await session.flush()
        connection = await session.connection()
        problems = await connection.run_sync(fix_paths, self.model)
        session.expire_all()
        return problems


__all__ = ["TreeRepository"]
