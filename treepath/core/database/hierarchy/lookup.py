"""Flush-safe path lookups.

Mapper event hooks receive the flush's Connection and must not touch the
Session (no lazy loads, no autoflush). These helpers read stored paths
through that Connection with plain Core selects against the model's table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select

from treepath.core.database.exceptions import MissingParentError
from treepath.core.database.hierarchy.path import TreePath
from treepath.core.database.inspection import get_loaded_value

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from treepath.core.database.hierarchy.mixins import TreeMixin

_NOT_FOUND = object()


def _fetch_path(connection: Connection, model: type[TreeMixin], key: Any) -> Any:
    mapper = sa_inspect(model)
    key_column = mapper.c[model.__key_column__]
    path_column = mapper.c[model.__path_column__]
    row = connection.execute(
        select(path_column).where(key_column == key)
    ).first()
    if row is None:
        return _NOT_FOUND
    return row[0]


def load_path(connection: Connection, model: type[TreeMixin], key: Any) -> TreePath | None:
    """Read the stored path of one row.

    Returns:
        The stored path, None if the row has no path

    Raises:
        MissingParentError: If no row has the given key
    """
    value = _fetch_path(connection, model, key)
    if value is _NOT_FOUND:
        raise MissingParentError(model.__name__, key)
    if value is None:
        return None
    path = TreePath.parse(value)
    return path if path else None


def load_parent_path(
    connection: Connection,
    node: TreeMixin,
    *,
    prefer_loaded: bool = True,
) -> TreePath | None:
    """Resolve the path of ``node``'s current parent.

    Args:
        connection: The flush connection
        node: Node whose parent path is needed
        prefer_loaded: Use the loaded ``parent`` relationship when it holds a
            path; otherwise (or when False) read the stored row

    Returns:
        None for root nodes, the parent's path otherwise

    Raises:
        MissingParentError: If the parent row does not exist or has no path
    """
    model = type(node)
    parent_key = node.get_parent_key()

    if prefer_loaded and parent_key is not None:
        parent = get_loaded_value(node, model.__parent_relationship__)
        # a stale relationship (parent_id reassigned directly) is ignored
        if parent is not None and get_loaded_value(parent, model.__key_column__) == parent_key:
            parent_path = get_loaded_value(parent, model.__path_column__)
            if parent_path:
                return TreePath.parse(parent_path)

    if parent_key is None:
        return None

    parent_path = load_path(connection, model, parent_key)
    if parent_path is None:
        raise MissingParentError(model.__name__, parent_key, reason="has no path")
    return parent_path


__all__ = [
    "load_parent_path",
    "load_path",
]
