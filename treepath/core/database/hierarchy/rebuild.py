"""Subtree rebuild engine.

When a node is reparented, its own path and the path of every descendant
must change. All of them share the moved node's old path as prefix, so
the rewrite is a single bulk statement:

    UPDATE nodes
       SET path = <new parent path> ++ <suffix from the moved node down>
     WHERE path = <old path> OR path extends <old path>

The prefix being replaced is the previous parent's full path (any number
of segments, empty for a former root). Backend differences are confined
to the codec expressions for the WHERE predicate and the SET value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm.attributes import set_committed_value

from treepath.core.database.hierarchy.codecs import codec_for
from treepath.core.database.hierarchy.lookup import load_parent_path
from treepath.core.database.hierarchy.path import TreePath
from treepath.core.database.inspection import get_loaded_value, get_session
from treepath.core.settings import get_tree_settings
from treepath.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from treepath.core.database.hierarchy.mixins import TreeMixin

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass(frozen=True, slots=True)
class RebuildResult:
    """Outcome of one subtree rebuild.

    Attributes:
        old_path: Path of the moved node before the move
        new_path: Path of the moved node after the move
        rows: Number of rows rewritten (the node plus its descendants)
    """

    old_path: TreePath
    new_path: TreePath
    rows: int

    @property
    def depth_delta(self) -> int:
        """Depth change applied to every row of the subtree."""
        return self.new_path.depth - self.old_path.depth


def write_path(connection: Connection, node: TreeMixin, path: TreePath) -> None:
    """Persist ``path`` for one row and mark it committed on the instance.

    Used when the row already exists (post-identity assignment, or a moved
    node that never had a path).
    """
    model = type(node)
    mapper = sa_inspect(model)
    key_column = mapper.c[model.__key_column__]
    path_column = mapper.c[model.__path_column__]

    connection.execute(
        update(mapper.local_table)
        .where(key_column == node.get_key())
        .values({path_column.key: path.value})
    )
    set_committed_value(node, model.__path_column__, path)


def sync_loaded_nodes(
    node: TreeMixin,
    old_path: TreePath,
    new_parent: TreePath | None,
) -> int:
    """Apply a subtree rewrite to instances loaded in ``node``'s session.

    Only paths already present in memory are touched; nothing is loaded.

    Returns:
        Number of loaded instances updated
    """
    session = get_session(node)
    if session is None:
        return 0

    model = type(node)
    base_mapper = sa_inspect(model).base_mapper
    old_prefix = old_path.parent or TreePath()
    synced = 0

    for instance in list(session.identity_map.values()):
        if instance is node or sa_inspect(instance).mapper.base_mapper is not base_mapper:
            continue
        value = get_loaded_value(instance, model.__path_column__)
        if not value:
            continue
        path = TreePath.parse(value)
        if not path.is_self_or_descendant_of(old_path):
            continue
        new_value = path.replace_prefix(old_prefix, new_parent)
        set_committed_value(instance, model.__path_column__, new_value)
        synced += 1

    return synced


def rebuild_subtree(
    connection: Connection,
    node: TreeMixin,
    old_path: TreePath,
) -> RebuildResult:
    """Rewrite the paths of ``node`` and all of its descendants.

    Must run after ``node``'s new parent reference has been written (the
    ``after_update`` hook), inside the same transaction.

    Args:
        connection: The flush connection
        node: The moved node
        old_path: Path of ``node`` before the move

    Returns:
        RebuildResult with the old and new path and the affected row count

    Raises:
        MissingParentError: If the new parent row does not exist or has no path
        TreeDepthError: If the new path exceeds the configured max depth
    """
    model = type(node)
    mapper = sa_inspect(model)
    path_column = mapper.c[model.__path_column__]
    codec = codec_for(connection)

    new_parent = load_parent_path(connection, node, prefer_loaded=False)
    new_path = node.build_path(new_parent)

    if new_path == old_path:
        set_committed_value(node, model.__path_column__, new_path)
        return RebuildResult(old_path, new_path, 0)

    stmt = (
        update(mapper.local_table)
        .where(codec.self_or_descendant_of(path_column, old_path))
        .values({path_column.key: codec.rewrite(path_column, old_path, new_parent)})
    )
    result = connection.execute(stmt)
    set_committed_value(node, model.__path_column__, new_path)

    synced = 0
    if get_tree_settings().sync_loaded_nodes:
        synced = sync_loaded_nodes(node, old_path, new_parent)

    rebuilt = RebuildResult(old_path, new_path, result.rowcount)
    logger.info(
        "Rebuilt subtree paths",
        extra={
            "model": model.__name__,
            "old_path": old_path.value,
            "new_path": new_path.value,
            "rows": rebuilt.rows,
            "synced": synced,
            "backend": codec.backend.value,
        },
    )
    lazy_logger.debug(lambda: f"Rebuild of {model.__name__} {node.get_key()!r}: {rebuilt!r}")
    return rebuilt


__all__ = [
    "RebuildResult",
    "rebuild_subtree",
    "sync_loaded_nodes",
    "write_path",
]
