"""Path integrity: circular-reference detection and audit/repair.

The detector runs inside ``before_update`` with the flush connection, so it
sees the prospective parent's path as currently stored (before any subtree
rewrite of this flush). A node may not be moved below itself: if the new
parent's stored path contains the node's own path source, the node is an
ancestor of (or equal to) its new parent.

The audit walks a whole table and compares every stored path with the path
its ``parent_id`` chain implies, reporting and optionally rewriting the
differences.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import bindparam, select, update
from sqlalchemy import inspect as sa_inspect

from treepath.core.database.exceptions import CircularReferenceError
from treepath.core.database.hierarchy.lookup import load_path
from treepath.core.database.hierarchy.path import TreePath, to_segment
from treepath.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from treepath.core.database.hierarchy.mixins import TreeMixin

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


# Sentinel: use the node's current parent reference
_CURRENT_PARENT: Any = object()


def has_circular_reference(
    connection: Connection,
    node: TreeMixin,
    parent_key: Any = _CURRENT_PARENT,
) -> bool:
    """Check whether a parent reference of ``node`` would form a cycle.

    Args:
        connection: Connection to read stored paths through
        node: Node whose ``parent_id`` was (or will be) changed
        parent_key: Prospective parent key, defaults to the node's current one

    Returns:
        True if the new parent is the node itself or one of its descendants

    Raises:
        MissingParentError: If the parent row does not exist
    """
    if parent_key is _CURRENT_PARENT:
        parent_key = node.get_parent_key()
    if parent_key is None:
        return False

    if parent_key == node.get_key():
        return True

    parent_path = load_path(connection, type(node), parent_key)
    if parent_path is None:
        return False
    return parent_path.contains(node.get_path_source())


def detect_circular_reference(
    connection: Connection,
    node: TreeMixin,
    parent_key: Any = _CURRENT_PARENT,
) -> None:
    """Raise if a parent reference of ``node`` would form a cycle.

    Raises:
        CircularReferenceError: If the new parent is the node or a descendant
        MissingParentError: If the parent row does not exist
    """
    if parent_key is _CURRENT_PARENT:
        parent_key = node.get_parent_key()
    if not has_circular_reference(connection, node, parent_key):
        return

    model_name = type(node).__name__
    logger.warning(
        "Rejected circular parent reference",
        extra={
            "model": model_name,
            "id": node.get_key(),
            "parent_id": parent_key,
        },
    )
    raise CircularReferenceError(model_name, node.get_key(), parent_key)


# ----------------------------------------------------------------------
# Audit and repair
# ----------------------------------------------------------------------


class ProblemKind(StrEnum):
    """Kind of inconsistency between ``parent_id`` and ``path``."""

    MISSING_PARENT = "missing_parent"
    MISSING_PATH = "missing_path"
    WRONG_PATH = "wrong_path"
    CYCLE = "cycle"


@dataclass(frozen=True, slots=True)
class PathProblem:
    """One row whose stored path disagrees with its lineage.

    Attributes:
        kind: What is wrong
        key: Primary key of the row
        stored: Path currently stored (None if missing)
        expected: Path implied by the parent chain (None if it cannot be built)
    """

    kind: ProblemKind
    key: Any
    stored: TreePath | None
    expected: TreePath | None


def _expected_paths(
    rows: dict[Any, tuple[Any, str]],
) -> tuple[dict[Any, TreePath], dict[Any, ProblemKind]]:
    """Compute the path every row should have from ``key -> (parent, source)``.

    Rows whose path cannot be built are returned in the second mapping; their
    descendants inherit the same problem kind.
    """
    expected: dict[Any, TreePath] = {}
    broken: dict[Any, ProblemKind] = {}
    resolving: set[Any] = set()

    def resolve(key: Any) -> TreePath | None:
        if key in expected:
            return expected[key]
        if key in broken:
            return None
        if key in resolving:
            broken[key] = ProblemKind.CYCLE
            return None

        parent_key, source = rows[key]
        if parent_key is None:
            expected[key] = TreePath.from_source(source)
            return expected[key]
        if parent_key not in rows:
            broken[key] = ProblemKind.MISSING_PARENT
            return None

        resolving.add(key)
        try:
            parent_path = resolve(parent_key)
        finally:
            resolving.discard(key)

        if parent_path is None:
            broken.setdefault(key, broken.get(parent_key, ProblemKind.CYCLE))
            return None
        if parent_path.contains(source):
            broken[key] = ProblemKind.CYCLE
            return None
        expected[key] = TreePath.from_source(source, parent=parent_path)
        return expected[key]

    for key in rows:
        resolve(key)
    return expected, broken


def find_path_problems(connection: Connection, model: type[TreeMixin]) -> list[PathProblem]:
    """Compare every stored path of ``model`` with its parent chain.

    Reads the whole table in one query. Runs in the caller's transaction.

    Args:
        connection: Connection to read through
        model: Tree model to audit

    Returns:
        Problems ordered by expected depth, then key
    """
    mapper = sa_inspect(model)
    key_column = mapper.c[model.__key_column__]
    parent_column = mapper.c[model.__parent_column__]
    path_column = mapper.c[model.__path_column__]
    source_column = mapper.c[model.path_source_attribute()]

    result = connection.execute(
        select(key_column, parent_column, source_column, path_column)
    )

    rows: dict[Any, tuple[Any, Any]] = {}
    stored: dict[Any, TreePath | None] = {}
    for key, parent_key, source, path in result:
        rows[key] = (parent_key, to_segment(source))
        stored[key] = TreePath.parse(path) if path else None

    expected, broken = _expected_paths(rows)

    problems = [
        PathProblem(kind, key, stored[key], None) for key, kind in broken.items()
    ]
    for key, path in expected.items():
        current = stored[key]
        if current is None:
            problems.append(PathProblem(ProblemKind.MISSING_PATH, key, None, path))
        elif current != path:
            problems.append(PathProblem(ProblemKind.WRONG_PATH, key, current, path))

    problems.sort(key=lambda p: (p.expected.depth if p.expected else 0, str(p.key)))
    lazy_logger.debug(
        lambda: f"Path audit of {model.__name__}: {[(p.kind.value, p.key) for p in problems]}"
    )
    return problems


def fix_paths(connection: Connection, model: type[TreeMixin]) -> list[PathProblem]:
    """Rewrite every missing or wrong path of ``model``.

    Rows with a missing parent or a cyclic parent chain cannot be given a
    path and are returned untouched. Runs in the caller's transaction.

    Returns:
        The problems found; MISSING_PATH and WRONG_PATH entries were fixed
    """
    problems = find_path_problems(connection, model)
    fixable = [
        p for p in problems if p.kind in (ProblemKind.MISSING_PATH, ProblemKind.WRONG_PATH)
    ]
    if fixable:
        table = sa_inspect(model).local_table
        mapper = sa_inspect(model)
        key_column = mapper.c[model.__key_column__]
        path_column = mapper.c[model.__path_column__]
        stmt = (
            update(table)
            .where(key_column == bindparam("_key"))
            .values({path_column.key: bindparam("_path")})
        )
        connection.execute(
            stmt,
            [{"_key": p.key, "_path": p.expected.value} for p in fixable],
        )

    logger.info(
        "Fixed tree paths",
        extra={
            "model": model.__name__,
            "fixed": len(fixable),
            "unfixable": len(problems) - len(fixable),
        },
    )
    return problems


__all__ = [
    "PathProblem",
    "ProblemKind",
    "detect_circular_reference",
    "fix_paths",
    "find_path_problems",
    "has_circular_reference",
]
