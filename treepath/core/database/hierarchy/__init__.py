"""Materialized path maintenance for self-referential tables.

Each node stores its lineage from the root as one delimited string
("1.4.9"), so ancestor and descendant queries are single statements. On
PostgreSQL the path is an ltree column; on SQLite, MySQL and MariaDB it is
a VARCHAR. The same models and queries work on both.

Components:
    - TreePath: Python value for path arithmetic
    - PathCodec: backend-specific SQL for depth, containment and rewrites
    - TreeMixin: columns, relationships and tree navigation for models
    - register_tree_events: hooks that assign and rebuild paths on flush
    - rebuild_subtree / detect_circular_reference: the move protocol
    - find_path_problems / fix_paths: integrity audit and repair

Example:
    >>> from treepath.core.database import Base, IntegerPKMixin
    >>> from treepath.core.database.hierarchy import TreeMixin, register_tree_events
    >>>
    >>> class Category(Base, IntegerPKMixin, TreeMixin):
    ...     __tablename__ = "categories"
    ...     name: Mapped[str] = mapped_column(String(255))
    >>>
    >>> register_tree_events(Base)
    >>>
    >>> laptops = Category(name="Laptops", parent=computers)
    >>> session.add(laptops)
    >>> await session.flush()
    >>> laptops.path
    TreePath('1.4.9')
    >>> ancestors = await laptops.get_ancestors(session)

Note:
    - ltree storage requires: CREATE EXTENSION IF NOT EXISTS ltree
    - Add a GiST index for performance: CREATE INDEX ... USING GIST (path)
"""

from treepath.core.database.hierarchy.codecs import (
    LtreeCodec,
    PathBackend,
    PathCodec,
    TextCodec,
    codec_for,
    get_codec,
    resolve_backend,
)
from treepath.core.database.hierarchy.collections import NodeCollection
from treepath.core.database.hierarchy.events import register_tree_events
from treepath.core.database.hierarchy.expressions import (
    PathAncestorOf,
    PathDepth,
    PathDescendantOf,
    PathSelfOrDescendantOf,
)
from treepath.core.database.hierarchy.integrity import (
    PathProblem,
    ProblemKind,
    detect_circular_reference,
    find_path_problems,
    fix_paths,
    has_circular_reference,
)
from treepath.core.database.hierarchy.mixins import TreeMixin
from treepath.core.database.hierarchy.path import SEPARATOR, TreePath
from treepath.core.database.hierarchy.rebuild import RebuildResult, rebuild_subtree

__all__ = [
    "SEPARATOR",
    "LtreeCodec",
    "NodeCollection",
    "PathAncestorOf",
    "PathBackend",
    "PathCodec",
    "PathDepth",
    "PathDescendantOf",
    "PathProblem",
    "PathSelfOrDescendantOf",
    "ProblemKind",
    "RebuildResult",
    "TextCodec",
    "TreeMixin",
    "TreePath",
    "codec_for",
    "detect_circular_reference",
    "find_path_problems",
    "fix_paths",
    "get_codec",
    "has_circular_reference",
    "rebuild_subtree",
    "register_tree_events",
    "resolve_backend",
]
