"""Path SQL constructs compiled by the active backend's codec.

Query predicates are built before a statement knows which database it will
run on. These constructs defer the choice: each one is compiled through
``sqlalchemy.ext.compiler`` by resolving the backend for the compiling
dialect and rendering the matching codec expression, so the same statement
renders ``nlevel(path)`` on PostgreSQL and a delimiter count on SQLite.

Example:
    >>> stmt = select(Category).where(PathDepth(Category.path) == 2)
    >>> stmt = select(Category).where(PathDescendantOf(Category.path, "1.4"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Integer
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import ColumnElement
from sqlalchemy.sql.visitors import InternalTraversal

from treepath.core.database.hierarchy.codecs import codec_for
from treepath.core.database.hierarchy.path import TreePath

if TYPE_CHECKING:
    from sqlalchemy.sql.compiler import SQLCompiler


def _clause(column: Any) -> ColumnElement[Any]:
    clause_element = getattr(column, "__clause_element__", None)
    return clause_element() if clause_element is not None else column


class _PathExpression(ColumnElement[Any]):
    """Base for constructs wrapping one path column."""

    # Compiled SQL embeds bound path values chosen at compile time
    inherit_cache = False

    _traverse_internals = [("column", InternalTraversal.dp_clauseelement)]

    def __init__(self, column: Any) -> None:
        self.column = _clause(column)

    @property
    def _from_objects(self) -> list[Any]:
        return self.column._from_objects


class PathDepth(_PathExpression):
    """Segment count of the path column."""

    inherit_cache = False
    type = Integer()


class PathSelfOrDescendantOf(_PathExpression):
    """Path column equals ``path`` or extends it."""

    inherit_cache = False
    type = Boolean()

    def __init__(self, column: Any, path: TreePath | str) -> None:
        super().__init__(column)
        self.path = TreePath.parse(path)


class PathDescendantOf(PathSelfOrDescendantOf):
    """Path column strictly extends ``path``."""

    inherit_cache = False


class PathAncestorOf(PathSelfOrDescendantOf):
    """Path column is a strict ancestor of ``path``."""

    inherit_cache = False


@compiles(PathDepth)
def _compile_depth(element: PathDepth, compiler: SQLCompiler, **kw: Any) -> str:
    codec = codec_for(compiler.dialect)
    return compiler.process(codec.depth(element.column), **kw)


@compiles(PathSelfOrDescendantOf)
def _compile_self_or_descendant(
    element: PathSelfOrDescendantOf, compiler: SQLCompiler, **kw: Any
) -> str:
    codec = codec_for(compiler.dialect)
    return compiler.process(codec.self_or_descendant_of(element.column, element.path), **kw)


@compiles(PathDescendantOf)
def _compile_descendant(element: PathDescendantOf, compiler: SQLCompiler, **kw: Any) -> str:
    codec = codec_for(compiler.dialect)
    return compiler.process(codec.descendant_of(element.column, element.path), **kw)


@compiles(PathAncestorOf)
def _compile_ancestor(element: PathAncestorOf, compiler: SQLCompiler, **kw: Any) -> str:
    codec = codec_for(compiler.dialect)
    return compiler.process(codec.ancestor_of(element.column, element.path), **kw)


__all__ = [
    "PathAncestorOf",
    "PathDepth",
    "PathDescendantOf",
    "PathSelfOrDescendantOf",
]
