"""Backend-specific path codecs.

Two storage backends are supported, chosen per connection:

- ``PathBackend.LTREE``: PostgreSQL native ltree. Depth is ``nlevel()``,
  containment is the ``<@`` operator, rewrites use ``subpath()`` and ltree
  concatenation.
- ``PathBackend.TEXT``: a delimited VARCHAR (SQLite, MySQL, MariaDB, or
  PostgreSQL when forced by configuration). Depth counts delimiters,
  containment is equality or an exact comparison of the leading
  characters, rewrites use ``substr()`` and string concatenation.

Both codecs answer the same questions (depth, is-descendant-of, subtree
rewrite) and must give identical logical results for the same stored paths.
All values travel as bound parameters.

Example:
    >>> codec = codec_for(connection)
    >>> stmt = (
    ...     update(table)
    ...     .where(codec.self_or_descendant_of(table.c.path, old_path))
    ...     .values(path=codec.rewrite(table.c.path, old_path, new_parent))
    ... )
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import Integer, String, and_, cast, false, func, literal, or_, type_coerce
from sqlalchemy.engine import Connection, Dialect

from treepath.core.database.exceptions import InvalidSegmentError, UnsupportedBackendError
from treepath.core.database.hierarchy.path import SEPARATOR, TreePath
from treepath.core.database.types import LtreeType
from treepath.core.settings import get_tree_settings

if TYPE_CHECKING:
    from sqlalchemy.sql.expression import ColumnElement

logger = logging.getLogger(__name__)

# Valid ltree label: alphanumerics, underscore and hyphen (PostgreSQL 16+), 1-1000 chars
LABEL_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,1000}$")

# Cache key for the resolved backend in Connection.info
BACKEND_INFO_KEY = "treepath.backend"


class PathBackend(StrEnum):
    """Path storage backend."""

    LTREE = "ltree"
    TEXT = "text"


DIALECT_BACKENDS: dict[str, PathBackend] = {
    "postgresql": PathBackend.LTREE,
    "sqlite": PathBackend.TEXT,
    "mysql": PathBackend.TEXT,
    "mariadb": PathBackend.TEXT,
}


def _dialect_of(bind: Any) -> Dialect:
    if isinstance(bind, Dialect):
        return bind
    dialect = getattr(bind, "dialect", None)
    if dialect is not None:
        return dialect
    # Session / AsyncSession
    get_bind = getattr(bind, "get_bind", None)
    if get_bind is not None:
        return get_bind().dialect
    raise TypeError(f"Cannot determine database dialect from {bind!r}")


def resolve_backend(bind: Any) -> PathBackend:
    """Resolve the path backend for a connection, engine, session or dialect.

    An explicit ``TreeSettings.backend`` wins; otherwise the dialect name
    decides. The result is cached in ``Connection.info`` so the decision is
    made once per connection.

    Args:
        bind: Connection, Engine, (Async)Session or Dialect

    Returns:
        The backend to use

    Raises:
        UnsupportedBackendError: If the dialect has no backend and none is configured
    """
    connection = bind if isinstance(bind, Connection) else None
    if connection is not None:
        cached = connection.info.get(BACKEND_INFO_KEY)
        if cached is not None:
            return cached

    configured = get_tree_settings().backend
    if configured != "auto":
        backend = PathBackend(configured)
    else:
        dialect = _dialect_of(bind)
        backend = DIALECT_BACKENDS.get(dialect.name)
        if backend is None:
            raise UnsupportedBackendError(dialect.name)

    if connection is not None:
        connection.info[BACKEND_INFO_KEY] = backend
        logger.debug(
            "Resolved path backend",
            extra={"backend": backend.value, "dialect": connection.dialect.name},
        )
    return backend


class PathCodec(ABC):
    """Strategy for storing and querying paths on one backend.

    Every method taking ``column`` accepts a mapped attribute or Core column
    holding the path and returns a SQLAlchemy expression.
    """

    backend: ClassVar[PathBackend]

    def encode(self, path: TreePath | str) -> str:
        """Return the stored representation of ``path``."""
        return TreePath.parse(path).value

    def decode(self, value: Any) -> TreePath | None:
        """Parse a stored value, None for NULL or empty."""
        if value is None:
            return None
        path = TreePath.parse(value)
        return path if path else None

    @abstractmethod
    def bind(self, path: TreePath | str) -> ColumnElement[Any]:
        """Typed bound parameter holding ``path``."""

    @abstractmethod
    def depth(self, column: Any) -> ColumnElement[int]:
        """Number of segments of the stored path."""

    @abstractmethod
    def self_or_descendant_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        """Stored path equals ``path`` or extends it."""

    @abstractmethod
    def rewrite(
        self,
        column: Any,
        old_path: TreePath,
        new_parent: TreePath | None,
    ) -> ColumnElement[Any]:
        """New stored value for a row in the subtree of a moved node.

        The previous parent's path (``old_path.parent``, any length, empty
        for a former root) is replaced with ``new_parent`` (None when the
        node becomes a root). The suffix from the moved node's own segment
        downward is kept.
        """

    def descendant_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        """Stored path strictly extends ``path``."""
        return and_(self.self_or_descendant_of(column, path), column != self.encode(path))

    def ancestor_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        """Stored path is a strict ancestor of ``path`` (exact IN list)."""
        ancestors = [a.value for a in TreePath.parse(path).ancestors]
        if not ancestors:
            return false()
        return column.in_(ancestors)


class LtreeCodec(PathCodec):
    """PostgreSQL ltree codec."""

    backend = PathBackend.LTREE

    def encode(self, path: TreePath | str) -> str:
        """Return the stored label path, validating every label for ltree.

        Raises:
            InvalidSegmentError: If a label has characters ltree rejects
        """
        value = TreePath.parse(path)
        for segment in value.segments:
            if not LABEL_PATTERN.match(segment):
                raise InvalidSegmentError(
                    segment, "ltree labels must be alphanumeric, '_' or '-', 1-1000 chars"
                )
        return value.value

    def bind(self, path: TreePath | str) -> ColumnElement[Any]:
        return cast(literal(self.encode(path), String()), LtreeType())

    def depth(self, column: Any) -> ColumnElement[int]:
        return func.nlevel(column, type_=Integer())

    def self_or_descendant_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        return column.op("<@", is_comparison=True)(self.bind(path))

    def ancestor_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        return and_(
            column.op("@>", is_comparison=True)(self.bind(path)),
            column != self.encode(path),
        )

    def rewrite(
        self,
        column: Any,
        old_path: TreePath,
        new_parent: TreePath | None,
    ) -> ColumnElement[Any]:
        # subpath(path, n) drops the n segments of the previous parent's path
        suffix = func.subpath(column, old_path.depth - 1, type_=LtreeType())
        if not new_parent:
            return suffix
        return self.bind(new_parent).op("||", return_type=LtreeType())(suffix)


class TextCodec(PathCodec):
    """Delimited string codec (SQLite, MySQL, MariaDB)."""

    backend = PathBackend.TEXT

    @staticmethod
    def _text(column: Any) -> ColumnElement[str]:
        # Plain string semantics so prefixes and slices bind as strings
        return type_coerce(column, String())

    def bind(self, path: TreePath | str) -> ColumnElement[Any]:
        return literal(self.encode(path), String())

    def depth(self, column: Any) -> ColumnElement[int]:
        text = self._text(column)
        return (
            func.length(text)
            - func.length(func.replace(text, SEPARATOR, ""))
            + 1
        )

    def self_or_descendant_of(self, column: Any, path: TreePath | str) -> ColumnElement[bool]:
        value = self.encode(path)
        prefix = value + SEPARATOR
        text = self._text(column)
        # substr() and = instead of LIKE: SQLite LIKE folds ASCII case
        return or_(
            text == value,
            func.substr(text, 1, len(prefix), type_=String()) == prefix,
        )

    def rewrite(
        self,
        column: Any,
        old_path: TreePath,
        new_parent: TreePath | None,
    ) -> ColumnElement[Any]:
        old_parent = old_path.parent
        # characters of "<old parent path>." to drop; substr() is 1-based
        offset = len(old_parent.value) + len(SEPARATOR) if old_parent else 0
        suffix = func.substr(self._text(column), offset + 1, type_=String())
        if not new_parent:
            return suffix
        return literal(self.encode(new_parent) + SEPARATOR, String()) + suffix


_CODECS: dict[PathBackend, PathCodec] = {
    PathBackend.LTREE: LtreeCodec(),
    PathBackend.TEXT: TextCodec(),
}


def get_codec(backend: PathBackend | str) -> PathCodec:
    """Return the codec instance for a backend."""
    return _CODECS[PathBackend(backend)]


def codec_for(bind: Any) -> PathCodec:
    """Resolve the backend for ``bind`` and return its codec.

    Raises:
        UnsupportedBackendError: If the dialect has no backend
    """
    return get_codec(resolve_backend(bind))


__all__ = [
    "BACKEND_INFO_KEY",
    "DIALECT_BACKENDS",
    "LABEL_PATTERN",
    "LtreeCodec",
    "PathBackend",
    "PathCodec",
    "TextCodec",
    "codec_for",
    "get_codec",
    "resolve_backend",
]
