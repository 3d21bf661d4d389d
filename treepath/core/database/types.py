"""Column types for materialized path storage.

Types included:
- LtreeType: PostgreSQL native ltree column
- PathType: backend-neutral path column (LTREE on the ltree backend,
  VARCHAR on the text backend), always loading as TreePath
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import String, TypeDecorator, types
from sqlalchemy.types import TypeEngine

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Dialect

    from treepath.core.database.hierarchy.path import TreePath


DEFAULT_PATH_LENGTH = 1024


class LtreeType(types.UserDefinedType[str]):
    """PostgreSQL ltree type for hierarchical path data.

    Paths are dot-separated label strings like "1.4.9". PostgreSQL ltree
    provides:
    - Efficient ancestor/descendant tests using @> and <@ operators
    - nlevel() for depth and subpath() for slicing, used by the subtree rewrite
    - GiST indexing of the whole path

    Example:
        >>> class Category(Base, IntegerPKMixin):
        ...     __tablename__ = "categories"
        ...     path: Mapped[str] = mapped_column(LtreeType())
        >>>
        >>> stmt = select(Category).where(Category.path.op("<@")("1.4"))

    Note:
        - **PostgreSQL only**: Requires ltree extension
        - Create extension in migration: CREATE EXTENSION IF NOT EXISTS ltree
        - Add GiST index for performance: CREATE INDEX ... USING GIST (path)
    """

    cache_ok = True

    def get_col_spec(self, **kw: Any) -> str:
        """Return PostgreSQL column type specification."""
        _ = kw
        return "LTREE"

    def bind_processor(self, dialect: Any) -> Callable[[Any], Any] | None:
        """Send TreePath values as their stored string."""
        _ = dialect

        def process(value: Any) -> Any:
            if value is None:
                return None
            return str(value)

        return process

    def result_processor(
        self, dialect: Any, coltype: Any
    ) -> Callable[[Any], Any] | None:
        """Wrap values received from the database in TreePath."""
        _ = dialect, coltype

        def process(value: Any) -> Any:
            if value is None:
                return None
            # Import here to avoid circular imports
            from treepath.core.database.hierarchy.path import TreePath

            return TreePath.parse(value)

        return process


class PathType(TypeDecorator[Any]):
    """Backend-neutral materialized path column.

    Resolves the storage per dialect through the configured path backend:
    LTREE for the ltree backend, VARCHAR(length) for the text backend.
    Values bind from TreePath or str and always load as TreePath.

    Example:
        >>> class Category(Base, IntegerPKMixin):
        ...     __tablename__ = "categories"
        ...     path: Mapped[TreePath | None] = mapped_column(PathType(), index=True)

    Raises:
        UnsupportedBackendError: On dialects with no path backend, when the
            column is compiled or used.
    """

    impl = String
    cache_ok = True

    def __init__(self, length: int = DEFAULT_PATH_LENGTH, **kwargs: Any) -> None:
        super().__init__(length, **kwargs)
        self.length = length

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        from treepath.core.database.hierarchy.codecs import PathBackend, resolve_backend

        if resolve_backend(dialect) is PathBackend.LTREE:
            return dialect.type_descriptor(LtreeType())
        return dialect.type_descriptor(String(self.length))

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        from treepath.core.database.hierarchy.path import TreePath

        if value is None:
            return None
        return TreePath.parse(value).value

    def process_result_value(self, value: Any, dialect: Dialect) -> TreePath | None:
        from treepath.core.database.hierarchy.path import TreePath

        if value is None:
            return None
        path = TreePath.parse(value)
        return path if path else None


__all__ = [
    "DEFAULT_PATH_LENGTH",
    "LtreeType",
    "PathType",
]
