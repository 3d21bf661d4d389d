"""Immutable materialized path value with navigation utilities.

A path is the ordered sequence of path-source values of a node's lineage,
root first. It is stored as one string with segments joined by ``.``:

- "1"          a root node with identity 1
- "1.4.9"      node 9, child of 4, grandchild of root 1
- "docs.api"   slug-based paths

The delimiter is reserved and never escaped: segment values must not
contain it. This wrapper provides Python-side path arithmetic without
requiring database queries; both storage backends (ltree and plain text)
read and write exactly this string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from treepath.core.database.exceptions import InvalidSegmentError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from typing import Self

SEPARATOR = "."


def to_segment(source: Any) -> str:
    """Convert a path-source value to a validated segment string.

    Args:
        source: Path-source value (identity, slug, UUID, ...)

    Returns:
        Segment string

    Raises:
        InvalidSegmentError: If the value is None, empty or contains the delimiter
    """
    if source is None:
        raise InvalidSegmentError(source, "path source is not set")
    segment = str(source)
    if not segment:
        raise InvalidSegmentError(source, "segment is empty")
    if SEPARATOR in segment:
        raise InvalidSegmentError(source, f"segment contains reserved delimiter {SEPARATOR!r}")
    return segment


class TreePath:
    """Immutable materialized path.

    Example:
        >>> path = TreePath.from_source(9, parent=TreePath.parse("1.4"))
        >>> path
        TreePath('1.4.9')
        >>> path.depth
        3
        >>> path.segments
        ('1', '4', '9')
        >>> path.contains(4)
        True
        >>> path.parent
        TreePath('1.4')

    Note:
        - Segments are non-empty and never contain "."
        - The empty path (depth 0) stands for "no path"/"no parent"
    """

    __slots__ = ("_segments", "_value")
    _segments: tuple[str, ...]
    _value: str

    def __init__(self, segments: Iterable[str] = ()) -> None:
        """Initialize from already validated segments.

        Prefer the ``from_source``, ``parse`` and ``from_segments`` constructors.

        Raises:
            InvalidSegmentError: If a segment is invalid or repeated
        """
        self._segments = tuple(to_segment(s) for s in segments)
        if len(set(self._segments)) != len(self._segments):
            raise InvalidSegmentError(
                SEPARATOR.join(self._segments), "segments must be unique within a path"
            )
        self._value = SEPARATOR.join(self._segments)

    @classmethod
    def from_source(cls, source: Any, parent: TreePath | str | None = None) -> Self:
        """Build a node's path from its path source and its parent's path.

        Args:
            source: The node's own path-source value
            parent: Parent path, None for a root node

        Returns:
            ``TreePath([source])`` for roots, ``parent ++ [source]`` otherwise

        Raises:
            InvalidSegmentError: If ``source`` is empty, contains the delimiter,
                or already appears in ``parent``

        Example:
            >>> TreePath.from_source("a")
            TreePath('a')
            >>> TreePath.from_source("c", parent="a.b")
            TreePath('a.b.c')
        """
        segment = to_segment(source)
        if parent is None:
            return cls((segment,))
        parent_path = parent if isinstance(parent, TreePath) else cls.parse(parent)
        return cls((*parent_path._segments, segment))

    @classmethod
    def parse(cls, value: str | TreePath) -> Self:
        """Parse a stored path string.

        Example:
            >>> TreePath.parse("a.b.c").depth
            3
        """
        if isinstance(value, TreePath):
            return cls(value._segments)
        value = str(value)
        return cls(value.split(SEPARATOR) if value else ())

    @classmethod
    def from_segments(cls, *segments: Any) -> Self:
        """Create path from individual segments.

        Example:
            >>> TreePath.from_segments(1, 4, 9)
            TreePath('1.4.9')
        """
        return cls(to_segment(s) for s in segments)

    @property
    def value(self) -> str:
        """Stored string representation."""
        return self._value

    @property
    def segments(self) -> tuple[str, ...]:
        """Ordered segments, root first."""
        return self._segments

    @property
    def depth(self) -> int:
        """Number of segments (1 for root nodes, 0 for the empty path)."""
        return len(self._segments)

    @property
    def root(self) -> str:
        """First segment, or empty string for the empty path."""
        return self._segments[0] if self._segments else ""

    @property
    def leaf(self) -> str:
        """Last segment (the node's own path source)."""
        return self._segments[-1] if self._segments else ""

    @property
    def parent(self) -> TreePath | None:
        """Parent path, None for root and empty paths.

        Example:
            >>> TreePath.parse("a.b.c").parent
            TreePath('a.b')
            >>> TreePath.parse("a").parent is None
            True
        """
        if self.depth <= 1:
            return None
        return TreePath(self._segments[:-1])

    @property
    def ancestors(self) -> list[TreePath]:
        """All ancestor paths ordered root to parent (excludes self)."""
        return [TreePath(self._segments[:i]) for i in range(1, self.depth)]

    def contains(self, source: Any) -> bool:
        """Check whether ``source`` is one of the segments.

        Used for ancestor tests: a node is an ancestor of (or equal to) the
        owner of this path iff its path source is contained.
        """
        return str(source) in self._segments

    def child(self, source: Any) -> TreePath:
        """Create child path by appending a segment."""
        return TreePath.from_source(source, parent=self)

    def subpath(self, start: int, end: int | None = None) -> TreePath:
        """Extract segments from start to end indices.

        Example:
            >>> TreePath.parse("a.b.c.d").subpath(1, 3)
            TreePath('b.c')
        """
        return TreePath(self._segments[start:end])

    def is_ancestor_of(self, other: str | TreePath) -> bool:
        """Check if this path is a proper ancestor of ``other``."""
        other_path = TreePath.parse(other)
        if self.depth == 0 or self.depth >= other_path.depth:
            return False
        return other_path._segments[: self.depth] == self._segments

    def is_descendant_of(self, other: str | TreePath) -> bool:
        """Check if this path is a proper descendant of ``other``."""
        return TreePath.parse(other).is_ancestor_of(self)

    def is_self_or_descendant_of(self, other: str | TreePath) -> bool:
        """Check if this path equals or extends ``other``."""
        other_path = TreePath.parse(other)
        return other_path.depth > 0 and self._segments[: other_path.depth] == other_path._segments

    def common_ancestor(self, other: str | TreePath) -> TreePath | None:
        """Longest shared prefix path, None if the paths share no root.

        Example:
            >>> TreePath.parse("a.b.c").common_ancestor("a.b.d")
            TreePath('a.b')
        """
        other_path = TreePath.parse(other)
        common: list[str] = []
        for a, b in zip(self._segments, other_path._segments, strict=False):
            if a != b:
                break
            common.append(a)
        return TreePath(common) if common else None

    def replace_prefix(self, old: str | TreePath, new: str | TreePath | None) -> TreePath:
        """Replace the leading ``old`` segments with ``new``.

        This is the Python-side rewrite rule the subtree rebuild applies in
        SQL. ``old`` may be any length, ``new`` may be empty/None (the node
        becomes a root).

        Raises:
            ValueError: If this path does not start with ``old``

        Example:
            >>> TreePath.parse("a.b.c.d").replace_prefix("a.b", "x")
            TreePath('x.c.d')
            >>> TreePath.parse("a.b.c").replace_prefix("a", None)
            TreePath('b.c')
        """
        old_path = TreePath.parse(old)
        new_path = TreePath.parse(new) if new is not None else TreePath()
        if self._segments[: old_path.depth] != old_path._segments:
            raise ValueError(f"{self!r} does not start with {old_path!r}")
        return TreePath((*new_path._segments, *self._segments[old_path.depth :]))

    def __truediv__(self, other: Any) -> TreePath:
        """Path concatenation using / operator."""
        return self.child(other)

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    def __len__(self) -> int:
        return self.depth

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"TreePath({self._value!r})"

    def __eq__(self, other: object) -> bool:
        """Check equality with another path or its stored string."""
        if isinstance(other, TreePath):
            return self._segments == other._segments
        if isinstance(other, str):
            return self._value == other
        return False

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._segments)


__all__ = [
    "SEPARATOR",
    "TreePath",
    "to_segment",
]
