"""List of tree nodes with path-aware ordering and nesting."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Self

    from treepath.core.database.hierarchy.mixins import TreeMixin


def _depth(node: TreeMixin) -> int:
    return node.hierarchy_depth


def _path_key(node: TreeMixin) -> tuple[str, ...]:
    return node.path_segments


T = TypeVar("T", bound="TreeMixin")


class NodeCollection(list[T], Generic[T]):
    """List of nodes returned by tree queries.

    Sorting helpers are stable and return the collection itself so calls
    can be chained:

        >>> crumbs = (await node.get_ancestors(session)).sort_by_depth_desc().prepend(node)
    """

    def __init__(self, nodes: Iterable[T] = ()) -> None:
        super().__init__(nodes)

    def sort_by_depth(self) -> Self:
        """Order shallowest first, ties by path."""
        self.sort(key=lambda node: (_depth(node), _path_key(node)))
        return self

    def sort_by_depth_desc(self) -> Self:
        """Order deepest first, ties by path."""
        self.sort(key=lambda node: (-_depth(node), _path_key(node)))
        return self

    def prepend(self, node: T) -> Self:
        self.insert(0, node)
        return self

    def roots(self) -> NodeCollection[T]:
        """Nodes without a parent reference."""
        return NodeCollection(node for node in self if node.is_root)

    def keys(self) -> list[Any]:
        return [node.get_key() for node in self]

    def tree(self) -> dict[Any, NodeCollection[T]]:
        """Group nodes under their parent's key.

        Nodes whose parent is not part of the collection (including roots)
        are grouped under ``None``, so ``tree()[None]`` holds the top level
        and ``tree()[node.get_key()]`` the children of ``node``. Each group
        is ordered by path.

        Example:
            >>> nested = (await root.get_descendants(session, include_self=True)).tree()
            >>> [child.name for child in nested[root.id]]
            ['Laptops', 'Phones']
        """
        present = {node.get_key() for node in self}
        grouped: dict[Any, NodeCollection[T]] = {None: NodeCollection()}
        for node in sorted(self, key=_path_key):
            parent_key = node.get_parent_key()
            bucket = parent_key if parent_key in present else None
            grouped.setdefault(bucket, NodeCollection()).append(node)
        return grouped


__all__ = ["NodeCollection"]
