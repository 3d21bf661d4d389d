"""SQLAlchemy instance inspection utilities for change tracking.

These utilities use SQLAlchemy's inspection API to detect changes and read
loaded state without triggering database operations. The tree lifecycle
hooks run inside a flush, where a lazy load must never be emitted, so they
read parent references, paths and relationships exclusively through here.

Example:
    >>> node = await session.get(Category, 1)
    >>> node.parent_id = 7
    >>> has_changes(node, "parent_id")
    True
    >>> get_loaded_value(node, "path")
    TreePath('3.5')
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect

if TYPE_CHECKING:
    from sqlalchemy.orm import InstanceState
    from sqlalchemy.orm.attributes import History

_MISSING = object()


def has_changes(instance: Any, *attrs: str) -> bool:
    """Check if ORM instance has pending changes.

    Args:
        instance: SQLAlchemy ORM model instance
        *attrs: Optional attribute names to check. If empty, checks all.

    Returns:
        True if instance has pending changes, False otherwise.

    Note:
        - Pending (new) and deleted instances always report changes
        - Does not trigger lazy loading
    """
    state: InstanceState[Any] = sa_inspect(instance)

    if state.pending or state.deleted:
        return True

    if not attrs:
        return state.modified

    for attr_name in attrs:
        if attr_name not in state.dict:
            continue

        attr_state = state.attrs.get(attr_name)
        if attr_state is None:
            continue

        history: History = attr_state.history
        if history.has_changes():
            return True

    return False


def get_loaded_value(instance: Any, attr: str, default: Any = None) -> Any:
    """Read an attribute's current value only if it is already loaded.

    Args:
        instance: SQLAlchemy ORM model instance
        attr: Attribute name
        default: Returned when the attribute is not loaded

    Returns:
        The in-memory value, or ``default``
    """
    state: InstanceState[Any] = sa_inspect(instance)
    value = state.dict.get(attr, _MISSING)
    return default if value is _MISSING else value


def get_session(instance: Any) -> Any:
    """Return the Session the instance is attached to, or None."""
    state: InstanceState[Any] = sa_inspect(instance)
    return state.session


__all__ = [
    "get_loaded_value",
    "get_session",
    "has_changes",
]
