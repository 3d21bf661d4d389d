"""Lifecycle hooks that keep materialized paths in step with ``parent_id``.

The hooks are SQLAlchemy mapper events and run inside the flush, on the
flush's Connection. They never use the Session (no lazy loads, no
autoflush): parents and stored paths are read with Core statements.

Insert:
    - pre-identity models (path source known before the INSERT) get their
      path in ``before_insert`` so it is part of the INSERT;
    - post-identity models (auto-increment integer key used as path source)
      are inserted without a path and receive it in ``after_insert`` with
      one targeted UPDATE.

Update (only when ``parent_id`` changed):
    - ``before_update`` rejects circular references and captures the
      stored path; raising here aborts the flush before the row is written;
    - ``after_update`` rewrites the node's and its descendants' paths in
      one bulk statement.

Call ``register_tree_events(Base)`` once after all models are defined.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy import inspect as sa_inspect

from treepath.core.database.hierarchy.integrity import detect_circular_reference
from treepath.core.database.hierarchy.lookup import load_parent_path, load_path
from treepath.core.database.hierarchy.mixins import TreeMixin
from treepath.core.database.hierarchy.rebuild import rebuild_subtree, write_path
from treepath.core.database.inspection import has_changes

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.orm import Mapper

logger = logging.getLogger(__name__)

# InstanceState.info key holding the path captured before a move
OLD_PATH_KEY = "treepath.old_path"


def _ensure_path_source(mapper: Mapper[Any], target: TreeMixin) -> None:
    """Evaluate a Python-side default of the path source before the INSERT."""
    attr = target.path_source_attribute()
    if getattr(target, attr) is not None:
        return

    column = mapper.get_property(attr).columns[0]
    default = column.default
    if default is None:
        return
    if default.is_callable:
        value = default.arg(None)
    elif default.is_scalar:
        value = default.arg
    else:
        return
    setattr(target, attr, value)


def assign_path_before_insert(mapper: Mapper[Any], connection: Connection, target: TreeMixin) -> None:
    """Build the path of a new pre-identity node so it is inserted with it."""
    if target.has_path():
        return

    _ensure_path_source(mapper, target)
    parent_path = load_parent_path(connection, target)
    setattr(target, target.__path_column__, target.build_path(parent_path))


def assign_path_after_insert(mapper: Mapper[Any], connection: Connection, target: TreeMixin) -> None:
    """Build and persist the path of a new post-identity node."""
    if target.has_path():
        return

    parent_path = load_parent_path(connection, target)
    write_path(connection, target, target.build_path(parent_path))


def validate_move_before_update(mapper: Mapper[Any], connection: Connection, target: TreeMixin) -> None:
    """Reject circular parent references and capture the stored path.

    Raises:
        CircularReferenceError: If the new parent is the node or a descendant
        MissingParentError: If the new parent does not exist or has no path
        TreeDepthError: If the moved node would exceed the configured max depth
    """
    if not has_changes(target, target.__parent_column__):
        return

    detect_circular_reference(connection, target)

    # fail before the row is written if the new path cannot be built
    target.build_path(load_parent_path(connection, target, prefer_loaded=False))

    sa_inspect(target).info[OLD_PATH_KEY] = load_path(connection, type(target), target.get_key())


def rebuild_paths_after_update(mapper: Mapper[Any], connection: Connection, target: TreeMixin) -> None:
    """Rewrite the subtree of a node whose parent changed."""
    info = sa_inspect(target).info
    if OLD_PATH_KEY not in info:
        return

    old_path = info.pop(OLD_PATH_KEY)
    if old_path is None:
        parent_path = load_parent_path(connection, target, prefer_loaded=False)
        write_path(connection, target, target.build_path(parent_path))
        return

    rebuild_subtree(connection, target, old_path)


_LISTENERS: dict[str, Any] = {
    "before_update": validate_move_before_update,
    "after_update": rebuild_paths_after_update,
}


def _register_model(model: type[TreeMixin]) -> None:
    if model.assigns_path_after_insert():
        listeners = {"after_insert": assign_path_after_insert, **_LISTENERS}
    else:
        listeners = {"before_insert": assign_path_before_insert, **_LISTENERS}

    registered = False
    for identifier, listener in listeners.items():
        if not event.contains(model, identifier, listener):
            event.listen(model, identifier, listener)
            registered = True

    if registered:
        logger.debug(
            "Registered tree events for %s",
            model.__name__,
            extra={"post_identity": model.assigns_path_after_insert()},
        )


def register_tree_events(target: type) -> None:
    """Register path maintenance hooks.

    Args:
        target: A TreeMixin model, or a declarative base whose registry is
            walked for every TreeMixin model

    Example:
        from treepath import Base, register_tree_events

        # After defining all models
        register_tree_events(Base)

    Note:
        Registration is idempotent; calling it again for the same model
        does not attach the hooks twice.
    """
    if issubclass(target, TreeMixin) and sa_inspect(target, raiseerr=False) is not None:
        _register_model(target)
        return

    registry = getattr(target, "registry", None)
    if registry is None:
        raise TypeError(f"{target!r} is neither a tree model nor a declarative base")

    for mapper in registry.mappers:
        model_class = mapper.class_
        if issubclass(model_class, TreeMixin):
            _register_model(model_class)


__all__ = [
    "OLD_PATH_KEY",
    "assign_path_after_insert",
    "assign_path_before_insert",
    "rebuild_paths_after_update",
    "register_tree_events",
    "validate_move_before_update",
]
