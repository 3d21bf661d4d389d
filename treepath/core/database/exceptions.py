"""Tree and repository exceptions.

Custom exceptions for path maintenance that carry structured context
instead of surfacing raw SQLAlchemy or ValueError failures. Every error
aborts the triggering create/update; none of them is logged and swallowed.
"""
from __future__ import annotations

from typing import Any


class TreeError(Exception):
    """Base exception for materialized-path operations.

    Raised when a path cannot be built, validated or rewritten.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize tree error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class InvalidSegmentError(TreeError, ValueError):
    """A path-source value cannot be used as a path segment.

    Raised at path construction when the value is empty or contains the
    reserved delimiter (or, for ltree storage, characters ltree rejects).
    """

    def __init__(self, segment: Any, reason: str):
        self.segment = segment
        self.reason = reason
        super().__init__(
            f"Invalid path segment {segment!r}: {reason}",
            details={"segment": segment},
        )


class TreeDepthError(TreeError):
    """Path would exceed the configured maximum depth."""

    def __init__(self, depth: int, max_depth: int):
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(
            f"Path depth {depth} exceeds maximum of {max_depth}",
            details={"depth": depth, "max_depth": max_depth},
        )


class MissingParentError(TreeError):
    """Parent of a non-root node cannot be loaded, or has no path.

    Attributes:
        model_name: Name of the node's model class
        parent_id: The parent reference that could not be resolved
    """

    def __init__(self, model_name: str, parent_id: Any, reason: str = "not found"):
        self.model_name = model_name
        self.parent_id = parent_id
        super().__init__(
            f"Cannot build path for {model_name}: parent {parent_id!r} {reason}",
            details={"model": model_name, "parent_id": parent_id},
        )


class CircularReferenceError(TreeError):
    """New parent is the node itself or one of its descendants.

    Attributes:
        model_name: Name of the node's model class
        identity: Primary key of the node being moved
        parent_id: The rejected parent reference
    """

    def __init__(self, model_name: str, identity: Any, parent_id: Any):
        self.model_name = model_name
        self.identity = identity
        self.parent_id = parent_id
        super().__init__(
            f"Circular reference detected on {model_name} {identity!r}",
            details={"model": model_name, "id": identity, "parent_id": parent_id},
        )

    def __repr__(self) -> str:
        """Repr for debugging."""
        return (
            f"CircularReferenceError(model={self.model_name!r}, "
            f"identity={self.identity!r}, parent_id={self.parent_id!r})"
        )


class UnsupportedBackendError(TreeError):
    """Active connection is neither a hierarchical-label nor a plain-text backend."""

    def __init__(self, dialect_name: str):
        self.dialect_name = dialect_name
        super().__init__(
            f"No path codec for database dialect {dialect_name!r}",
            details={"dialect": dialect_name},
        )


class NotFoundError(TreeError):
    """Entity not found in database.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        super().__init__(
            f"{model_name} not found with {id_str}",
            details={"model": model_name, **identifier},
        )

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class InvalidFilterError(TreeError):
    """Invalid filter or query parameters.

    Raised when a depth operator or ordering direction is not supported.
    """

    def __init__(self, message: str, filter_name: str | None = None):
        details = {"filter": filter_name} if filter_name else {}
        super().__init__(message, details=details)


__all__ = [
    "CircularReferenceError",
    "InvalidFilterError",
    "InvalidSegmentError",
    "MissingParentError",
    "NotFoundError",
    "TreeDepthError",
    "TreeError",
    "UnsupportedBackendError",
]
