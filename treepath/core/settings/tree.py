"""Materialized-path tree settings.

Environment variables use TREE_ prefix.
Example: TREE_BACKEND=text, TREE_SYNC_LOADED_NODES=false, TREE_MAX_DEPTH=32
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendName = Literal["auto", "ltree", "text"]


class TreeSettings(BaseSettings):
    """Path maintenance configuration.

    Attributes:
        backend: Path storage backend. ``auto`` picks it from the connection
            dialect (PostgreSQL -> ltree, SQLite/MySQL/MariaDB -> text).
            ``ltree``/``text`` force one codec for every connection.
        sync_loaded_nodes: After a subtree rebuild, also update the ``path`` of
            nodes already loaded in the session identity map.
        max_depth: Optional hard limit on path depth.

    Example:
        settings = TreeSettings(backend="text")
        # PostgreSQL table storing paths as VARCHAR instead of LTREE
    """

    backend: BackendName = Field(
        default="auto",
        description="Path backend: auto (detect from dialect), ltree or text",
    )
    sync_loaded_nodes: bool = Field(
        default=True,
        description="Rewrite paths of loaded instances after a subtree rebuild",
    )
    max_depth: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Maximum number of segments allowed in a path (None = unlimited)",
    )

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
