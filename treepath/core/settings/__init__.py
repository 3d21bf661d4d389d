"""Pydantic Settings v2 configuration for treepath.

Import settings via the cached loader:
    from treepath.core.settings import get_tree_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables (TREE_*)
    3. .env file (development only)
"""

from __future__ import annotations

from .loader import get_tree_settings
from .tree import BackendName, TreeSettings

__all__ = [
    "BackendName",
    "TreeSettings",
    "get_tree_settings",
]
