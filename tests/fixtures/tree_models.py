"""Tree models shared by the test suite.

Each model exercises one path assignment strategy:
    - Category: auto-increment integer key as path source (post-identity)
    - Page: slug as path source (pre-identity)
    - Folder: UUID key with a Python default (pre-identity, evaluated eagerly)
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from treepath.core.database.base import Base, IntegerPKMixin, UUIDPKMixin
from treepath.core.database.hierarchy import TreeMixin, register_tree_events


class Category(Base, IntegerPKMixin, TreeMixin):
    """Tree keyed by auto-increment id."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100))


class Page(Base, IntegerPKMixin, TreeMixin):
    """Tree keyed by slug."""

    __tablename__ = "pages"
    __path_source__ = "slug"

    slug: Mapped[str] = mapped_column(String(100), unique=True)
    title: Mapped[str] = mapped_column(String(200), default="")


class Folder(Base, UUIDPKMixin, TreeMixin):
    """Tree keyed by UUID."""

    __tablename__ = "folders"

    name: Mapped[str] = mapped_column(String(100))


register_tree_events(Base)
