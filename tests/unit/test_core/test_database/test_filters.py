"""Tests for tree statement filters and TreeMixin expression helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from tests.fixtures.tree_models import Category, Page
from treepath.core.database.exceptions import InvalidFilterError
from treepath.core.database.filters import (
    FilterGroup,
    LimitOffset,
    OrderByDepth,
    WhereAncestorOf,
    WhereDepth,
    WhereDescendantOf,
    WhereRoot,
    WhereSelfOrDescendantOf,
)
from treepath.core.database.hierarchy.path import TreePath


def to_sql(stmt, dialect=None):
    return str(stmt.compile(dialect=dialect or sqlite.dialect()))


# ============================================================================
# Mixin expression helpers
# ============================================================================


def test_where_root():
    sql = to_sql(select(Category).where(Category.where_root()))

    assert "categories.parent_id IS NULL" in sql


@pytest.mark.parametrize("operator", ["=", "<", "<=", ">", ">=", "<>", "!="])
def test_where_depth_accepts_operators(operator):
    sql = to_sql(select(Category).where(Category.where_depth(2, operator)))

    assert "length(categories.path)" in sql


@pytest.mark.parametrize("operator", ["==", "like", "", "=>"])
def test_where_depth_rejects_unknown_operator(operator):
    with pytest.raises(InvalidFilterError):
        Category.where_depth(2, operator)


def test_order_by_depth_directions():
    asc_sql = to_sql(select(Category).order_by(Category.order_by_depth()), postgresql.dialect())
    desc_sql = to_sql(
        select(Category).order_by(Category.order_by_depth("desc")), postgresql.dialect()
    )

    assert "ORDER BY nlevel(categories.path) ASC" in asc_sql
    assert "ORDER BY nlevel(categories.path) DESC" in desc_sql


def test_order_by_depth_rejects_unknown_direction():
    with pytest.raises(InvalidFilterError):
        Category.order_by_depth("sideways")


def test_where_self_or_descendant_of_accepts_node_and_path():
    node = Category(name="computers", path=TreePath.parse("1.2"))

    from_node = to_sql(select(Category).where(Category.where_self_or_descendant_of(node)))
    from_path = to_sql(select(Category).where(Category.where_self_or_descendant_of("1.2")))

    assert from_node == from_path
    assert "substr(categories.path, " in from_node


def test_node_without_path_cannot_be_filtered():
    with pytest.raises(ValueError):
        Category.where_self_or_descendant_of(Category(name="unsaved"))


# ============================================================================
# Statement filters
# ============================================================================


def test_where_root_filter():
    stmt = WhereRoot(Page).apply(select(Page))

    assert "pages.parent_id IS NULL" in to_sql(stmt)


def test_where_depth_filter_validates_operator():
    with pytest.raises(InvalidFilterError) as exc_info:
        WhereDepth(Category, 2, "~")

    assert exc_info.value.details == {"filter": "depth"}


def test_where_depth_filter():
    stmt = WhereDepth(Category, 3, "<=").apply(select(Category))

    assert "nlevel(categories.path) <=" in to_sql(stmt, postgresql.dialect())


def test_order_by_depth_filter():
    stmt = OrderByDepth(Category, "desc").apply(select(Category))

    assert "DESC" in to_sql(stmt)

    with pytest.raises(InvalidFilterError):
        OrderByDepth(Category, "up")


def test_node_filters_use_reference_node_model():
    node = Category(name="laptops", path=TreePath.parse("1.2.3"))

    descendants = WhereDescendantOf(node).apply(select(Category))
    ancestors = WhereAncestorOf(node).apply(select(Category))
    subtree = WhereSelfOrDescendantOf(node).apply(select(Category))

    assert "<@" in to_sql(descendants, postgresql.dialect())
    assert "@>" in to_sql(ancestors, postgresql.dialect())
    assert "substr(categories.path, " in to_sql(subtree)


def test_node_filter_with_path_requires_model():
    with pytest.raises(InvalidFilterError):
        WhereDescendantOf("1.2")

    stmt = WhereDescendantOf("1.2", Category).apply(select(Category))
    assert "categories.path" in to_sql(stmt)


def test_filter_group_and_pagination():
    """Test that grouped filters apply in sequence.

    Validates:
    - every filter's clause is present
    - pagination is applied
    """
    stmt = FilterGroup(
        [
            WhereDescendantOf("1", Category),
            WhereDepth(Category, 3),
            OrderByDepth(Category),
            LimitOffset(limit=10, offset=20),
        ]
    ).apply(select(Category))

    sql = to_sql(stmt, postgresql.dialect())

    assert "<@" in sql
    assert "nlevel(categories.path) =" in sql
    assert "ORDER BY nlevel(categories.path) ASC" in sql
    assert "LIMIT" in sql
    assert "OFFSET" in sql
