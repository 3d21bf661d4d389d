"""Integration tests for path assignment, subtree rebuilds and cycle rejection.

Every test runs against the text backend (SQLite) and, when configured,
the ltree backend (PostgreSQL) with identical expectations.
"""

from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tests.fixtures.tree_models import Category, Folder, Page
from treepath.core.database.exceptions import (
    CircularReferenceError,
    InvalidSegmentError,
    MissingParentError,
    TreeDepthError,
)
from treepath.core.database.hierarchy.path import TreePath


async def stored_paths(session: AsyncSession, model: type[Any]) -> dict[Any, str]:
    """Read key -> path straight from the table."""
    result = await session.execute(select(model.id, model.path))
    return {key: str(path) if path else "" for key, path in result}


def p(*nodes: Category) -> str:
    return ".".join(str(node.id) for node in nodes)


@pytest.fixture
async def chain(session: AsyncSession) -> tuple[Category, Category, Category]:
    """A -> B -> C."""
    a = Category(name="A")
    b = Category(name="B", parent=a)
    c = Category(name="C", parent=b)
    session.add_all([a, b, c])
    await session.commit()
    return a, b, c


@pytest.fixture
async def forest(session: AsyncSession) -> dict[str, Category]:
    """Two trees: r1 -> x -> y -> z and r2 -> w."""
    r1 = Category(name="r1")
    x = Category(name="x", parent=r1)
    y = Category(name="y", parent=x)
    z = Category(name="z", parent=y)
    r2 = Category(name="r2")
    w = Category(name="w", parent=r2)
    session.add_all([r1, x, y, z, r2, w])
    await session.commit()
    return {"r1": r1, "x": x, "y": y, "z": z, "r2": r2, "w": w}


# ============================================================================
# Path assignment on insert
# ============================================================================


@pytest.mark.asyncio
async def test_root_path_is_own_identity(session: AsyncSession):
    """Test that a root's path is its own path source.

    Validates:
    - path is set after commit (post-identity assignment)
    - stored value equals the in-memory value
    """
    root = Category(name="root")
    session.add(root)
    await session.commit()

    assert root.path == TreePath.from_source(root.id)
    assert (await stored_paths(session, Category))[root.id] == str(root.id)


@pytest.mark.asyncio
async def test_child_paths_extend_parent_paths(session: AsyncSession, chain):
    """Test that path(child) = path(parent) ++ [source(child)] through three levels."""
    a, b, c = chain

    assert a.path == p(a)
    assert b.path == p(a, b)
    assert c.path == p(a, b, c)
    assert await stored_paths(session, Category) == {
        a.id: p(a),
        b.id: p(a, b),
        c.id: p(a, b, c),
    }


@pytest.mark.asyncio
async def test_parent_set_by_key_only(session: AsyncSession, chain):
    """Test that a parent referenced only by key is read from the database."""
    a, b, _ = chain

    child = Category(name="D", parent_id=b.id)
    session.add(child)
    await session.commit()

    assert child.path == p(a, b, child)


@pytest.mark.asyncio
async def test_slug_paths_are_built_before_insert(session: AsyncSession):
    docs = Page(slug="docs")
    api = Page(slug="api", parent=docs)
    v2 = Page(slug="v2", parent=api)
    session.add_all([docs, api, v2])
    await session.commit()

    assert docs.path == "docs"
    assert api.path == "docs.api"
    assert v2.path == "docs.api.v2"


@pytest.mark.asyncio
async def test_uuid_key_is_generated_for_the_path(session: AsyncSession):
    """Test that a UUID default is evaluated before the INSERT so it can be the path source.

    Validates:
    - the key is available in before_insert
    - the stored path uses the same key
    """
    root = Folder(name="root")
    child = Folder(name="child", parent=root)
    session.add_all([root, child])
    await session.commit()

    assert root.id is not None
    assert root.path == str(root.id)
    assert child.path == f"{root.id}.{child.id}"


@pytest.mark.asyncio
async def test_invalid_source_aborts_insert(session: AsyncSession):
    session.add(Page(slug="v1.0"))

    with pytest.raises(InvalidSegmentError):
        await session.commit()
    await session.rollback()

    assert await session.scalar(select(func.count()).select_from(Page)) == 0


@pytest.mark.asyncio
async def test_missing_parent_row_aborts_insert(session: AsyncSession):
    session.add(Page(slug="orphan", parent_id=999))

    with pytest.raises(MissingParentError) as exc_info:
        await session.commit()
    await session.rollback()

    assert exc_info.value.parent_id == 999


@pytest.mark.asyncio
async def test_parent_without_path_aborts_insert(session: AsyncSession):
    """Test that a parent row whose path was never assigned is rejected."""
    result = await session.execute(insert(Page.__table__).values(slug="raw", title=""))
    raw_id = result.inserted_primary_key[0]
    await session.commit()

    session.add(Page(slug="child", parent_id=raw_id))

    with pytest.raises(MissingParentError, match="has no path"):
        await session.commit()
    await session.rollback()


@pytest.mark.asyncio
async def test_existing_path_is_kept(session: AsyncSession):
    """Test that assignment is a no-op for a node that already has a path."""
    node = Category(name="manual", path=TreePath.parse("manual"))
    session.add(node)
    await session.commit()

    assert node.path == "manual"
    assert (await stored_paths(session, Category))[node.id] == "manual"


@pytest.mark.asyncio
async def test_unrelated_update_keeps_paths(session: AsyncSession, chain):
    a, b, c = chain
    before = await stored_paths(session, Category)

    b.name = "renamed"
    await session.commit()

    assert await stored_paths(session, Category) == before
    assert b.path == p(a, b)


@pytest.mark.asyncio
async def test_max_depth_on_insert(session: AsyncSession, tree_settings):
    tree_settings(max_depth=2)
    a = Page(slug="a")
    b = Page(slug="b", parent=a)
    session.add_all([a, b])
    await session.commit()

    session.add(Page(slug="c", parent=b))
    with pytest.raises(TreeDepthError):
        await session.commit()
    await session.rollback()


# ============================================================================
# Subtree rebuild on move
# ============================================================================


@pytest.mark.asyncio
async def test_make_middle_node_a_root(session: AsyncSession, chain):
    """Test the A / A.B / A.B.C scenario: B becomes a root.

    Validates:
    - B's path is its own source
    - C's path is B.C
    - A is untouched
    """
    a, b, c = chain

    b.parent = None
    await session.commit()

    assert await stored_paths(session, Category) == {
        a.id: p(a),
        b.id: p(b),
        c.id: p(b, c),
    }
    assert b.path == p(b)
    assert c.path == p(b, c)


@pytest.mark.asyncio
async def test_move_across_several_levels(session: AsyncSession, forest):
    """Test that the whole old parent prefix is replaced, whatever its length.

    Validates:
    - y (depth 3) moves under w (depth 2): y and z are rewritten
    - depth of every moved row changes by depth(new) - depth(old)
    - rows outside the subtree keep their paths
    """
    r1, x, y, z, r2, w = (forest[k] for k in ("r1", "x", "y", "z", "r2", "w"))
    old_depth = y.path.depth

    y.parent_id = w.id
    await session.commit()

    paths = await stored_paths(session, Category)
    assert paths[y.id] == p(r2, w, y)
    assert paths[z.id] == p(r2, w, y, z)
    assert paths[x.id] == p(r1, x)
    assert paths[w.id] == p(r2, w)

    delta = TreePath.parse(paths[y.id]).depth - old_depth
    assert TreePath.parse(paths[z.id]).depth == 4 + delta


@pytest.mark.asyncio
async def test_move_deep_node_under_root(session: AsyncSession, forest):
    r1, z = forest["r1"], forest["z"]

    z.parent_id = r1.id
    await session.commit()

    assert (await stored_paths(session, Category))[z.id] == p(r1, z)
    assert z.path == p(r1, z)


@pytest.mark.asyncio
async def test_move_subtree_to_root(session: AsyncSession, forest):
    x, y, z = forest["x"], forest["y"], forest["z"]

    x.parent_id = None
    await session.commit()

    paths = await stored_paths(session, Category)
    assert paths[x.id] == p(x)
    assert paths[y.id] == p(x, y)
    assert paths[z.id] == p(x, y, z)


@pytest.mark.asyncio
async def test_move_root_under_other_tree(session: AsyncSession, forest):
    r1, x, y, z, r2 = (forest[k] for k in ("r1", "x", "y", "z", "r2"))

    r1.parent = r2
    await session.commit()

    paths = await stored_paths(session, Category)
    assert paths[r1.id] == p(r2, r1)
    assert paths[z.id] == p(r2, r1, x, y, z)


@pytest.mark.asyncio
async def test_move_via_relationship(session: AsyncSession, chain):
    a, b, c = chain

    c.parent = a
    await session.commit()

    assert c.path == p(a, c)
    assert (await stored_paths(session, Category))[c.id] == p(a, c)


@pytest.mark.asyncio
async def test_move_slug_tree(session: AsyncSession):
    docs = Page(slug="docs")
    guide = Page(slug="guide", parent=docs)
    intro = Page(slug="intro", parent=guide)
    blog = Page(slug="blog")
    session.add_all([docs, guide, intro, blog])
    await session.commit()

    guide.parent = blog
    await session.commit()

    assert guide.path == "blog.guide"
    assert intro.path == "blog.guide.intro"
    result = await session.execute(select(Page.slug, Page.path).order_by(Page.slug))
    assert {slug: str(path) for slug, path in result} == {
        "blog": "blog",
        "docs": "docs",
        "guide": "blog.guide",
        "intro": "blog.guide.intro",
    }


@pytest.mark.asyncio
async def test_move_leaves_tree_differing_only_in_case(session: AsyncSession, mixed_case_pages):
    """Test that rebuilding tree "a" never touches tree "A".

    Validates:
    - the moved subtree is rewritten
    - rows under a root whose slug differs only in case keep their paths
    """
    lower, target = mixed_case_pages["a"], mixed_case_pages["z"]

    lower.parent_id = target.id
    await session.commit()

    result = await session.execute(select(Page.slug, Page.path))
    assert {slug: str(path) for slug, path in result} == {
        "a": "z.a",
        "b": "z.a.b",
        "A": "A",
        "x": "A.x",
        "z": "z",
    }
    assert mixed_case_pages["x"].path == "A.x"


@pytest.mark.asyncio
async def test_loaded_descendants_are_synchronized(session: AsyncSession, forest):
    """Test that loaded instances in the moved subtree see their new path without a refresh."""
    y, z, w, r2 = forest["y"], forest["z"], forest["w"], forest["r2"]

    y.parent_id = w.id
    await session.commit()

    assert z.path == p(r2, w, y, z)


@pytest.mark.asyncio
async def test_loaded_descendants_left_alone_when_disabled(
    session: AsyncSession, forest, tree_settings
):
    tree_settings(sync_loaded_nodes=False)
    r1, x, y, z, r2, w = (forest[k] for k in ("r1", "x", "y", "z", "r2", "w"))

    y.parent_id = w.id
    await session.commit()

    assert y.path == p(r2, w, y)
    assert z.path == p(r1, x, y, z)

    await session.refresh(z)
    assert z.path == p(r2, w, y, z)


@pytest.mark.asyncio
async def test_move_respects_max_depth(session: AsyncSession, forest, tree_settings):
    tree_settings(max_depth=3)
    z, w = forest["z"], forest["w"]
    before = await stored_paths(session, Category)

    # z (depth 4) is already beyond the limit; moving it under w gives depth 3
    z.parent_id = w.id
    await session.commit()
    assert z.path.depth == 3

    y = forest["y"]
    y_id = y.id
    y.parent_id = z.id
    with pytest.raises(TreeDepthError):
        await session.commit()
    await session.rollback()

    assert before[y_id] == (await stored_paths(session, Category))[y_id]


@pytest.mark.asyncio
async def test_move_to_missing_parent(session: AsyncSession, chain):
    _, b, _ = chain

    b.parent_id = 999
    with pytest.raises(MissingParentError):
        await session.commit()
    await session.rollback()


# ============================================================================
# Circular references
# ============================================================================


@pytest.mark.asyncio
async def test_root_under_own_descendant_is_rejected(session: AsyncSession, chain):
    """Test that A.parent = C raises and leaves the tree unchanged after rollback.

    Validates:
    - CircularReferenceError carries the model name and identity
    - parent_id of A is still NULL after rollback
    - every stored path is unchanged
    """
    a, b, c = chain
    a_id, c_id = a.id, c.id
    before = await stored_paths(session, Category)

    a.parent_id = c_id
    with pytest.raises(CircularReferenceError) as exc_info:
        await session.commit()
    await session.rollback()

    assert exc_info.value.model_name == "Category"
    assert exc_info.value.identity == a_id
    assert exc_info.value.parent_id == c_id

    await session.refresh(a)
    assert a.parent_id is None
    assert await stored_paths(session, Category) == before


@pytest.mark.asyncio
async def test_node_under_itself_is_rejected(session: AsyncSession, chain):
    _, b, _ = chain

    b.parent_id = b.id
    with pytest.raises(CircularReferenceError):
        await session.commit()
    await session.rollback()


@pytest.mark.asyncio
async def test_node_under_own_child_is_rejected(session: AsyncSession, chain):
    a, b, c = chain
    a_id = a.id
    expected = p(a, b)

    b.parent_id = c.id
    with pytest.raises(CircularReferenceError):
        await session.commit()
    await session.rollback()

    await session.refresh(b)
    assert b.parent_id == a_id
    assert b.path == expected


@pytest.mark.asyncio
async def test_rejected_move_can_be_retried(session: AsyncSession, forest):
    x, z = forest["x"], forest["z"]

    x.parent_id = z.id
    with pytest.raises(CircularReferenceError):
        await session.commit()
    await session.rollback()

    for node in forest.values():
        await session.refresh(node)
    r1, r2, w = forest["r1"], forest["r2"], forest["w"]

    x.parent_id = w.id
    await session.commit()

    paths = await stored_paths(session, Category)
    assert paths[x.id] == p(r2, w, x)
    assert paths[z.id] == p(r2, w, x, forest["y"], z)
    assert paths[r1.id] == p(r1)


@pytest.mark.asyncio
async def test_core_update_is_reported_by_audit(session: AsyncSession, chain):
    """Core UPDATE statements bypass the hooks; the audit reports what they break."""
    from treepath.core.database.hierarchy.integrity import ProblemKind, find_path_problems

    a, b, c = chain
    await session.execute(
        update(Category.__table__).where(Category.__table__.c.id == c.id).values(parent_id=a.id)
    )

    connection = await session.connection()
    problems = await connection.run_sync(find_path_problems, Category)

    assert [(problem.kind, problem.key) for problem in problems] == [
        (ProblemKind.WRONG_PATH, c.id)
    ]
