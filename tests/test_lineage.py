"""
tests.test_lineage

Relation bookkeeping and lineage reconstruction against a real (in-memory) database.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_settings
from portfolio_ops.db.init_db import init_db
from portfolio_ops.db.models import RelationKind
from portfolio_ops.db.repositories.relations import RelationRepo
from portfolio_ops.db.session import create_engine, create_sessionmaker
from portfolio_ops.images import lineage
from portfolio_ops.images.lineage import LineageNode

UID = "user-1"


@pytest_asyncio.fixture
async def session() -> AsyncIterator[AsyncSession]:
    engine = create_engine(make_settings())
    await init_db(engine)
    try:
        async with create_sessionmaker(engine)() as s:
            yield s
    finally:
        await engine.dispose()


async def _chain(repo: RelationRepo, *paths: str) -> None:
    for source, target in zip(paths, paths[1:]):
        await repo.record(
            user_id=UID, source_path=source, target_path=target, kind=RelationKind.optimized
        )


@pytest.mark.asyncio
async def test_walk_returns_root_first(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await _chain(repo, "gallery/a.png", "n8n/a.jpg", "n8n/a-n8n.png")

    assert await lineage.walk(repo, user_id=UID, start_path="n8n/a-n8n.png") == [
        "gallery/a.png",
        "n8n/a.jpg",
        "n8n/a-n8n.png",
    ]
    assert await lineage.walk(repo, user_id=UID, start_path="gallery/a.png") == ["gallery/a.png"]
    assert await lineage.walk(repo, user_id=UID, start_path=None) == []


@pytest.mark.asyncio
async def test_walk_is_scoped_to_the_user(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await repo.record(
        user_id="someone-else", source_path="x", target_path="y", kind=RelationKind.optimized
    )
    assert await lineage.walk(repo, user_id=UID, start_path="y") == ["y"]


@pytest.mark.asyncio
async def test_walk_stops_on_cycles(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await _chain(repo, "a", "b", "a")
    assert await lineage.walk(repo, user_id=UID, start_path="b") == ["a", "b"]


@pytest.mark.asyncio
async def test_walk_is_bounded(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    paths = [f"p{i}" for i in range(12)]
    await _chain(repo, *paths)

    chain = await lineage.walk(repo, user_id=UID, start_path="p11")
    assert len(chain) == lineage.MAX_HOPS
    assert chain[0] == "p4"
    assert chain[-1] == "p11"


@pytest.mark.asyncio
async def test_rerecording_an_edge_makes_it_the_latest_parent(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await repo.record(user_id=UID, source_path="x", target_path="c", kind=RelationKind.optimized)
    await repo.record(user_id=UID, source_path="y", target_path="c", kind=RelationKind.optimized)
    assert (await repo.latest_parent(user_id=UID, target_path="c")).source_path == "y"

    edge = await repo.record(
        user_id=UID, source_path="x", target_path="c", kind=RelationKind.n8n_response
    )
    assert edge.kind is RelationKind.n8n_response
    assert (await repo.latest_parent(user_id=UID, target_path="c")).source_path == "x"


@pytest.mark.asyncio
async def test_forget_removes_edges_on_both_sides(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await _chain(repo, "a", "b", "c")

    assert await repo.forget(user_id=UID, path="b") == 2
    assert await lineage.walk(repo, user_id=UID, start_path="c") == ["c"]


@pytest.mark.asyncio
async def test_latest_child_filters_by_prefix(session: AsyncSession) -> None:
    repo = RelationRepo(session)
    await repo.record(
        user_id=UID, source_path="g/a.png", target_path="opt/a.webp", kind=RelationKind.optimized
    )
    await repo.record(
        user_id=UID,
        source_path="g/a.png",
        target_path="n8n/a.jpg",
        kind=RelationKind.n8n_compatible,
    )

    child = await repo.latest_child(user_id=UID, source_path="g/a.png", target_prefix="n8n/")
    assert child is not None and child.target_path == "n8n/a.jpg"
    assert await repo.latest_child(user_id=UID, source_path="g/a.png", target_prefix="x/") is None


@pytest.mark.parametrize(
    ("collection", "source", "is_current", "label"),
    [
        ("gallery", None, True, "optimized"),
        ("optimized", None, False, "optimized"),
        ("gallery", None, False, "gallery"),
        ("n8n", "n8n-compatible", False, "n8n-compatible format"),
        ("n8n", "n8n-response", False, "n8n generated"),
        ("n8n", None, False, "n8n"),
        ("original", None, False, "original"),
        ("unknown", None, False, "file"),
    ],
)
def test_step_label(collection: str, source: str | None, is_current: bool, label: str) -> None:
    got = lineage.step_label(collection, source, is_current=is_current)  # type: ignore[arg-type]
    assert got == label


def _node(path: str, size: int | None, collection: str = "gallery") -> LineageNode:
    return LineageNode(
        path=path,
        name=path,
        content_type="image/png",
        size_bytes=size,
        download_url=None,
        collection=collection,  # type: ignore[arg-type]
        metadata_source=None,
        step_label=collection,
        is_current=False,
    )


def test_transitions_between_consecutive_nodes() -> None:
    transitions = lineage.build_transitions(
        [_node("a", 1000), _node("b", 1200, "n8n"), _node("c", 300, "optimized")]
    )
    assert [(t["fromPath"], t["toPath"]) for t in transitions] == [("a", "b"), ("b", "c")]
    # Growth counts as zero savings.
    assert transitions[0]["savedBytes"] == 0
    assert transitions[0]["savedPercent"] == 0.0
    assert transitions[1]["savedBytes"] == 900
    assert transitions[1]["savedPercent"] == 75.0


def test_saved_percent_needs_a_known_size() -> None:
    assert lineage.saved_percent(0, 0) is None
    assert lineage.saved_percent(3, 1) == 33.3
    assert lineage.build_transitions([_node("a", None), _node("b", 10)])[0]["savedPercent"] is None
    assert lineage.build_transitions([_node("only", 10)]) == []
