import math
import time
import pytest
from unittest.mock import patch

from cortexmem import Memory, Tracer
from cortexmem.core.config import ScoringWeights
from cortexmem.core.types import Waypoint
from conftest import TableAdapter, FailingAdapter, make_mem

pytestmark = pytest.mark.asyncio

# similarity heavy, so a strong vector match beats a lexical one
WEIGHTS = ScoringWeights(similarity=0.6, keyword=0.1, overlap=0.05, tag_match=0.05, waypoint=0.05, recency=0.15)

@pytest.fixture
def make(db_url):
    opened = []

    def _make(adapter, weights=WEIGHTS):
        m = Memory(db_url, adapter=adapter, weights=weights)
        opened.append(m)
        return m

    yield _make
    for m in opened:
        m.close()

@pytest.fixture
def corpus():
    return {
        "vector": make_mem("User practices music every evening", salience=0.9, embedding=[0.8, 0.6, 0.0]),
        "keyword": make_mem("User owns a guitar", salience=0.1, tags=["guitar"], embedding=[0.1, 0.0, math.sqrt(0.99)]),
        "unrelated": make_mem("User is allergic to peanuts", embedding=[0.0, 1.0, 0.0]),
    }

async def test_ranking_blends_vector_and_keyword_hits(make, corpus):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    res = await mem.search("guitar")
    assert [r.memory.id for r in res] == [corpus["vector"].id, corpus["keyword"].id]
    assert res[0].score == pytest.approx(0.6 * (1 - math.exp(-2.4)) + 0.15 * 0.95, abs=1e-3)
    assert res[0].score > res[1].score
    assert all(0.0 <= r.score <= 1.0 for r in res)
    assert res[1].path == [corpus["keyword"].id]

async def test_results_are_reinforced(make, corpus):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    await mem.search("guitar")
    assert (await mem.get(corpus["vector"].id)).salience == pytest.approx(1.0, abs=1e-3)
    assert (await mem.get(corpus["keyword"].id)).salience == pytest.approx(0.2, abs=1e-3)
    assert (await mem.get(corpus["unrelated"].id)).salience == pytest.approx(0.5)

async def test_reinforcement_failure_is_swallowed(make, corpus, monkeypatch):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    async def broken(*a, **kw):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(mem.store, "boost_salience", broken)
    res = await mem.search("guitar")
    assert len(res) == 2

async def test_candidate_failure_returns_empty(make, corpus, monkeypatch):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    async def broken(*a, **kw):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(mem.store, "search_by_embedding", broken)
    assert await mem.search("guitar") == []

async def test_results_are_cached_for_a_minute(make, corpus):
    adapter = TableAdapter({"guitar": [1.0, 0.0, 0.0]})
    mem = make(adapter)
    await mem.store.save_memories(list(corpus.values()))
    base = time.time()

    with patch("time.time", return_value=base):
        first = await mem.search("guitar", debug=True)
        second = await mem.search("guitar", debug=True)
    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]
    assert all(r.debug is not None for r in second)
    assert len(adapter.calls) == 1

    with patch("time.time", return_value=base + 61):
        third = await mem.search("guitar", debug=True)
    assert len(adapter.calls) == 2
    # reinforcement moved last_seen_at, so the recency input changed
    assert third[0].debug.recency != first[0].debug.recency

async def test_cache_key_includes_limit_and_filters(make, corpus):
    adapter = TableAdapter({"guitar": [1.0, 0.0, 0.0]})
    mem = make(adapter)
    await mem.store.save_memories(list(corpus.values()))

    assert len(await mem.search("guitar", limit=10)) == 2
    assert len(await mem.search("guitar", limit=1)) == 1
    assert len(await mem.search("guitar", limit=10, min_salience=0.5)) == 1
    assert len(adapter.calls) == 3

async def test_lexical_fallback_when_embedding_fails(make, corpus):
    mem = make(FailingAdapter())
    await mem.store.save_memories(list(corpus.values()))

    res = await mem.search("guitar")
    assert [r.memory.id for r in res] == [corpus["keyword"].id]
    assert res[0].score == 0.5
    assert res[0].path == [corpus["keyword"].id]
    assert (await mem.get(corpus["keyword"].id)).salience == pytest.approx(0.1)
    assert mem.searcher.cache == {}

async def test_filters(make, corpus):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    assert await mem.search("guitar", sectors=["episodic"]) == []
    res = await mem.search("guitar", min_salience=0.5)
    assert [r.memory.id for r in res] == [corpus["vector"].id]

async def test_empty_query_and_zero_limit(make):
    adapter = TableAdapter({})
    mem = make(adapter)
    assert await mem.search("   ") == []
    assert await mem.search("guitar", limit=0) == []
    assert adapter.calls == []

async def test_expansion_walks_waypoints_and_propagates(make):
    x = make_mem("User bought a guitar", salience=0.5, embedding=[0.5, math.sqrt(0.75), 0.0])
    y = make_mem("User takes lessons on Tuesdays", salience=0.5, embedding=[0.0, 0.0, 1.0])
    z = make_mem("User lives near the river", salience=0.1, embedding=[0.0, 0.0, 1.0], ts=1000)
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories([x, y, z])
    await mem.store.save_waypoint(Waypoint(id="xy", source_id=x.id, target_id=y.id, weight=0.9, created_at=1, updated_at=1))
    await mem.store.save_waypoint(Waypoint(id="yz", source_id=y.id, target_id=z.id, weight=0.15, created_at=1, updated_at=1))

    res = {r.memory.id: r for r in await mem.search("guitar")}
    assert set(res) == {x.id, y.id}
    assert res[y.id].path == [x.id, y.id]

    edges = {w.id: w.weight for w in await mem.store.fetch_all_waypoints()}
    assert edges["xy"] == pytest.approx(0.95)
    assert edges["yz"] == pytest.approx(0.15)

    # z was last seen decades ago, so its decayed salience is ~0 and the
    # spillover is gamma * (0.6 - 0) * 0.15, added to the stored 0.1 untouched
    zs = await mem.get(z.id)
    assert zs.salience == pytest.approx(0.1 + 0.2 * 0.6 * 0.15, abs=1e-3)
    assert zs.last_seen_at == 1000

async def test_context_snippet(make, corpus):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}, default=[0.0, 0.0, -1.0]))
    await mem.store.save_memories(list(corpus.values()))

    snippet = await mem.context("guitar", limit=2)
    assert snippet == "- User practices music every evening\n- User owns a guitar"
    assert await mem.context("zebra") is None

async def test_trace_explains_scores(make, corpus):
    mem = make(TableAdapter({"guitar": [1.0, 0.0, 0.0]}))
    await mem.store.save_memories(list(corpus.values()))

    out = await Tracer(mem).trace("guitar")
    assert out["query"] == "guitar"
    top = out["results"][0]
    assert top["id"] == corpus["vector"].id
    assert top["score_breakdown"]["similarity"] == pytest.approx(0.8, abs=1e-5)
    assert top["score_breakdown"]["sector_penalty"] == 1.0
