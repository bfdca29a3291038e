import math
import pytest

from cortexmem import Memory
from cortexmem.core.config import env
from cortexmem.core.db import StoreError
from cortexmem.core.types import AtomicFact, SourceCapture
from conftest import TableAdapter, FailingAdapter

pytestmark = pytest.mark.asyncio

@pytest.fixture
def make(db_url, monkeypatch):
    monkeypatch.setattr(env, "ingest_delay_ms", 0)
    opened = []

    def _make(adapter):
        m = Memory(db_url, adapter=adapter)
        opened.append(m)
        return m

    yield _make
    for m in opened:
        m.close()

async def test_duplicate_reinforces_instead_of_inserting(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0, 0.0]))

    first = await mem.add("I love playing guitar")
    again = await mem.add("I really love playing the guitar")
    exact = await mem.add("  i love   playing guitar ")

    assert not first.deduplicated
    assert again.deduplicated and again.memory_id == first.memory_id
    assert again.salience == pytest.approx(first.salience + 0.15, abs=1e-3)
    assert exact.memory_id == first.memory_id
    assert len(await mem.history()) == 1

    stored = await mem.get(first.memory_id)
    assert stored.salience == pytest.approx(min(1.0, first.salience + 0.30), abs=1e-3)

async def test_unrelated_text_creates_memory(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0, 0.0]))
    a = await mem.add("I love playing guitar")
    b = await mem.add("The quarterly revenue report is due Friday")
    assert a.memory_id != b.memory_id
    assert not b.deduplicated
    assert len(await mem.history()) == 2

async def test_waypoint_created_only_above_threshold(make):
    A = "User lives in Austin"
    B = "The quarterly revenue report is due Friday"
    C = "User is allergic to peanuts"
    mem = make(TableAdapter({
        A: [1.0, 0.0, 0.0],
        B: [0.4, math.sqrt(0.84), 0.0],
        C: [0.6, 0.0, 0.8],
    }))

    a = await mem.add(A)
    b = await mem.add(B)
    assert b.waypoint_target is None
    assert await mem.store.fetch_all_waypoints() == []

    c = await mem.add(C)
    assert c.waypoint_target == a.memory_id
    wps = await mem.store.fetch_all_waypoints()
    assert len(wps) == 1
    assert (wps[0].source_id, wps[0].target_id) == (c.memory_id, a.memory_id)
    assert wps[0].weight == pytest.approx(0.6, abs=1e-5)
    assert (await mem.get(c.memory_id)).related_ids == [a.memory_id]

async def test_embedding_failure_still_stores(make):
    mem = make(FailingAdapter())
    out = await mem.add("User works as a nurse in Denver", tags=["work", "work"])

    stored = await mem.get(out.memory_id)
    assert stored is not None
    assert stored.embedding is None
    assert stored.tags == ["work"]
    assert out.waypoint_target is None

async def test_store_failure_propagates(make, monkeypatch):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))

    async def broken(memories):
        raise StoreError("disk full")

    monkeypatch.setattr(mem.store, "save_memories", broken)
    with pytest.raises(StoreError):
        await mem.add("User lives in Austin")

async def test_empty_content_is_reported_not_raised(make):
    mem = make(TableAdapter({}, default=[1.0]))
    out = await mem.add("   ")
    assert out.rejected == "Empty content"
    assert out.memory_id is None
    assert await mem.history() == []

async def test_batch_skips_empty_fact_and_keeps_going(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))
    facts = [AtomicFact(content=t) for t in ("User lives in Austin", "   ", "User is allergic to peanuts")]
    out = await mem.ingestor.ingest_batch(facts, SourceCapture(id="batch-2", text=""))

    assert [o.rejected for o in out] == [None, "Empty content", None]
    stored = sorted(m.content for m in await mem.history())
    assert stored == ["User is allergic to peanuts", "User lives in Austin"]
    row = mem.db.fetchone("SELECT reason, extracted_count FROM processing_log WHERE source_id=?", ("batch-2",))
    assert row["reason"] == "1 empty fact(s) skipped"
    assert row["extracted_count"] == 2

async def test_capture_with_only_an_overlong_command_line(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))
    text = "hello\nsearch for " + "cheap flights to lisbon in march " * 20
    out = await mem.remember(text, source_id="cap-4")

    assert len(out) == 1 and out[0].rejected is None
    stored = await mem.get(out[0].memory_id)
    assert stored.content.startswith("search for cheap flights")
    assert len(stored.content) <= 500
    assert await mem.store.has_been_processed("cap-4")

async def test_forced_sector_and_expiry(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))
    out = await mem.add("Always run the linter before pushing", sector="reflective", expires_at=1)
    assert out.sector == "reflective"
    assert await mem.history() == []
    assert (await mem.get(out.memory_id)).is_expired(2)

async def test_capture_extracts_atomic_facts(make):
    mem = make(TableAdapter({}, default=[0.0, 1.0]))
    out = await mem.remember("I live in Austin. Hi. I love hiking in the mountains.", source_id="cap-1")

    contents = sorted([(await mem.get(o.memory_id)).content for o in out])
    assert contents == ["User lives in Austin.", "User loves hiking in the mountains."]
    assert await mem.store.has_been_processed("cap-1")

    # the same capture is never processed twice
    assert await mem.remember("I live in Austin.", source_id="cap-1") == []

async def test_unworthy_capture_is_logged(make):
    mem = make(TableAdapter({}, default=[1.0]))
    assert await mem.remember("ok", source_id="cap-2") == []
    assert await mem.store.has_been_processed("cap-2")
    assert await mem.history() == []

async def test_capture_without_atomic_facts_keeps_essence(make):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))
    # every sentence is too short on its own, the whole text is not
    out = await mem.remember("Met Bob. Got keys. Paid rent.", source_id="cap-3")
    assert len(out) == 1
    stored = await mem.get(out[0].memory_id)
    assert stored.content == "Met Bob. Got keys. Paid rent."

async def test_batch_waits_between_items(make, monkeypatch):
    mem = make(TableAdapter({}, default=[1.0, 0.0]))
    monkeypatch.setattr(env, "ingest_delay_ms", 250)
    waits = []

    async def fake_sleep(s):
        waits.append(s)

    monkeypatch.setattr("cortexmem.ops.ingest.asyncio.sleep", fake_sleep)
    facts = [AtomicFact(content=t) for t in (
        "User lives in Austin",
        "The quarterly revenue report is due Friday",
        "User is allergic to peanuts",
    )]
    out = await mem.ingestor.ingest_batch(facts, SourceCapture(id="batch-1", text=""))

    assert len(out) == 3
    assert waits == [0.25, 0.25]
    assert await mem.store.has_been_processed("batch-1")
