import pytest
from typing import Dict, List, Optional, Sequence

from cortexmem.ai.adapter import AIAdapter
from cortexmem.core.constants import DECAY_LAMBDAS
from cortexmem.core.db import DB
from cortexmem.core.store import SQLiteMemoryStore
from cortexmem.core.types import Memory as MemoryRecord
from cortexmem.memory.simhash import compute_simhash
from cortexmem.utils.vectors import now, rid

class TableAdapter(AIAdapter):
    """Embeds from a fixed lookup table so tests control every cosine."""
    model = "table"

    def __init__(self, table: Dict[str, Sequence[float]], default: Optional[Sequence[float]] = None):
        self.table = table
        self.default = default
        self.calls: List[str] = []

    async def embed(self, text: str, model: str = None) -> List[float]:
        self.calls.append(text)
        if text in self.table:
            return list(self.table[text])
        if self.default is None:
            raise KeyError(text)
        return list(self.default)

    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        return [await self.embed(t) for t in texts]

class FailingAdapter(AIAdapter):
    model = "offline"

    async def embed(self, text: str, model: str = None) -> List[float]:
        raise RuntimeError("embedding service unavailable")

    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        raise RuntimeError("embedding service unavailable")

def make_mem(content: str, sector: str = "semantic", salience: float = 0.5, embedding=None,
             tags=None, ts: int = None, **kw) -> MemoryRecord:
    ts = ts or now()
    return MemoryRecord(
        id=kw.pop("id", rid()),
        content=content,
        sector=sector,
        fingerprint=compute_simhash(content),
        embedding=embedding,
        salience=salience,
        decay_lambda=DECAY_LAMBDAS[sector],
        created_at=ts,
        last_seen_at=ts,
        tags=tags or [],
        **kw,
    )

@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cortex.db'}"

@pytest.fixture
def db(db_url):
    d = DB(db_url)
    d.connect()
    yield d
    d.close()

@pytest.fixture
def store(db):
    return SQLiteMemoryStore(db)
