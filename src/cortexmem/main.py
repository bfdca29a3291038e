import argparse
import asyncio
import json
import logging
from typing import List, Optional

from .core.config import env, ScoringWeights
from .core.db import DB, db
from .core.store import SQLiteMemoryStore
from .core.types import AtomicFact, IngestOutcome, Memory as MemoryRecord, ScoredResult, SearchFilters, SourceCapture
from .ai.adapter import AIAdapter
from .memory.classifier import SectorClassifier
from .memory.embed import EmbeddingService
from .memory.essence import EssenceExtractor
from .memory.salience import SalienceManager
from .memory.search import HybridSearch
from .memory.waypoints import WaypointManager
from .ops.ingest import Ingestor
from .utils.vectors import rid

logger = logging.getLogger("cortexmem")

class Memory:
    """
    Entry point. Builds every service once and wires them together.

        mem = Memory()
        await mem.add("User lives in Austin", tags=["location"])
        hits = await mem.search("where does the user live")
    """
    def __init__(self, db_url: Optional[str] = None, adapter: Optional[AIAdapter] = None,
                 weights: Optional[ScoringWeights] = None):
        self.db = DB(db_url) if db_url else db
        self.db.connect()
        self.store = SQLiteMemoryStore(self.db)

        self.classifier = SectorClassifier()
        self.extractor = EssenceExtractor(self.classifier)
        self.salience = SalienceManager(weights=weights)
        self.waypoints = WaypointManager()
        self.embedder = EmbeddingService(adapter)

        self.searcher = HybridSearch(self.store, self.embedder, self.classifier, self.salience, self.waypoints)
        self.ingestor = Ingestor(self.store, self.embedder, self.classifier, self.salience, self.waypoints, self.extractor)

    async def add(self, content: str, source_id: str = None, source_app: str = "api", memory_type: str = "fact",
                  confidence: float = 0.8, tags: List[str] = None, expires_at: int = None, sector: str = None) -> IngestOutcome:
        fact = AtomicFact(content=content, memory_type=memory_type, confidence=confidence,
                          tags=tags or [], expires_at=expires_at, sector=sector)
        src = SourceCapture(id=source_id or rid(), text=content, app_name=source_app)
        return await self.ingestor.ingest(fact, src)

    async def remember(self, text: str, source_id: str = None, source_app: str = "api") -> List[IngestOutcome]:
        return await self.ingestor.process_capture(SourceCapture(id=source_id or rid(), text=text, app_name=source_app))

    async def search(self, query: str, limit: int = 10, **filters) -> List[ScoredResult]:
        f = SearchFilters(**filters) if filters else None
        return await self.searcher.search(query, limit, f)

    async def context(self, query: str, limit: int = 3) -> Optional[str]:
        return await self.searcher.get_context_snippet(query, limit)

    async def get(self, memory_id: str) -> Optional[MemoryRecord]:
        return await self.store.get_memory(memory_id)

    async def forget(self, memory_id: str):
        await self.store.forget_memory(memory_id)

    async def delete(self, memory_id: str):
        await self.store.delete_memory(memory_id)

    async def history(self, limit: int = 20, offset: int = 0) -> List[MemoryRecord]:
        return await self.store.history(limit, offset)

    def close(self):
        self.store.close()

def _dump(res) -> str:
    if isinstance(res, list):
        return json.dumps([r.model_dump(exclude={"memory": {"embedding"}, "embedding": True}) for r in res], indent=2)
    return res.model_dump_json(indent=2)

async def _run(args: argparse.Namespace):
    mem = Memory(args.db)
    try:
        if args.cmd == "add":
            print(_dump(await mem.add(args.content, tags=args.tag or [], sector=args.sector)))
        elif args.cmd == "remember":
            print(_dump(await mem.remember(args.text)))
        elif args.cmd == "search":
            print(_dump(await mem.search(args.query, args.limit, debug=args.debug)))
        elif args.cmd == "context":
            print(await mem.context(args.query, args.limit) or "")
        elif args.cmd == "history":
            print(_dump(await mem.history(args.limit)))
    finally:
        mem.close()

def cli(argv: Optional[List[str]] = None):
    logging.basicConfig(level=env.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ap = argparse.ArgumentParser(prog="cortexmem", description="Local associative memory engine")
    ap.add_argument("--db", default=None, help="sqlite:///path/to.db (default from CX_DB_URL)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("add", help="store one atomic fact")
    p.add_argument("content")
    p.add_argument("--tag", action="append")
    p.add_argument("--sector")

    p = sub.add_parser("remember", help="extract and store facts from raw text")
    p.add_argument("text")

    p = sub.add_parser("search", help="hybrid search")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--debug", action="store_true")

    p = sub.add_parser("context", help="bullet list for prompt injection")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=3)

    p = sub.add_parser("history", help="most recent memories")
    p.add_argument("--limit", type=int, default=20)

    asyncio.run(_run(ap.parse_args(argv)))

if __name__ == "__main__":
    cli()
