import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.config import env, EnvConfig
from ..core.store import MemoryStore
from ..core.types import DebugBreakdown, Memory, ScoredResult, SearchFilters
from ..utils.keyword import token_overlap, keyword_boost, tag_match
from ..utils.text import normalize_query, extract_keywords
from ..utils.vectors import now, cos_sim
from .classifier import SectorClassifier
from .embed import EmbeddingService
from .salience import SalienceManager, sector_relationship
from .waypoints import WaypointGraph, WaypointManager, Expansion

logger = logging.getLogger("search")

MAX_KEYWORDS = 5
FALLBACK_KEYWORDS = 3
FALLBACK_SCORE = 0.5

class HybridSearch:
    """
    Query pipeline: normalize, classify, embed, gather candidates from the
    vector index and substring search, optionally widen them through the
    waypoint graph, score, rank, then reinforce whatever was returned.

    Results are cached per normalized query, limit and filters for
    ``cache_ttl_ms``. Writes do not invalidate the cache.
    """
    def __init__(self, store: MemoryStore, embedder: EmbeddingService, classifier: SectorClassifier,
                 salience: SalienceManager, waypoints: WaypointManager, cfg: EnvConfig = env):
        self.store = store
        self.embedder = embedder
        self.classifier = classifier
        self.salience = salience
        self.waypoints = waypoints
        self.cfg = cfg
        self.cache: Dict[str, Tuple[int, List[ScoredResult]]] = {}

    def _cache_key(self, core: str, limit: int, f: SearchFilters) -> str:
        return f"{core}:{limit}:{f.model_dump_json()}"

    def _cache_get(self, key: str, ts: int) -> Optional[List[ScoredResult]]:
        entry = self.cache.get(key)
        if entry and ts - entry[0] < self.cfg.cache_ttl_ms:
            return list(entry[1])
        return None

    def _cache_put(self, key: str, ts: int, res: List[ScoredResult]):
        ttl = self.cfg.cache_ttl_ms
        for k in [k for k, (t, _) in self.cache.items() if ts - t >= ttl]:
            del self.cache[k]
        self.cache[key] = (ts, list(res))

    def _passes(self, m: Memory, f: SearchFilters, ts: int) -> bool:
        if f.sectors and m.sector not in f.sectors: return False
        if f.start_time is not None and m.created_at < f.start_time: return False
        if f.end_time is not None and m.created_at > f.end_time: return False
        if f.min_salience is not None and self.salience.decayed_salience(m, ts) < f.min_salience: return False
        return True

    async def search(self, query: str, limit: int = 10, filters: Optional[SearchFilters] = None) -> List[ScoredResult]:
        trimmed = (query or "").strip()
        if not trimmed or limit <= 0:
            return []

        f = filters or SearchFilters(debug=self.cfg.debug_default)
        ts = now()

        core = normalize_query(trimmed)
        key = self._cache_key(core, limit, f)
        cached = self._cache_get(key, ts)
        if cached is not None:
            logger.debug(f"[SEARCH] Cache hit for '{core[:30]}'")
            return cached

        keywords = extract_keywords(core)
        qc = self.classifier.classify(core)
        logger.debug(f"[SEARCH] core='{core}' keywords={keywords} sector={qc.primary}")

        er = await self.embedder.embed(core)
        if not er.ok:
            logger.info(f"[SEARCH] Embedding unavailable ({er.error}), using lexical fallback")
            return await self._fallback(core, keywords, limit, f, ts)

        try:
            vec_hits = await self.store.search_by_embedding(er.vector, limit * 4, self.cfg.vector_min_score)
            kw_hits = await self._keyword_search(keywords, max(1, limit // 2))
            mems = {m.id: m for m in await self.store.fetch_all_memories()}

            sims = {m.id: s for m, s in vec_hits}
            cands: List[str] = list(sims)
            for m in kw_hits:
                if m.id not in sims and m.id not in cands:
                    cands.append(m.id)

            avg = sum(sims.values()) / len(sims) if sims else 0.0
            high_conf = avg >= self.cfg.high_conf_threshold

            graph: Optional[WaypointGraph] = None
            expansion: Dict[str, Expansion] = {}
            if not high_conf and cands:
                graph = WaypointGraph(await self.store.fetch_all_waypoints())
                for e in self.waypoints.expand(cands, graph, limit * 2):
                    expansion[e.id] = e
                    cands.append(e.id)
        except Exception as e:
            logger.error(f"[SEARCH] Candidate generation failed: {e}")
            return []

        logger.debug(f"[SEARCH] {len(sims)} vector, {len(kw_hits)} keyword, {len(expansion)} expanded; avg sim {avg:.3f}")

        scored: List[ScoredResult] = []
        for mid in cands:
            m = mems.get(mid)
            if m is None or not self._passes(m, f, ts):
                continue
            scored.append(self._score(m, er.vector, sims.get(mid), qc.primary, keywords, expansion.get(mid), f.debug, ts))

        scored.sort(key=lambda r: (r.score, r.memory.last_seen_at), reverse=True)
        top = scored[:limit]

        await self._reinforce(top, ts, graph)

        self._cache_put(key, ts, top)
        return list(top)

    def _score(self, m: Memory, qvec: Sequence[float], sim: Optional[float], q_sector: str, keywords: List[str],
               exp: Optional[Expansion], debug: bool, ts: int) -> ScoredResult:
        if sim is None:
            sim = cos_sim(qvec, m.embedding) if m.embedding else 0.0
        sim = max(0.0, sim)

        penalty = sector_relationship(q_sector, m.sector)
        adj = sim * penalty
        ov = token_overlap(keywords, m.content)
        kb = keyword_boost(keywords, m.content, m.tags)
        tm = tag_match(keywords, m.tags)
        ww = exp.weight if exp else 0.0

        score = self.salience.hybrid_score(
            similarity=adj,
            token_overlap=ov,
            waypoint_weight=ww,
            recency=self.salience.retrieval_signal(m, ts),
            tag_match=tm,
            keyword=self.salience.normalize_keyword_boost(kb),
        )

        dbg = None
        if debug:
            dbg = DebugBreakdown(
                similarity=sim, similarity_adjusted=adj, sector_penalty=penalty, token_overlap=ov,
                keyword_boost=kb, tag_match=tm, recency=self.salience.recency_score(m.last_seen_at, ts),
                salience=self.salience.decayed_salience(m, ts), waypoint_weight=ww,
            )
        return ScoredResult(memory=m, score=score, path=list(exp.path) if exp else [m.id], debug=dbg)

    async def _keyword_search(self, keywords: List[str], per_kw: int) -> List[Memory]:
        res: List[Memory] = []
        seen = set()
        for k in keywords[:MAX_KEYWORDS]:
            for m in (await self.store.search_memories(k))[:per_kw]:
                if m.id not in seen:
                    seen.add(m.id)
                    res.append(m)
        return res

    async def _fallback(self, core: str, keywords: List[str], limit: int, f: SearchFilters, ts: int) -> List[ScoredResult]:
        # neutral scores, no reinforcement and no caching
        try:
            hits = await self.store.search_memories(core)
            seen = {m.id for m in hits}
            for k in keywords[:FALLBACK_KEYWORDS]:
                for m in await self.store.search_memories(k):
                    if m.id not in seen:
                        seen.add(m.id)
                        hits.append(m)
        except Exception as e:
            logger.error(f"[SEARCH] Lexical fallback failed: {e}")
            return []

        hits = [m for m in hits if self._passes(m, f, ts)]
        return [ScoredResult(memory=m, score=FALLBACK_SCORE, path=[m.id]) for m in hits[:limit]]

    async def _reinforce(self, top: List[ScoredResult], ts: int, graph: Optional[WaypointGraph]):
        for r in top:
            m = r.memory
            try:
                new_sal = self.salience.reinforce_on_retrieval(self.salience.decayed_salience(m, ts))
                await self.store.boost_salience(m.id, new_sal - m.salience)

                if len(r.path) > 1:
                    await self._reinforce_path(r.path, graph)
                    await self._propagate(m.id, new_sal, ts)
            except Exception as e:
                logger.warning(f"[SEARCH] Reinforcement failed for {m.id}: {e}")

    async def _reinforce_path(self, path: List[str], graph: Optional[WaypointGraph]):
        if graph is None: return
        for a, b in zip(path, path[1:]):
            wp = graph.edge_between(a, b)
            if wp:
                await self.store.save_waypoint(self.waypoints.reinforce_waypoint(wp))

    async def _propagate(self, source_id: str, source_salience: float, ts: int):
        wps = await self.store.fetch_waypoints(source_id)
        if not wps: return

        # compare both ends at the same instant; the boost lands on the stored
        # value since the target's last_seen_at is left alone
        cur: Dict[str, float] = {}
        for wp in wps:
            t = await self.store.get_memory(wp.target_id)
            if t and t.is_active:
                cur[t.id] = self.salience.decayed_salience(t, ts)

        for u in self.waypoints.propagate_reinforcement(source_id, source_salience, wps, cur):
            delta = u.new_salience - cur[u.memory_id]
            if delta > 0:
                await self.store.boost_salience(u.memory_id, delta, touch=False)

    async def get_context_snippet(self, query: str, limit: int = 3) -> Optional[str]:
        res = await self.search(query, limit)
        if not res: return None
        return "\n".join(f"- {r.memory.content}" for r in res)
