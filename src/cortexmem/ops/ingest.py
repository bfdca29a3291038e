import asyncio
import logging
from typing import List, Optional

from ..core.config import env, EnvConfig
from ..core.constants import SECTOR_TYPES
from ..core.store import MemoryStore
from ..core.types import AtomicFact, IngestOutcome, Memory, SourceCapture
from ..memory.classifier import SectorClassifier
from ..memory.embed import EmbeddingService
from ..memory.essence import EssenceExtractor
from ..memory.salience import SalienceManager
from ..memory.simhash import compute_simhash
from ..memory.waypoints import WaypointManager
from ..utils.vectors import now, rid

logger = logging.getLogger("ingest")

class Ingestor:
    """
    Creation pipeline: dedup check, classify, score, embed, persist, link.

    Empty facts are skipped and reported on the outcome, never raised.
    A store failure while saving the new memory propagates to the caller.
    Reinforcing a duplicate, linking and the audit log are best effort.
    """
    def __init__(self, store: MemoryStore, embedder: EmbeddingService, classifier: SectorClassifier,
                 salience: SalienceManager, waypoints: WaypointManager, extractor: EssenceExtractor,
                 cfg: EnvConfig = env):
        self.store = store
        self.embedder = embedder
        self.classifier = classifier
        self.salience = salience
        self.waypoints = waypoints
        self.extractor = extractor
        self.cfg = cfg

    async def ingest(self, fact: AtomicFact, source: SourceCapture) -> IngestOutcome:
        content = " ".join(fact.content.split())
        if not content:
            logger.info(f"[INGEST] Skipping empty fact from {source.id}")
            return IngestOutcome(rejected="Empty content")

        existing = await self.store.find_exact(content)
        if existing is None:
            existing = await self.store.find_near_duplicate(content, self.cfg.dedup_threshold)
        if existing is not None:
            return await self._reinforce_duplicate(existing)

        c = self.classifier.classify(content, sector=fact.sector)
        sal = self.salience.initial_salience(c)

        er = await self.embedder.embed(content)
        target = None
        if er.ok:
            try:
                target = self.waypoints.best_target(er.vector, await self.store.fetch_memories_with_embeddings())
            except Exception as e:
                logger.warning(f"[INGEST] Waypoint lookup failed: {e}")
        else:
            logger.info(f"[INGEST] Storing without embedding: {er.error}")

        ts = now()
        mem = Memory(
            id=rid(),
            content=content,
            sector=c.primary,
            memory_type=fact.memory_type,
            confidence=fact.confidence,
            tags=list(dict.fromkeys(fact.tags)),
            fingerprint=compute_simhash(content),
            embedding=er.vector if er.ok else None,
            embedding_model=er.model if er.ok else None,
            salience=sal,
            decay_lambda=self.classifier.decay_lambda(c.primary),
            created_at=ts,
            last_seen_at=ts,
            segment=await self.store.next_segment(self.cfg.seg_size),
            source_id=source.id,
            source_app=source.app_name,
            expires_at=fact.expires_at,
            related_ids=[target[0]] if target else [],
        )
        await self.store.save_memories([mem])

        if target:
            try:
                await self.store.save_waypoint(self.waypoints.create_waypoint(mem.id, target[0], target[1]))
            except Exception as e:
                logger.warning(f"[INGEST] Could not link {mem.id} -> {target[0]}: {e}")

        logger.info(f"[INGEST] {mem.id} sector={mem.sector} salience={mem.salience:.2f} seg={mem.segment}")
        return IngestOutcome(
            memory_id=mem.id, sector=mem.sector, salience=mem.salience,
            waypoint_target=target[0] if target else None,
        )

    async def _reinforce_duplicate(self, existing: Memory) -> IngestOutcome:
        new_sal = self.salience.reinforce_on_duplicate(self.salience.decayed_salience(existing, now()))
        try:
            await self.store.boost_salience(existing.id, new_sal - existing.salience)
        except Exception as e:
            logger.warning(f"[INGEST] Duplicate reinforcement failed for {existing.id}: {e}")
        logger.info(f"[INGEST] Duplicate of {existing.id}, salience -> {new_sal:.2f}")
        return IngestOutcome(memory_id=existing.id, deduplicated=True, sector=existing.sector, salience=new_sal)

    async def ingest_batch(self, facts: List[AtomicFact], source: SourceCapture) -> List[IngestOutcome]:
        """One fact at a time with a fixed pause in between; upstream AI services are rate limited."""
        out = []
        delay = self.cfg.ingest_delay_ms / 1000.0
        for i, fact in enumerate(facts):
            if i and delay > 0:
                await asyncio.sleep(delay)
            out.append(await self.ingest(fact, source))

        created = sum(1 for o in out if o.memory_id and not o.deduplicated)
        skipped = sum(1 for o in out if o.rejected)
        await self._log(source.id, True, f"{skipped} empty fact(s) skipped" if skipped else None, created)
        return out

    async def process_capture(self, capture: SourceCapture) -> List[IngestOutcome]:
        if await self.store.has_been_processed(capture.id):
            logger.debug(f"[INGEST] Capture {capture.id} already processed")
            return []

        text = capture.text.strip()
        worth, reason = self.classifier.is_worth_remembering(text)
        if not worth:
            logger.info(f"[INGEST] Skipping capture {capture.id}: {reason}")
            await self._log(capture.id, False, reason, 0)
            return []

        facts = [e.to_fact() for e in self.extractor.extract_atomic_memories(text)]
        if not facts:
            # no single sentence stood out, keep a condensed copy of the whole text
            c = self.classifier.classify(text)
            facts = [AtomicFact(
                content=self.extractor.to_third_person(self.extractor.extract_essence(text, c.primary)),
                memory_type=SECTOR_TYPES[c.primary],
                confidence=c.confidence,
            )]
        return await self.ingest_batch(facts, capture)

    async def _log(self, source_id: str, worth: bool, reason: Optional[str], count: int):
        try:
            await self.store.log_processing(source_id, worth, reason, count)
        except Exception as e:
            logger.warning(f"[INGEST] Audit log failed for {source_id}: {e}")
