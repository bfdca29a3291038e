import math
from typing import Optional

from ..core.config import env, ScoringWeights
from ..core.constants import SEC_WTS, SECTOR_RELATIONSHIPS, DEFAULT_RELATIONSHIP
from ..core.types import Classification, Memory
from ..utils.keyword import KEYWORD_BOOST_CAP

DAY_MS = 86_400_000
T_DAYS = 7.0
T_MAX_DAYS = 60.0
TAU = 3.0

def clamp(x: float) -> float:
    return max(0.0, min(1.0, x))

def days_between(then: int, now: int) -> float:
    return max(0, now - then) / DAY_MS

def boosted_sim(s: float, tau: float = TAU) -> float:
    return 1 - math.exp(-tau * s)

def sector_relationship(query_sector: str, memory_sector: str) -> float:
    if query_sector == memory_sector: return 1.0
    return SECTOR_RELATIONSHIPS.get(query_sector, {}).get(memory_sector, DEFAULT_RELATIONSHIP)

class SalienceManager:
    """
    Importance bookkeeping for memories.

    Salience is stored as of ``last_seen_at`` and decayed lazily whenever it
    is read; nothing rewrites it on a timer. Reinforcement is additive and
    capped at 1.0.
    """
    def __init__(self, weights: Optional[ScoringWeights] = None, retrieval_boost: Optional[float] = None,
                 duplicate_boost: Optional[float] = None, prune_threshold: Optional[float] = None):
        self.weights = weights or env.weights
        self.retrieval_boost = env.retrieval_boost if retrieval_boost is None else retrieval_boost
        self.duplicate_boost = env.duplicate_boost if duplicate_boost is None else duplicate_boost
        self.prune_threshold = env.prune_threshold if prune_threshold is None else prune_threshold

    def initial_salience(self, c: Classification) -> float:
        # multi-sector content is a little more important
        w = SEC_WTS.get(c.primary, 1.0)
        return clamp(0.3 + 0.2 * c.confidence * w + 0.1 * len(c.additional))

    def decayed_salience(self, m: Memory, now: int) -> float:
        days = days_between(m.last_seen_at, now)
        return clamp(m.salience * math.exp(-m.decay_lambda * days))

    def recency_score(self, last_seen_at: int, now: int) -> float:
        days = days_between(last_seen_at, now)
        return math.exp(-days / T_DAYS) * (1 - min(1.0, days / T_MAX_DAYS))

    def retrieval_signal(self, m: Memory, now: int) -> float:
        return 0.5 * self.recency_score(m.last_seen_at, now) + 0.5 * self.decayed_salience(m, now)

    def reinforce_on_retrieval(self, s: float) -> float:
        return min(1.0, clamp(s) + self.retrieval_boost)

    def reinforce_on_duplicate(self, s: float) -> float:
        return min(1.0, clamp(s) + self.duplicate_boost)

    def should_prune(self, salience: float, last_seen_at: int, now: int) -> bool:
        days = days_between(last_seen_at, now)
        if days < 7: return False
        return salience < self.prune_threshold and days > 30

    def hybrid_score(self, similarity: float, token_overlap: float, waypoint_weight: float,
                     recency: float, tag_match: float = 0.0, keyword: float = 0.0) -> float:
        """Weighted mean of the six ranking signals, each clamped to [0,1] first."""
        w = self.weights
        if w.total <= 0: return 0.0
        raw = (w.similarity * boosted_sim(clamp(similarity)) +
               w.keyword * clamp(keyword) +
               w.overlap * clamp(token_overlap) +
               w.tag_match * clamp(tag_match) +
               w.waypoint * clamp(waypoint_weight) +
               w.recency * clamp(recency))
        return clamp(raw / w.total)

    @staticmethod
    def normalize_keyword_boost(boost: float) -> float:
        return clamp(boost / KEYWORD_BOOST_CAP)
