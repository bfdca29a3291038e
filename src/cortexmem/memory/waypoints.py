from collections import deque
from typing import Dict, List, Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ..core.config import env
from ..core.types import Waypoint
from ..utils.vectors import now, rid, cos_sim_many

class Expansion(NamedTuple):
    id: str
    weight: float
    path: List[str]

class SalienceUpdate(NamedTuple):
    memory_id: str
    new_salience: float

class WaypointGraph:
    """
    Arena-style snapshot of the waypoint table: one flat edge list plus
    index maps from memory id to edge positions in both directions.
    """
    def __init__(self, edges: Iterable[Waypoint] = ()):
        self.edges: List[Waypoint] = []
        self.outbound: Dict[str, List[int]] = {}
        self.inbound: Dict[str, List[int]] = {}
        for e in edges:
            self.add(e)

    def add(self, wp: Waypoint) -> int:
        i = len(self.edges)
        self.edges.append(wp)
        self.outbound.setdefault(wp.source_id, []).append(i)
        self.inbound.setdefault(wp.target_id, []).append(i)
        return i

    def __len__(self) -> int:
        return len(self.edges)

    def out_edges(self, mid: str) -> List[Waypoint]:
        return [self.edges[i] for i in self.outbound.get(mid, [])]

    def neighbors(self, mid: str) -> List[Tuple[str, float]]:
        # relatedness is symmetric, so an edge is walkable from either end
        res = [(self.edges[i].target_id, self.edges[i].weight) for i in self.outbound.get(mid, [])]
        res += [(self.edges[i].source_id, self.edges[i].weight) for i in self.inbound.get(mid, [])]
        res.sort(key=lambda x: x[1], reverse=True)
        return res

    def edge_between(self, a: str, b: str) -> Optional[Waypoint]:
        for i in self.outbound.get(a, []):
            if self.edges[i].target_id == b: return self.edges[i]
        for i in self.outbound.get(b, []):
            if self.edges[i].target_id == a: return self.edges[i]
        return None

class WaypointManager:
    def __init__(self, min_similarity: Optional[float] = None, expansion_decay: Optional[float] = None,
                 min_expansion_weight: Optional[float] = None, gamma: Optional[float] = None):
        self.min_similarity = env.waypoint_min_sim if min_similarity is None else min_similarity
        self.expansion_decay = env.expansion_decay if expansion_decay is None else expansion_decay
        self.min_expansion_weight = env.expansion_min_weight if min_expansion_weight is None else min_expansion_weight
        self.gamma = env.propagation_gamma if gamma is None else gamma

    def best_target(self, new_embedding: Sequence[float], existing: Sequence[Tuple[str, Sequence[float]]],
                    exclude_id: Optional[str] = None) -> Optional[Tuple[str, float]]:
        dim = len(new_embedding)
        cands = [(mid, e) for mid, e in existing if mid != exclude_id and len(e) == dim]
        if not cands or dim == 0:
            return None

        sims = cos_sim_many(new_embedding, np.asarray([e for _, e in cands], dtype=np.float32))
        i = int(np.argmax(sims))
        best = float(sims[i])
        if best < self.min_similarity:
            return None
        return cands[i][0], best

    def create_waypoint(self, source_id: str, target_id: str, weight: float) -> Waypoint:
        ts = now()
        return Waypoint(id=rid(), source_id=source_id, target_id=target_id, weight=weight, created_at=ts, updated_at=ts)

    def expand(self, seed_ids: Sequence[str], graph: WaypointGraph, max_expansion: int = 10) -> List[Expansion]:
        """
        BFS out of the seed set. Each hop multiplies the path weight by the
        edge weight and the expansion decay; hops under the floor are dropped.
        Never returns more than ``max_expansion`` nodes.
        """
        out: List[Expansion] = []
        if max_expansion <= 0:
            return out

        vis = set(seed_ids)
        queue = deque(Expansion(i, 1.0, [i]) for i in seed_ids)

        while queue and len(out) < max_expansion:
            cur = queue.popleft()
            for nid, wt in graph.neighbors(cur.id):
                if nid in vis: continue
                exp_wt = cur.weight * wt * self.expansion_decay
                if exp_wt < self.min_expansion_weight: continue

                item = Expansion(nid, exp_wt, cur.path + [nid])
                out.append(item)
                vis.add(nid)
                queue.append(item)
                if len(out) >= max_expansion: break
        return out

    def propagate_reinforcement(self, source_id: str, source_salience: float, waypoints: Iterable[Waypoint],
                                current: Dict[str, float]) -> List[SalienceUpdate]:
        ups = []
        for wp in waypoints:
            if wp.source_id != source_id or wp.target_id not in current: continue
            cur = current[wp.target_id]
            boost = self.gamma * (source_salience - cur) * wp.weight
            ups.append(SalienceUpdate(wp.target_id, max(0.0, min(1.0, cur + boost))))
        return ups

    def reinforce_waypoint(self, wp: Waypoint, boost: Optional[float] = None) -> Waypoint:
        b = env.waypoint_boost if boost is None else boost
        return wp.model_copy(update={"weight": max(0.0, min(1.0, wp.weight + b)), "updated_at": now()})
