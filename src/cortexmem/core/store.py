from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import sqlite3
import logging
import numpy as np

from .db import DB, db as default_db
from .types import Memory, Waypoint
from ..utils.vectors import now, rid, j, p, vec_to_buf, buf_to_vec, cos_sim_many

logger = logging.getLogger("store")

# inactive and expired memories never reach retrieval
_LIVE = "is_active = 1 AND (expires_at IS NULL OR expires_at > ?)"

class MemoryStore(ABC):
    @abstractmethod
    async def fetch_all_memories(self, active_only: bool = True) -> List[Memory]: pass

    @abstractmethod
    async def fetch_memories_with_embeddings(self) -> List[Tuple[str, List[float]]]: pass

    @abstractmethod
    async def search_by_embedding(self, vector: List[float], top_k: int = 10, min_score: float = 0.2) -> List[Tuple[Memory, float]]: pass

    @abstractmethod
    async def search_memories(self, text: str) -> List[Memory]: pass

    @abstractmethod
    async def has_memory(self, content: str) -> bool: pass

    @abstractmethod
    async def find_exact(self, content: str) -> Optional[Memory]: pass

    @abstractmethod
    async def find_near_duplicate(self, content: str, threshold: int = 3) -> Optional[Memory]: pass

    @abstractmethod
    async def save_memories(self, memories: List[Memory]): pass

    @abstractmethod
    async def get_memory(self, id: str) -> Optional[Memory]: pass

    @abstractmethod
    async def boost_salience(self, id: str, delta: float, touch: bool = True): pass

    @abstractmethod
    async def fetch_all_waypoints(self) -> List[Waypoint]: pass

    @abstractmethod
    async def fetch_waypoints(self, source_id: str) -> List[Waypoint]: pass

    @abstractmethod
    async def save_waypoint(self, wp: Waypoint): pass

    @abstractmethod
    async def log_processing(self, source_id: str, worth: bool, reason: Optional[str], count: int): pass

    @abstractmethod
    async def has_been_processed(self, source_id: str) -> bool: pass

    @abstractmethod
    async def next_segment(self, seg_size: int) -> int: pass

    @abstractmethod
    async def forget_memory(self, id: str): pass

    @abstractmethod
    async def delete_memory(self, id: str): pass

    @abstractmethod
    async def history(self, limit: int = 20, offset: int = 0) -> List[Memory]: pass

def _row_to_mem(r: sqlite3.Row) -> Memory:
    return Memory(
        id=r["id"],
        content=r["content"],
        sector=r["sector"],
        memory_type=r["memory_type"],
        confidence=r["confidence"],
        tags=p(r["tags"]),
        fingerprint=r["fingerprint"],
        embedding=buf_to_vec(r["embedding"]) if r["embedding"] else None,
        embedding_model=r["embedding_model"],
        salience=r["salience"],
        decay_lambda=r["decay_lambda"],
        created_at=r["created_at"],
        last_seen_at=r["last_seen_at"],
        segment=r["segment"],
        source_id=r["source_id"],
        source_app=r["source_app"],
        is_active=bool(r["is_active"]),
        expires_at=r["expires_at"],
        related_ids=p(r["related_ids"]),
    )

def _row_to_wp(r: sqlite3.Row) -> Waypoint:
    return Waypoint(
        id=r["id"], source_id=r["source_id"], target_id=r["target_id"],
        weight=r["weight"], created_at=r["created_at"], updated_at=r["updated_at"],
    )

def _like_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

class SQLiteMemoryStore(MemoryStore):
    def __init__(self, conn: Optional[DB] = None):
        self.db = conn or default_db

    async def fetch_all_memories(self, active_only: bool = True) -> List[Memory]:
        if active_only:
            rows = self.db.fetchall(f"SELECT * FROM memories WHERE {_LIVE} ORDER BY created_at DESC", (now(),))
        else:
            rows = self.db.fetchall("SELECT * FROM memories ORDER BY created_at DESC")
        return [_row_to_mem(r) for r in rows]

    async def fetch_memories_with_embeddings(self) -> List[Tuple[str, List[float]]]:
        rows = self.db.fetchall(
            f"SELECT id, embedding FROM memories WHERE embedding IS NOT NULL AND {_LIVE}", (now(),)
        )
        return [(r["id"], buf_to_vec(r["embedding"])) for r in rows]

    async def search_by_embedding(self, vector: List[float], top_k: int = 10, min_score: float = 0.2) -> List[Tuple[Memory, float]]:
        # Brute force cosine scan; fine for a single user's corpus
        rows = self.db.fetchall(
            f"SELECT * FROM memories WHERE embedding IS NOT NULL AND {_LIVE}", (now(),)
        )
        dim = len(vector)
        mems = [m for m in (_row_to_mem(r) for r in rows) if len(m.embedding) == dim]
        if not mems or dim == 0:
            return []

        mat = np.asarray([m.embedding for m in mems], dtype=np.float32)
        sims = cos_sim_many(vector, mat)
        order = np.argsort(-sims, kind="stable")

        res = []
        for i in order:
            s = float(sims[i])
            if s < min_score: break
            res.append((mems[i], s))
            if len(res) >= top_k: break
        return res

    async def search_memories(self, text: str) -> List[Memory]:
        pat = f"%{_like_escape(text.lower())}%"
        rows = self.db.fetchall(
            f"SELECT * FROM memories WHERE LOWER(content) LIKE ? ESCAPE '\\' AND {_LIVE} ORDER BY created_at DESC",
            (pat, now()),
        )
        return [_row_to_mem(r) for r in rows]

    async def has_memory(self, content: str) -> bool:
        return await self.find_exact(content) is not None

    async def find_exact(self, content: str) -> Optional[Memory]:
        r = self.db.fetchone(
            f"SELECT * FROM memories WHERE LOWER(content) = LOWER(?) AND {_LIVE} LIMIT 1",
            (content.strip(), now()),
        )
        return _row_to_mem(r) if r else None

    async def find_near_duplicate(self, content: str, threshold: int = 3) -> Optional[Memory]:
        from ..memory.simhash import compute_simhash, hamming_dist

        fp = compute_simhash(content)
        rows = self.db.fetchall(f"SELECT id, fingerprint FROM memories WHERE {_LIVE}", (now(),))

        best_id, best_d = None, threshold + 1
        for r in rows:
            d = hamming_dist(fp, r["fingerprint"])
            if d < best_d:
                best_id, best_d = r["id"], d
        return await self.get_memory(best_id) if best_id else None

    async def save_memories(self, memories: List[Memory]):
        # content, sector and fingerprint are written once and never updated
        sql = """
        INSERT INTO memories(id, content, sector, memory_type, confidence, tags, fingerprint, embedding, embedding_model,
                             salience, decay_lambda, created_at, last_seen_at, segment, source_id, source_app,
                             is_active, expires_at, related_ids)
        VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        ON CONFLICT(id) DO UPDATE SET
        salience=excluded.salience, last_seen_at=excluded.last_seen_at, is_active=excluded.is_active,
        expires_at=excluded.expires_at, related_ids=excluded.related_ids, tags=excluded.tags,
        embedding=COALESCE(excluded.embedding, memories.embedding),
        embedding_model=COALESCE(excluded.embedding_model, memories.embedding_model)
        """
        with self.db.transaction() as c:
            for m in memories:
                c.execute(sql, (
                    m.id, m.content, m.sector, m.memory_type, m.confidence, j(m.tags), m.fingerprint,
                    vec_to_buf(m.embedding) if m.embedding else None, m.embedding_model,
                    m.salience, m.decay_lambda, m.created_at, m.last_seen_at, m.segment,
                    m.source_id, m.source_app, int(m.is_active), m.expires_at, j(m.related_ids),
                ))

    async def get_memory(self, id: str) -> Optional[Memory]:
        r = self.db.fetchone("SELECT * FROM memories WHERE id=?", (id,))
        return _row_to_mem(r) if r else None

    async def boost_salience(self, id: str, delta: float, touch: bool = True):
        if touch:
            self.db.execute(
                "UPDATE memories SET salience = MIN(1.0, MAX(0.0, salience + ?)), last_seen_at = ? WHERE id = ?",
                (delta, now(), id),
            )
        else:
            self.db.execute(
                "UPDATE memories SET salience = MIN(1.0, MAX(0.0, salience + ?)) WHERE id = ?",
                (delta, id),
            )

    async def fetch_all_waypoints(self) -> List[Waypoint]:
        return [_row_to_wp(r) for r in self.db.fetchall("SELECT * FROM waypoints")]

    async def fetch_waypoints(self, source_id: str) -> List[Waypoint]:
        rows = self.db.fetchall("SELECT * FROM waypoints WHERE source_id=? ORDER BY weight DESC", (source_id,))
        return [_row_to_wp(r) for r in rows]

    async def save_waypoint(self, wp: Waypoint):
        self.db.execute(
            """
            INSERT INTO waypoints(id, source_id, target_id, weight, created_at, updated_at) VALUES (?,?,?,?,?,?)
            ON CONFLICT(source_id, target_id) DO UPDATE SET weight=excluded.weight, updated_at=excluded.updated_at
            """,
            (wp.id, wp.source_id, wp.target_id, wp.weight, wp.created_at, wp.updated_at),
        )

    async def log_processing(self, source_id: str, worth: bool, reason: Optional[str], count: int):
        self.db.execute(
            "INSERT INTO processing_log(id, source_id, processed_at, was_worth_remembering, reason, extracted_count) VALUES (?,?,?,?,?,?)",
            (rid(), source_id, now(), int(worth), reason, count),
        )

    async def has_been_processed(self, source_id: str) -> bool:
        return self.db.fetchone("SELECT 1 FROM processing_log WHERE source_id=? LIMIT 1", (source_id,)) is not None

    async def next_segment(self, seg_size: int) -> int:
        r = self.db.fetchone("SELECT segment, COUNT(*) AS c FROM memories GROUP BY segment ORDER BY segment DESC LIMIT 1")
        if not r: return 0
        return r["segment"] + 1 if r["c"] >= seg_size else r["segment"]

    async def forget_memory(self, id: str):
        self.db.execute("UPDATE memories SET is_active = 0 WHERE id = ?", (id,))

    async def delete_memory(self, id: str):
        with self.db.transaction() as c:
            c.execute("DELETE FROM waypoints WHERE source_id=? OR target_id=?", (id, id))
            c.execute("DELETE FROM memories WHERE id=?", (id,))

    async def history(self, limit: int = 20, offset: int = 0) -> List[Memory]:
        rows = self.db.fetchall(
            f"SELECT * FROM memories WHERE {_LIVE} ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (now(), limit, offset),
        )
        return [_row_to_mem(r) for r in rows]

    def close(self):
        self.db.close()
