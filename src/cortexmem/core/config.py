import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Any
from dotenv import load_dotenv

# .env at the project root (src/cortexmem/core -> ../../../.env), then cwd
load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")
load_dotenv()

def num(v: Optional[Any], d: int | float) -> int | float:
    try:
        return float(v) if v not in (None, "") else d
    except (TypeError, ValueError):
        return d

def s_bool(v: Optional[Any]) -> bool:
    return str(v).lower() in ("1", "true", "yes")

@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the six hybrid ranking signals. Any scale; they are normalised by their sum."""
    similarity: float = 0.25
    keyword: float = 0.20
    overlap: float = 0.15
    tag_match: float = 0.15
    waypoint: float = 0.125
    recency: float = 0.125

    @property
    def total(self) -> float:
        return self.similarity + self.keyword + self.overlap + self.tag_match + self.waypoint + self.recency

class EnvConfig:
    def __init__(self, toml_path: Optional[str] = None):
        # 1. Load TOML
        self._toml = {}
        path = Path(toml_path or os.getenv("CX_CONFIG", "cortexmem.toml"))
        if path.exists():
            with open(path, "rb") as f:
                self._toml = tomllib.load(f)

        # TOML value wins, then env var, then default
        def get(sec: str, key: str, env_var: str, default: Any) -> Any:
            val = self._toml.get(sec, {}).get(key)
            if val is not None: return val
            return os.getenv(env_var, default)

        # [db]
        self.db_url = get("db", "url", "CX_DB_URL", "sqlite:///cortexmem.db")

        # [log]
        self.log_level = str(get("log", "level", "CX_LOG_LEVEL", "INFO")).upper()

        # [ai]
        self.emb_kind = get("ai", "embedding_provider", "CX_EMBED_KIND", "synthetic")
        self.vec_dim = int(num(get("ai", "vec_dim", "CX_VEC_DIM", None), 256))
        self.embed_timeout_s = float(num(get("ai", "embed_timeout_s", "CX_EMBED_TIMEOUT", None), 10.0))
        self.openai_key = get("ai", "openai_key", "OPENAI_API_KEY", "") or os.getenv("CX_OPENAI_API_KEY", "")
        self.openai_base_url = get("ai", "openai_base", "CX_OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.openai_embedding_model = get("ai", "openai_embedding_model", "CX_OPENAI_EMBED_MODEL", "text-embedding-3-small")
        self.ollama_url = get("ai", "ollama_url", "OLLAMA_URL", "http://localhost:11434")
        self.ollama_embedding_model = get("ai", "ollama_embedding_model", "CX_OLLAMA_EMBED_MODEL", "nomic-embed-text")

        # [ingest]
        self.seg_size = int(num(get("ingest", "segment_size", "CX_SEG_SIZE", None), 100))
        self.ingest_delay_ms = int(num(get("ingest", "delay_ms", "CX_INGEST_DELAY_MS", None), 500))
        self.summary_max_length = int(num(get("ingest", "summary_max_length", "CX_SUMMARY_MAX_LENGTH", None), 500))
        self.dedup_threshold = int(num(get("ingest", "dedup_threshold", "CX_DEDUP_THRESHOLD", None), 3))

        # [salience]
        self.retrieval_boost = float(num(get("salience", "retrieval_boost", "CX_RETRIEVAL_BOOST", None), 0.1))
        self.duplicate_boost = float(num(get("salience", "duplicate_boost", "CX_DUPLICATE_BOOST", None), 0.15))
        self.prune_threshold = float(num(get("salience", "prune_threshold", "CX_PRUNE_THRESHOLD", None), 0.05))

        # [waypoints]
        self.waypoint_min_sim = float(num(get("waypoints", "min_similarity", "CX_WAYPOINT_MIN_SIM", None), 0.5))
        self.expansion_decay = float(num(get("waypoints", "expansion_decay", "CX_EXPANSION_DECAY", None), 0.8))
        self.expansion_min_weight = float(num(get("waypoints", "expansion_min_weight", "CX_EXPANSION_MIN_WEIGHT", None), 0.1))
        self.propagation_gamma = float(num(get("waypoints", "propagation_gamma", "CX_PROPAGATION_GAMMA", None), 0.2))
        self.waypoint_boost = float(num(get("waypoints", "reinforce_boost", "CX_WAYPOINT_BOOST", None), 0.05))

        # [search]
        self.cache_ttl_ms = int(num(get("search", "cache_ttl_ms", "CX_CACHE_TTL_MS", None), 60000))
        self.vector_min_score = float(num(get("search", "vector_min_score", "CX_VECTOR_MIN_SCORE", None), 0.2))
        self.high_conf_threshold = float(num(get("search", "high_confidence", "CX_HIGH_CONF", None), 0.55))
        self.debug_default = s_bool(get("search", "debug", "CX_SEARCH_DEBUG", "false"))

        # [scoring]
        d = ScoringWeights()
        self.weights = ScoringWeights(
            similarity=float(num(get("scoring", "similarity", "CX_W_SIMILARITY", None), d.similarity)),
            keyword=float(num(get("scoring", "keyword", "CX_W_KEYWORD", None), d.keyword)),
            overlap=float(num(get("scoring", "overlap", "CX_W_OVERLAP", None), d.overlap)),
            tag_match=float(num(get("scoring", "tag_match", "CX_W_TAG_MATCH", None), d.tag_match)),
            waypoint=float(num(get("scoring", "waypoint", "CX_W_WAYPOINT", None), d.waypoint)),
            recency=float(num(get("scoring", "recency", "CX_W_RECENCY", None), d.recency)),
        )


env = EnvConfig()
