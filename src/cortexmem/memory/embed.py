import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.config import env, EnvConfig
from ..ai.adapter import AIAdapter

logger = logging.getLogger("embed")

@dataclass(frozen=True)
class EmbedResult:
    """Either a vector or the reason there is none. Callers branch on ``ok``."""
    vector: Optional[List[float]] = None
    model: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.vector)

def make_adapter(cfg: EnvConfig = env) -> AIAdapter:
    kind = (cfg.emb_kind or "synthetic").lower()
    if kind == "openai":
        from ..ai.openai import OpenAIAdapter
        return OpenAIAdapter()
    if kind == "ollama":
        from ..ai.ollama import OllamaAdapter
        return OllamaAdapter()
    if kind != "synthetic":
        logger.warning(f"[EMBED] Unknown provider {kind}, using synthetic")
    from ..ai.synthetic import SyntheticAdapter
    return SyntheticAdapter(cfg.vec_dim)

class EmbeddingService:
    def __init__(self, adapter: Optional[AIAdapter] = None, cfg: EnvConfig = env):
        self.adapter = adapter or make_adapter(cfg)
        self.timeout = cfg.embed_timeout_s

    @property
    def model(self) -> str:
        return getattr(self.adapter, "model", "unknown")

    async def embed(self, text: str) -> EmbedResult:
        if not text or not text.strip():
            return EmbedResult(error="empty text")
        try:
            vec = await asyncio.wait_for(self.adapter.embed(text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[EMBED] {self.model} timed out after {self.timeout}s")
            return EmbedResult(model=self.model, error="timeout")
        except Exception as e:
            # any provider failure means "no vector"; callers fall back
            logger.warning(f"[EMBED] {self.model} failed: {e}")
            return EmbedResult(model=self.model, error=str(e) or type(e).__name__)

        if not vec:
            return EmbedResult(model=self.model, error="empty vector")
        return EmbedResult(vector=[float(x) for x in vec], model=self.model)
