import httpx
from typing import List
from ..core.config import env
from .adapter import AIAdapter

class OllamaError(Exception):
    pass

class OllamaAdapter(AIAdapter):
    def __init__(self, base_url: str = None, model: str = None, timeout: float = None):
        self.base_url = base_url or env.ollama_url
        self.model = model or env.ollama_embedding_model
        self.timeout = timeout or env.embed_timeout_s

    async def embed(self, text: str, model: str = None) -> List[float]:
        return (await self.embed_batch([text], model))[0]

    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        m = model or self.model
        url = f"{self.base_url.rstrip('/')}/api/embeddings"
        res = []
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for t in texts:
                r = await client.post(url, json={"model": m, "prompt": t})
                if r.status_code != 200: raise OllamaError(f"Ollama Emb: {r.text}")
                res.append(r.json()["embedding"])
        return res
