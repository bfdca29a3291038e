from typing import List
from openai import AsyncOpenAI
from ..core.config import env
from .adapter import AIAdapter

class OpenAIAdapter(AIAdapter):
    def __init__(self, api_key: str = None, base_url: str = None, model: str = None):
        self.api_key = api_key or env.openai_key
        self.base_url = base_url or env.openai_base_url
        self.model = model or env.openai_embedding_model
        self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    async def embed(self, text: str, model: str = None) -> List[float]:
        res = await self.client.embeddings.create(input=text, model=model or self.model)
        return res.data[0].embedding

    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        res = await self.client.embeddings.create(input=texts, model=model or self.model)
        # ensure order
        return [d.embedding for d in sorted(res.data, key=lambda d: d.index)]
