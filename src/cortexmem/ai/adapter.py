from abc import ABC, abstractmethod
from typing import List

class AIAdapter(ABC):
    # name recorded next to every stored embedding
    model: str = "unknown"

    @abstractmethod
    async def embed(self, text: str, model: str = None) -> List[float]:
        """Generate single embedding"""
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        """Generate batch embeddings"""
        pass
