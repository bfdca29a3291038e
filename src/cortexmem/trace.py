from typing import Dict, Any
from .main import Memory

class Tracer:
    def __init__(self, mem: "Memory"):
        self.mem = mem

    async def trace(self, query: str, limit: int = 10) -> Dict[str, Any]:
        """
        Explainable retrieval: every hit with the signals behind its score.
        """
        results = await self.mem.search(query, limit, debug=True)

        explanation = []
        for r in results:
            explanation.append({
                "id": r.memory.id,
                "content_preview": r.memory.preview,
                "sector": r.memory.sector,
                "score": r.score,
                "path": r.path,
                "score_breakdown": r.debug.model_dump() if r.debug else {},
            })

        return {
            "query": query,
            "results": explanation
        }
