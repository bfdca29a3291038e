import math
import hashlib
from collections import Counter
from typing import List
import numpy as np
from .adapter import AIAdapter
from ..utils.text import canonical_tokens_from_text
from ..utils.vectors import normalize

class SyntheticAdapter(AIAdapter):
    """
    Deterministic offline embedder: hashed token, trigram and bigram
    features folded into a fixed-size vector. No network, no model.
    Texts sharing canonical tokens (synonyms and stems collapsed) land close.
    """
    def __init__(self, dim: int = 256):
        self.dim = dim
        self.model = f"synthetic-{dim}"

    async def embed(self, text: str, model: str = None) -> List[float]:
        return self.vectorize(text)

    async def embed_batch(self, texts: List[str], model: str = None) -> List[List[float]]:
        return [self.vectorize(t) for t in texts]

    def _feature(self, vec: np.ndarray, key: str, w: float):
        d = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
        primary = int.from_bytes(d[:4], "little")
        secondary = int.from_bytes(d[4:], "little")
        sign = -1.0 if primary & 1 else 1.0
        vec[primary % self.dim] += sign * w
        vec[secondary % self.dim] += sign * w * 0.5

    def vectorize(self, text: str) -> List[float]:
        toks = canonical_tokens_from_text(text)
        if not toks:
            return [1.0 / math.sqrt(self.dim)] * self.dim

        v = np.zeros(self.dim, dtype=np.float32)
        n = len(toks)
        for tok, c in Counter(toks).items():
            w = (c / n) * math.log(1 + n / c) + 1
            self._feature(v, f"tok|{tok}", w)
            for i in range(len(tok) - 2):
                self._feature(v, f"c3|{tok[i:i+3]}", w * 0.4)

        # word order carries a little signal, fading along the text
        for i, (a, b) in enumerate(zip(toks, toks[1:])):
            self._feature(v, f"bi|{a}_{b}", 1.4 / (1.0 + i * 0.1))

        return normalize(v)
