import hashlib
from ..utils.text import canonical_token_set

DUPLICATE_THRESHOLD = 3
BITS = 64

def _h64(tok: str) -> int:
    return int.from_bytes(hashlib.blake2b(tok.encode("utf-8"), digest_size=8).digest(), "big")

def compute_simhash(text: str) -> str:
    """
    64-bit SimHash over the canonical token set, as 16 hex chars.
    Each token votes on every bit with its own 64-bit digest; the sign of
    the tally picks the bit. Paraphrases sharing most tokens land within a
    few bits of each other.
    """
    tokens = canonical_token_set(text)
    if not tokens:
        # nothing canonical left, fingerprint the raw text instead
        raw = " ".join(text.lower().split())
        tokens = {raw} if raw else set()

    vec = [0] * BITS
    for t in tokens:
        h = _h64(t)
        for i in range(BITS):
            vec[i] += 1 if (h >> (BITS - 1 - i)) & 1 else -1

    out = 0
    for i in range(BITS):
        if vec[i] > 0:
            out |= 1 << (BITS - 1 - i)
    return f"{out:016x}"

def hamming_dist(h1: str, h2: str) -> int:
    if not h1 or not h2 or len(h1) != len(h2):
        return BITS
    try:
        return bin(int(h1, 16) ^ int(h2, 16)).count("1")
    except ValueError:
        return BITS

def is_duplicate_hash(h1: str, h2: str, threshold: int = DUPLICATE_THRESHOLD) -> bool:
    return hamming_dist(h1, h2) <= threshold

def is_near_duplicate(a: str, b: str, threshold: int = DUPLICATE_THRESHOLD) -> bool:
    return is_duplicate_hash(compute_simhash(a), compute_simhash(b), threshold)

__all__ = ["compute_simhash", "hamming_dist", "is_duplicate_hash", "is_near_duplicate", "DUPLICATE_THRESHOLD"]
