from typing import Sequence

# Lexical ranking signals. Matching is substring based so "guitar"
# also hits "guitars" and a tag "music" partially hits "musician".

KEYWORD_BOOST_CAP = 0.3

def token_overlap(keywords: Sequence[str], content: str) -> float:
    if not keywords: return 0.0
    low = content.lower()
    hits = sum(1 for k in keywords if k in low)
    return hits / len(keywords)

def keyword_boost(keywords: Sequence[str], content: str, tags: Sequence[str]) -> float:
    if not keywords: return 0.0
    low = content.lower()
    tl = [t.lower() for t in tags]
    boost = 0.0

    for k in keywords:
        if k in low:
            boost += 0.1
        if k in tl:
            boost += 0.15
        for t in tl:
            if t in k or k in t:
                boost += 0.05

    return min(KEYWORD_BOOST_CAP, boost)

def tag_match(keywords: Sequence[str], tags: Sequence[str]) -> float:
    if not keywords or not tags: return 0.0
    kset = set(keywords)
    matches = 0

    for tag in tags:
        t = tag.lower()
        if t in kset:
            matches += 2
        else:
            matches += sum(1 for k in keywords if t in k or k in t)

    return min(1.0, matches / max(1, len(tags) * 2))
