import re
from typing import List, Optional, Tuple, Pattern

from ..core.config import env
from ..core.constants import MONTHS
from ..core.types import Classification, ExtractedContent
from ..utils.text import split_sentences
from .classifier import SectorClassifier

ACTION_VERBS = (
    "bought|purchased|serviced|visited|went|got|received|paid|earned|learned|discovered|found|saw|met|"
    "completed|finished|fixed|implemented|created|updated|added|removed|resolved|built|started|launched"
)

SECTOR_BONUS = {
    "semantic": re.compile(r"\b(is|are|means|defined)\b", re.I),
    "episodic": re.compile(r"\b(yesterday|today|happened|went)\b", re.I),
    "procedural": re.compile(r"\b(step|first|then|next|how to)\b", re.I),
    "emotional": re.compile(r"\b(feel|felt|love|hate|like)\b", re.I),
    "reflective": re.compile(r"\b(think|believe|realize|learned)\b", re.I),
}

# Order matters: "I am" must be rewritten before the bare "I"
THIRD_PERSON: List[Tuple[Pattern, str]] = [(re.compile(p), r) for p, r in [
    (r"\bI am\b", "User is"),
    (r"\bI'm\b", "User is"),
    (r"\bI have\b", "User has"),
    (r"\bI've\b", "User has"),
    (r"\bI will\b", "User will"),
    (r"\bI'll\b", "User will"),
    (r"\bI would\b", "User would"),
    (r"\bI'd\b", "User would"),
    (r"\bI can\b", "User can"),
    (r"\bI could\b", "User could"),
    (r"\bI was\b", "User was"),
    (r"\bI like\b", "User likes"),
    (r"\bI love\b", "User loves"),
    (r"\bI hate\b", "User hates"),
    (r"\bI prefer\b", "User prefers"),
    (r"\bI want\b", "User wants"),
    (r"\bI need\b", "User needs"),
    (r"\bI think\b", "User thinks"),
    (r"\bI believe\b", "User believes"),
    (r"\bI feel\b", "User feels"),
    (r"\bI work\b", "User works"),
    (r"\bI live\b", "User lives"),
    (r"\bI know\b", "User knows"),
    (r"\b[Mm]y\b", "User's"),
    (r"\bme\b", "User"),
    (r"\bI\b", "User"),
]]

STRONG_PERSONAL = re.compile(r"\b(my name is|i am called|i live in|i'm from|i work (at|as|for)|allergic to)\b", re.I)

TAG_RULES: List[Tuple[str, Pattern]] = [(t, re.compile(p, re.I)) for t, p in [
    ("identity", r"\b(name|called|named)\b"),
    ("location", r"\b(live|from|location|city|country)\b"),
    ("work", r"\b(work|job|profession|career)\b"),
    ("preference", r"\b(like|love|prefer|enjoy)\b"),
    ("health", r"\b(allergic|allergy|medical|health)\b"),
    ("goals", r"\b(goal|want to|planning|building)\b"),
    ("skills", r"\b(learn|know|skill|expert)\b"),
]]

class EssenceExtractor:
    """Heuristic sentence picker used when no extraction model is around."""

    def __init__(self, classifier: SectorClassifier, max_length: Optional[int] = None):
        self.classifier = classifier
        self.max_length = max_length or env.summary_max_length

    def score_sentence(self, s: str, idx: int, sector: Optional[str] = None) -> int:
        sc = 0
        if idx == 0: sc += 10
        if idx == 1: sc += 5
        if s.startswith("#") or re.match(r"^[A-Z][A-Z\s]+:", s): sc += 8
        if re.match(r"^[A-Z][a-z]+:", s): sc += 6
        if re.search(r"\d{4}-\d{2}-\d{2}", s): sc += 7
        if re.search(rf"\b({MONTHS})\s+\d+", s, re.I): sc += 5
        if re.search(r"\$\d+|\d+\s*(miles|dollars|years|months|km|days|hours)", s): sc += 4
        if re.search(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+", s): sc += 3
        if re.search(rf"\b({ACTION_VERBS})\b", s, re.I): sc += 4
        if re.search(r"\b(who|what|when|where|why|how)\b", s, re.I): sc += 2
        if len(s) < 80: sc += 2
        if re.search(r"\b(i|my|me)\b", s, re.I): sc += 1
        bonus = SECTOR_BONUS.get(sector) if sector else None
        if bonus and bonus.search(s): sc += 3
        return sc

    def extract_essence(self, raw: str, sector: Optional[str] = None, max_len: Optional[int] = None) -> str:
        limit = max_len or self.max_length
        if len(raw) <= limit: return raw.strip()

        sents = [s for s in split_sentences(raw) if len(s) > 10]
        if not sents: return raw.strip()[:limit].strip()

        scored = [{"text": s, "score": self.score_sentence(s, idx, sector), "idx": idx} for idx, s in enumerate(sents)]
        scored.sort(key=lambda x: x["score"], reverse=True)

        selected = []
        curr_len = 0

        first = next((x for x in scored if x["idx"] == 0), None)
        if first and len(first["text"]) < limit:
            selected.append(first)
            curr_len += len(first["text"])

        for item in scored:
            if item["idx"] == 0: continue
            if curr_len + len(item["text"]) + 2 <= limit:
                selected.append(item)
                curr_len += len(item["text"]) + 2

        if not selected:
            # every sentence overflows the budget on its own, cut the best one
            return scored[0]["text"][:limit].strip()

        selected.sort(key=lambda x: x["idx"])
        return " ".join(x["text"] for x in selected)

    def extract_atomic_memories(self, raw: str) -> List[ExtractedContent]:
        out = []
        for s in split_sentences(raw):
            if len(s) <= 10: continue
            worth, _ = self.classifier.is_worth_remembering(s)
            if not worth: continue
            c = self.classifier.classify(s)
            out.append(ExtractedContent(
                content=self.to_third_person(s),
                sector=c.primary,
                confidence=self.calculate_confidence(s, c),
                tags=self.extract_tags(s),
            ))
        return out

    def to_third_person(self, text: str) -> str:
        res = text
        for pat, rep in THIRD_PERSON:
            res = pat.sub(rep, res)
        return res

    def calculate_confidence(self, text: str, c: Classification) -> float:
        conf = c.confidence
        if STRONG_PERSONAL.search(text):
            conf += 0.2
        if len(text) < 20:
            conf *= 0.7
        elif len(text) > 500:
            conf *= 0.8
        return max(0.0, min(1.0, conf))

    def extract_tags(self, text: str) -> List[str]:
        return [tag for tag, pat in TAG_RULES if pat.search(text)]
