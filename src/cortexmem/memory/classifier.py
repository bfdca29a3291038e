from typing import Mapping, Optional, Tuple

from ..core.constants import SECTOR_CONFIGS, SectorCfg, SKIP_PATTERNS, HIGH_VALUE_PATTERNS
from ..core.types import Classification

DEFAULT_SECTOR = "semantic"
NO_MATCH_CONFIDENCE = 0.2

class SectorClassifier:
    """
    Regex scorer over the precompiled sector table.
    Pure and side-effect free; one instance is built at startup and shared.
    """
    def __init__(self, configs: Mapping[str, SectorCfg] = SECTOR_CONFIGS):
        self.configs = configs

    def classify(self, content: str, sector: Optional[str] = None) -> Classification:
        if sector and sector in self.configs:
            return Classification(primary=sector, additional=[], confidence=1.0, scores={sector: 1.0})

        scores = {k: 0.0 for k in self.configs}
        for sec, cfg in self.configs.items():
            score = 0.0
            for pat in cfg["patterns"]:
                n = sum(1 for _ in pat.finditer(content))
                if n:
                    score += n * cfg["weight"]
            scores[sec] = score

        # stable sort: ties keep table order
        ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
        primary, p_score = ranked[0]
        if p_score <= 0:
            return Classification(primary=DEFAULT_SECTOR, additional=[], confidence=NO_MATCH_CONFIDENCE, scores=scores)

        thresh = max(1.0, p_score * 0.3)
        additional = [s for s, sc in ranked[1:] if sc > 0 and sc >= thresh]

        second = ranked[1][1] if len(ranked) > 1 else 0.0
        confidence = min(1.0, p_score / (p_score + second + 1))

        return Classification(primary=primary, additional=additional, confidence=confidence, scores=scores)

    def is_worth_remembering(self, content: str) -> Tuple[bool, str]:
        trimmed = content.strip()
        if len(trimmed) < 10:
            return False, "Text too short"

        low = trimmed.lower()
        for pat in SKIP_PATTERNS:
            if pat.search(low):
                return False, "Common phrase or command"

        for pat in HIGH_VALUE_PATTERNS:
            if pat.search(low):
                return True, "Contains personal information"

        if len(trimmed) >= 20:
            return True, "Sufficient content length"
        return False, "No significant content detected"

    def decay_lambda(self, sector: str) -> float:
        cfg = self.configs.get(sector) or self.configs[DEFAULT_SECTOR]
        return cfg["decay_lambda"]
