from types import MappingProxyType
from typing import Dict, List, Literal, Mapping, Pattern, Tuple, TypedDict
import re

Sector = Literal["semantic", "episodic", "procedural", "emotional", "reflective"]

# table order is also the tie-break order during classification
SECTORS: Tuple[str, ...] = ("semantic", "episodic", "procedural", "emotional", "reflective")

class SectorCfg(TypedDict):
    decay_lambda: float
    weight: float
    patterns: Tuple[Pattern, ...]

def _compile(pats: List[str]) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.I) for p in pats)

MONTHS = "january|february|march|april|may|june|july|august|september|october|november|december"

_SECTOR_TABLE: Dict[str, SectorCfg] = {
    "semantic": {
        "decay_lambda": 0.01,
        "weight": 1.0,
        "patterns": _compile([
            r"\b(is|are|was|were)\s+(a|an|the)\b",
            r"\b(means|refers to|defined as|known as)\b",
            r"\b(fact|information|data|knowledge)\b",
            r"\b(name is|called|named)\b",
            r"\b(location|address|lives? in|from)\b",
            r"\b(works? (at|as|for)|job|profession|occupation)\b",
            r"\b(age|born|birthday)\b",
            r"\b(email|phone|contact)\b",
        ]),
    },
    "episodic": {
        "decay_lambda": 0.03,
        "weight": 1.2,
        "patterns": _compile([
            r"\b(yesterday|today|tomorrow|last week|this week)\b",
            r"\b(went to|visited|met|saw|attended)\b",
            r"\b(happened|occurred|event|experience)\b",
            r"\b(remember when|recall|the time when)\b",
            r"\b(meeting|appointment|scheduled|calendar)\b",
            r"\b(bought|purchased|ordered|received)\b",
            r"\b(trip|travel|vacation|visited)\b",
            r"\d{4}[-/]\d{2}[-/]\d{2}",
            rf"\b({MONTHS})\s+\d+",
        ]),
    },
    "procedural": {
        "decay_lambda": 0.02,
        "weight": 1.1,
        "patterns": _compile([
            r"\b(how to|steps to|guide|tutorial)\b",
            r"\b(first|then|next|finally|step \d+)\b",
            r"\b(process|procedure|method|approach)\b",
            r"\b(install|setup|configure|implement)\b",
            r"\b(use|using|usage|run|execute)\b",
            r"\b(command|code|script|function)\b",
            r"\b(click|press|select|choose|enter)\b",
        ]),
    },
    "emotional": {
        "decay_lambda": 0.05,
        "weight": 0.9,
        "patterns": _compile([
            r"\b(feel|feeling|felt|emotion)\b",
            r"\b(happy|sad|angry|frustrated|excited|anxious|worried)\b",
            r"\b(love|hate|like|dislike|prefer)\b",
            r"\b(amazing|terrible|awful|wonderful|great)\b",
            r"\b(stressed|relieved|overwhelmed|calm)\b",
            r"\b(miss|regret|appreciate|grateful)\b",
        ]),
    },
    "reflective": {
        "decay_lambda": 0.015,
        "weight": 1.0,
        "patterns": _compile([
            r"\b(believe|think|opinion|view)\b",
            r"\b(realize|realized|insight|learned)\b",
            r"\b(should|could|would|might)\b",
            r"\b(goal|aspiration|dream|vision)\b",
            r"\b(value|important|priority|matter)\b",
            r"\b(reflect|consider|ponder|wonder)\b",
            r"\b(decision|choice|chose|decided)\b",
        ]),
    },
}

SECTOR_CONFIGS: Mapping[str, SectorCfg] = MappingProxyType(_SECTOR_TABLE)

SEC_WTS = MappingProxyType({k: v["weight"] for k, v in SECTOR_CONFIGS.items()})
DECAY_LAMBDAS = MappingProxyType({k: v["decay_lambda"] for k, v in SECTOR_CONFIGS.items()})

# query sector -> memory sector; same sector is always 1.0
SECTOR_RELATIONSHIPS = MappingProxyType({
    "semantic": {"procedural": 0.8, "episodic": 0.6, "reflective": 0.7, "emotional": 0.4},
    "procedural": {"semantic": 0.8, "episodic": 0.6, "reflective": 0.6, "emotional": 0.3},
    "episodic": {"reflective": 0.8, "semantic": 0.6, "procedural": 0.6, "emotional": 0.7},
    "reflective": {"episodic": 0.8, "semantic": 0.7, "procedural": 0.6, "emotional": 0.6},
    "emotional": {"episodic": 0.7, "reflective": 0.6, "semantic": 0.4, "procedural": 0.3},
})
DEFAULT_RELATIONSHIP = 0.3

# sector -> record type for extracted facts
SECTOR_TYPES = MappingProxyType({
    "semantic": "fact",
    "episodic": "event",
    "procedural": "instruction",
    "emotional": "preference",
    "reflective": "insight",
})

# is_worth_remembering
SKIP_PATTERNS: Tuple[Pattern, ...] = _compile([
    r"^(hi|hello|hey|thanks|thank you|ok|okay|sure|yes|no|bye|goodbye)$",
    r"^(search for|find|look up|google)\s",
    r"^\s*$",
    r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$",
])

HIGH_VALUE_PATTERNS: Tuple[Pattern, ...] = _compile([
    r"\b(my name is|i am|i'm)\b",
    r"\b(i live in|i'm from|i work at|i work as)\b",
    r"\b(i like|i love|i prefer|i hate|i dislike)\b",
    r"\b(i'm building|i'm working on|my project)\b",
    r"\b(allergic to|allergy|medical|health)\b",
    r"\b(goal|want to|planning to|trying to)\b",
])
