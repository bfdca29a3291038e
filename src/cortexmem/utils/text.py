import re
from typing import Dict, List, Set, FrozenSet

STOP_WORDS: FrozenSet[str] = frozenset([
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
    "from", "as", "into", "through", "during", "before", "after", "above",
    "below", "between", "under", "again", "further", "then", "once", "here",
    "there", "when", "where", "why", "how", "all", "each", "few", "more",
    "most", "other", "some", "such", "no", "nor", "not", "only", "own",
    "same", "so", "than", "too", "very", "just", "and", "but", "if", "or",
    "because", "until", "while", "about", "against",
    "this", "that", "these", "those", "i", "me", "my", "myself", "we",
    "our", "ours", "ourselves", "you", "your", "yours", "yourself",
    "yourselves", "he", "him", "his", "himself", "she", "her", "hers",
    "herself", "it", "its", "itself", "they", "them", "their", "theirs",
    "themselves", "what", "which", "who", "whom", "am",
])

# intensifiers that change tone, not meaning; ignored by the fingerprint
FILLER_WORDS: FrozenSet[str] = frozenset([
    "really", "actually", "basically", "literally", "truly", "quite",
    "rather", "pretty", "also", "still", "even", "definitely", "totally",
    "absolutely", "simply", "certainly", "somewhat", "kinda", "sorta",
])

# applied in order; a longer phrase precedes any phrase it contains
INTENT_PHRASES: List[str] = [
    "write a mail to", "send a mail to", "write an email to", "send an email to",
    "write mail to", "send mail to", "tell me about", "can you find",
    "help me with", "i need to", "i want to", "please help me", "please",
    "can you", "could you", "what do i know about", "what is", "who is",
    "where is", "remind me about", "find information about", "search for",
]

TOK_PAT = re.compile(r"[a-z0-9]+")
WS_PAT = re.compile(r"\s+")

def tokenize(text: str) -> List[str]:
    return TOK_PAT.findall(text.lower())

def strip_intent_phrases(text: str) -> str:
    res = text.lower()
    for phrase in INTENT_PHRASES:
        res = res.replace(phrase, " ")
    return WS_PAT.sub(" ", res).strip()

def extract_keywords(text: str, min_length: int = 2) -> List[str]:
    """Unique non-stop-word tokens in first-seen order."""
    seen: Set[str] = set()
    out = []
    for tok in tokenize(text):
        if len(tok) < min_length or tok in STOP_WORDS or tok in seen:
            continue
        seen.add(tok)
        out.append(tok)
    return out

def normalize_query(query: str) -> str:
    stripped = strip_intent_phrases(query)
    return stripped or WS_PAT.sub(" ", query.lower()).strip()

def canonical_token_set(text: str) -> Set[str]:
    return {
        t for t in tokenize(text)
        if len(t) > 2 and t not in STOP_WORDS and t not in FILLER_WORDS
    }

def split_sentences(text: str) -> List[str]:
    parts = re.split(r"(?<=[.!?])\s+|\n+", text)
    return [s.strip() for s in parts if s and s.strip()]

# used by the offline embedder so near-synonyms share features
SYN_GRPS = [
    ["prefer", "like", "love", "enjoy", "favor"],
    ["meeting", "meet", "session", "call", "sync"],
    ["user", "person", "people"],
    ["task", "todo", "job"],
    ["note", "memo", "reminder"],
    ["project", "initiative", "plan"],
    ["issue", "problem", "bug"],
    ["document", "doc", "file"],
    ["work", "career", "profession", "occupation"],
]

CMAP: Dict[str, str] = {}
for grp in SYN_GRPS:
    for w in grp:
        CMAP.setdefault(w, grp[0])

STEM_RULES = [
    (re.compile(r"ies$"), "y"),
    (re.compile(r"ing$"), ""),
    (re.compile(r"ers?$"), "er"),
    (re.compile(r"ed$"), ""),
    (re.compile(r"s$"), ""),
]

def stem(tok: str) -> str:
    if len(tok) <= 3: return tok
    for pat, rep in STEM_RULES:
        if pat.search(tok):
            st = pat.sub(rep, tok)
            if len(st) >= 3: return st
    return tok

def canonicalize_token(tok: str) -> str:
    low = tok.lower()
    if low in CMAP: return CMAP[low]
    st = stem(low)
    return CMAP.get(st, st)

def canonical_tokens_from_text(text: str) -> List[str]:
    res = []
    for tok in tokenize(text):
        if tok in STOP_WORDS: continue
        can = canonicalize_token(tok)
        if len(can) > 1:
            res.append(can)
    return res
