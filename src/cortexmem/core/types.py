from typing import List, Optional, Dict, Literal
from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import Sector

MemoryType = Literal[
    "fact", "preference", "belief", "goal", "relationship", "event",
    "skill", "project", "insight", "question", "instruction",
]

def clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))

class Classification(BaseModel):
    primary: Sector
    additional: List[Sector] = Field(default_factory=list)
    confidence: float
    scores: Dict[str, float] = Field(default_factory=dict)

class Memory(BaseModel):
    id: str
    content: str
    sector: Sector
    memory_type: MemoryType = "fact"
    confidence: float = 0.5
    tags: List[str] = Field(default_factory=list)
    fingerprint: str
    embedding: Optional[List[float]] = None
    embedding_model: Optional[str] = None
    salience: float = 0.4
    decay_lambda: float
    created_at: int
    last_seen_at: int
    segment: int = 0
    source_id: str = ""
    source_app: str = ""
    is_active: bool = True
    expires_at: Optional[int] = None
    related_ids: List[str] = Field(default_factory=list)

    @field_validator("salience", "confidence", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp01(v if v is not None else 0.0)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def preview(self) -> str:
        return self.content[:100] + "..." if len(self.content) > 100 else self.content

class Waypoint(BaseModel):
    id: str
    source_id: str
    target_id: str
    weight: float
    created_at: int
    updated_at: int

    @field_validator("weight", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp01(v)

    @model_validator(mode="after")
    def _distinct(self):
        if self.source_id == self.target_id:
            raise ValueError(f"waypoint cannot link memory {self.source_id} to itself")
        return self

class AtomicFact(BaseModel):
    content: str
    memory_type: MemoryType = "fact"
    confidence: float = 0.8
    tags: List[str] = Field(default_factory=list)
    expires_at: Optional[int] = None
    # forces the sector and skips pattern scoring
    sector: Optional[Sector] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp01(v)

class SourceCapture(BaseModel):
    id: str
    text: str
    app_name: str = ""
    created_at: Optional[int] = None

class ExtractedContent(BaseModel):
    content: str
    sector: Sector
    confidence: float
    tags: List[str] = Field(default_factory=list)

    def to_fact(self) -> AtomicFact:
        from .constants import SECTOR_TYPES
        return AtomicFact(
            content=self.content,
            memory_type=SECTOR_TYPES[self.sector],
            confidence=self.confidence,
            tags=self.tags,
        )

class SearchFilters(BaseModel):
    sectors: Optional[List[Sector]] = None
    min_salience: Optional[float] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    debug: bool = False

class DebugBreakdown(BaseModel):
    similarity: float
    similarity_adjusted: float
    sector_penalty: float
    token_overlap: float
    keyword_boost: float
    tag_match: float
    recency: float
    salience: float
    waypoint_weight: float

class ScoredResult(BaseModel):
    memory: Memory
    score: float
    path: List[str]
    debug: Optional[DebugBreakdown] = None

class IngestOutcome(BaseModel):
    memory_id: Optional[str] = None
    deduplicated: bool = False
    sector: Optional[Sector] = None
    salience: float = 0.0
    waypoint_target: Optional[str] = None
    # set when the fact was dropped before reaching the store
    rejected: Optional[str] = None
