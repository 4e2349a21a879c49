import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

CacheKey = Tuple[str, str, str]

class RegionState(Enum):
    IDLE = "idle"
    CHECKING = "checking"

class SubtitleCategory(Enum):
    DIALOGUE = "dialogue"
    NARRATOR = "narrator"
    ACTION = "action"
    SONG = "song"
    UNKNOWN = "unknown"

@dataclass(frozen=True)
class Bounds:
    """Screen rectangle in global desktop coordinates"""
    x: int
    y: int
    width: int
    height: int

@dataclass(frozen=True)
class SavedRegion:
    """Persisted placement of a region"""
    bounds: Bounds
    display_id: int = 0

@dataclass
class Region:
    """A rectangular screen area watched for content changes"""
    id: str
    bounds: Bounds
    display_id: int = 0
    is_active: bool = False
    last_fingerprint: Optional[str] = None
    last_text: Optional[str] = None
    # Last translation that passed confidence gating
    last_result: Optional["TranslationResult"] = None

@dataclass(frozen=True)
class SubtitleClassification:
    is_subtitle: bool
    category: SubtitleCategory
    confidence: float

@dataclass(frozen=True)
class ExtractedText:
    """Output of a text extractor for one captured image"""
    text: str
    confidence: float = 1.0

@dataclass(frozen=True)
class TranslationRequest:
    text: str
    target_language: str
    source_language: Optional[str] = None

    def cache_key(self) -> CacheKey:
        return (self.text, self.source_language or "auto", self.target_language)

@dataclass(frozen=True)
class ProviderOutput:
    """Raw answer of a translation provider before normalization"""
    translated_text: str
    confidence: float
    detected_language: Optional[str] = None

@dataclass(frozen=True)
class TranslationResult:
    """Normalized translation, immutable once produced"""
    original_text: str
    translated_text: str
    detected_language: str
    confidence: float
    provider: str
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class CacheEntry:
    result: TranslationResult
    access_count: int
    last_accessed_at: float

@dataclass(frozen=True)
class CacheStats:
    size: int
    capacity: int

@dataclass
class ProviderDescriptor:
    name: str
    enabled: bool
    priority: int
    order: int = 0

@dataclass(frozen=True)
class PerformanceStats:
    total_translations: int = 0
    cache_hits: int = 0
    rolling_avg_latency_ms: float = 0.0
    last_init_duration_ms: float = 0.0

    @property
    def cache_hit_rate(self) -> float:
        return self.cache_hits / max(self.total_translations, 1)
