import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from materials_lens.constants import IMAGE_MIME_TYPE


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> "Confidence":
        match raw:
            case str() as s:
                try:
                    return cls(s.strip().lower())
                except ValueError:
                    return cls.UNKNOWN
            case _:
                return cls.UNKNOWN


def _text(raw: Any) -> Optional[str]:
    match raw:
        case str() as s:
            return s
        case None:
            return None
        case _:
            return str(raw)


def _optional_number(raw: Any) -> Optional[float]:
    """Finite, non-negative float, or None when absent or not a number."""
    match raw:
        case bool() | None:
            return None
        case int() | float():
            value = float(raw)
        case str() as s:
            try:
                value = float(s)
            except ValueError:
                return None
        case _:
            return None
    return max(0.0, value) if math.isfinite(value) else None


def _number(raw: Any) -> float:
    match _optional_number(raw):
        case None:
            return 0.0
        case value:
            return value


def _optional_int(raw: Any) -> Optional[int]:
    match _optional_number(raw):
        case None:
            return None
        case value:
            return int(value)


@dataclass(frozen=True)
class ItemAnalysis:
    name: str
    confidence: Confidence = Confidence.UNKNOWN
    material: Optional[str] = None
    species: Optional[str] = None
    animal_count: float = 0.0
    production_summary: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ItemAnalysis":
        """Lenient decode: missing or mistyped fields fall back to defaults."""
        return cls(
            name=_text(raw.get("name")) or "",
            confidence=Confidence.parse(raw.get("confidence")),
            material=_text(raw.get("material")),
            species=_text(raw.get("species")),
            animal_count=_number(raw.get("animal_count")),
            production_summary=_text(raw.get("production_summary")),
        )


@dataclass(frozen=True)
class AnalysisSummary:
    total_estimated_animals: Optional[float] = None
    item_count: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AnalysisSummary":
        return cls(
            total_estimated_animals=_optional_number(raw.get("total_estimated_animals")),
            item_count=_optional_int(raw.get("item_count")),
        )


@dataclass(frozen=True)
class AnalysisResult:
    items: tuple[ItemAnalysis, ...] = ()
    summary: Optional[AnalysisSummary] = None

    @property
    def total_items(self) -> int:
        match self.summary:
            case AnalysisSummary(item_count=int() as count):
                return count
            case _:
                return len(self.items)

    @property
    def total_estimated_animal_count(self) -> float:
        match self.summary:
            case AnalysisSummary(total_estimated_animals=float() as total):
                return total
            case _:
                return sum(item.animal_count for item in self.items)

    @property
    def contains_animal_products(self) -> bool:
        return len(self.items) > 0


@dataclass(frozen=True)
class AnalysisRequest:
    image_bytes: bytes
    prompt_text: str
    model_id: str
    response_schema: dict[str, Any]
    mime_type: str = IMAGE_MIME_TYPE

    def __repr__(self) -> str:
        return (
            f"AnalysisRequest(model_id={self.model_id!r}, "
            f"image={len(self.image_bytes)} bytes, prompt={len(self.prompt_text)} chars)"
        )


@dataclass(frozen=True)
class RawResponse:
    """One HTTP exchange: status + body, or a network failure with no status."""
    status_code: Optional[int]
    body: str = ""
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        match self.status_code:
            case int() as code if self.error is None:
                return 200 <= code < 300
            case _:
                return False


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: Optional[int]
    response_tokens: Optional[int]
    total_tokens: Optional[int]


@dataclass(frozen=True)
class CacheEntry:
    material_name: str
    production_summary: str
