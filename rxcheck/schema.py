"""
Domain records passed between the store, the resolver and the interaction engine.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class ResolutionSource(str, Enum):
    CACHED = "Cached"
    EXTERNAL = "External"


class Rating(str, Enum):
    """Interaction severity.

    - Safe: minimal clinical risk.
    - Warning: moderate; medical advice recommended, not immediately life-threatening.
    - Prohibited: severe or potentially life-threatening.
    - Unknown: no verdict could be obtained.
    """

    SAFE = "Safe"
    WARNING = "Warning"
    PROHIBITED = "Prohibited"
    UNKNOWN = "Unknown"

    @property
    def severity(self) -> int:
        """Sort rank, most severe first."""
        return _SEVERITY_ORDER[self]

    @classmethod
    def parse(cls, value: Any) -> "Rating":
        """Map free text from a provider onto the taxonomy; anything else is Unknown."""
        if isinstance(value, Rating):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        cleaned = value.strip().strip("'\"").lower()
        for rating in cls:
            if rating.value.lower() == cleaned:
                return rating
        return cls.UNKNOWN


_SEVERITY_ORDER = {
    Rating.PROHIBITED: 0,
    Rating.WARNING: 1,
    Rating.SAFE: 2,
    Rating.UNKNOWN: 3,
}


@dataclass(frozen=True)
class RawDrugAttributes:
    """What an upstream drug source returns. Every field except the name is optional."""

    name: str
    category: str = ""
    indications: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    mechanism_of_action: str = ""
    dosage: str = ""
    contraindications: Tuple[str, ...] = ()
    raw: Optional[Dict[str, Any]] = None


@dataclass
class Drug:
    id: str
    name: str
    category: str = ""
    indications: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    mechanism_of_action: str = ""
    dosage: str = ""
    contraindications: List[str] = field(default_factory=list)
    source: ResolutionSource = ResolutionSource.CACHED
    last_resolved_at: Optional[datetime] = None

    def describe(self) -> str:
        """Descriptive payload sent to the reasoning service."""
        return "\n".join([
            f"Name: {self.name}",
            f"Category: {self.category or 'Not specified'}",
            f"Indications: {'; '.join(self.indications) or 'Not specified'}",
            f"Warnings: {'; '.join(self.warnings) or 'No major warnings'}",
            f"Mechanism of Action: {self.mechanism_of_action or 'Not available'}",
            f"Dosage: {self.dosage or 'Not specified'}",
            f"Contraindications: {'; '.join(self.contraindications) or 'None listed'}",
        ])

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        data["last_resolved_at"] = (
            self.last_resolved_at.isoformat() if self.last_resolved_at else None
        )
        return data


@dataclass(frozen=True)
class VerdictPayload:
    """A reasoning service answer for one pair."""

    summary: str = ""
    details: str = ""
    rating: Rating = Rating.UNKNOWN


@dataclass(frozen=True)
class InteractionVerdict:
    pair_key: Tuple[str, str]
    summary: str
    details: str
    rating: Rating
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class PairReport:
    display_key: str
    drug1_name: str
    drug2_name: str
    summary: str
    details: str
    rating: Rating
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_key": self.display_key,
            "drug1_name": self.drug1_name,
            "drug2_name": self.drug2_name,
            "summary": self.summary,
            "details": self.details,
            "risk_rating": self.rating.value,
            "cached": self.cached,
        }


def sort_by_severity(reports: Iterable[PairReport]) -> List[PairReport]:
    """Most severe first; stable, so traversal order survives within a rating."""
    return sorted(reports, key=lambda r: r.rating.severity)


def validate_drug_name(name: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(name, str):
        return ["Drug name must be a string"]
    if not name.strip():
        return ["Drug name must be a non-empty string"]
    return []


def validate_drug_ids(ids: Sequence[Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    At least two distinct, non-empty string ids are required.
    """
    errors: List[str] = []
    if isinstance(ids, (str, bytes)) or not isinstance(ids, Sequence):
        return ["Drug ids must be a list of strings"]
    for i, v in enumerate(ids):
        if not isinstance(v, str) or not v.strip():
            errors.append(f"Drug id at position {i} must be a non-empty string")
    if errors:
        return errors
    if len(set(ids)) < 2:
        errors.append("At least two distinct drug ids are required for interaction analysis")
    return errors
