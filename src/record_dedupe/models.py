from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class DuplicateType(str, Enum):
    NAME = "name"
    ADDRESS = "address"
    COMBINED = "combined"


class FindingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class DocumentRecord:
    doc_id: str
    batch_id: str
    fields: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedKey:
    doc_id: str
    name: str
    address: str

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.address


@dataclass(frozen=True)
class SimilarityThresholds:
    name: float = 0.85
    address: float = 0.90
    # Carried for callers that score signatures elsewhere; never computed here.
    signature: float = 0.85

    def __post_init__(self) -> None:
        for label in ("name", "address", "signature"):
            value = getattr(self, label)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Threshold '{label}' must be within [0, 1], got {value}")


@dataclass
class DuplicateFinding:
    source_document_id: str
    candidate_document_id: str
    batch_id: str
    duplicate_type: DuplicateType
    similarity_score: float
    field_scores: Dict[str, float]
    source_key: NormalizedKey
    candidate_key: NormalizedKey
    status: FindingStatus = FindingStatus.PENDING
    finding_id: Optional[str] = None


@dataclass
class CandidateSet:
    documents: List[DocumentRecord]
    truncated: bool = False


@dataclass
class EmissionFailure:
    finding: DuplicateFinding
    error: str


@dataclass
class EmissionSummary:
    total_checked: int
    total_emitted: int
    findings: List[DuplicateFinding]
    failures: List[EmissionFailure] = field(default_factory=list)


@dataclass
class DetectionConfig:
    max_candidates: int = 500
    max_workers: int = 1
    name_fields: Tuple[str, ...] = ("Printed_Name", "Printed Name", "name")
    address_fields: Tuple[str, ...] = ("Address", "address")
    city_fields: Tuple[str, ...] = ("City", "city")
    zip_fields: Tuple[str, ...] = ("Zip", "zip")


@dataclass
class DetectionOutcome:
    source_document_id: str
    findings: Sequence[DuplicateFinding]
    total_checked: int
    truncated: bool = False
    failures: Sequence[EmissionFailure] = ()
    message: Optional[str] = None

    @property
    def total_duplicates(self) -> int:
        return len(self.findings)
