import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from record_dedupe.errors import (
    DocumentNotFoundError,
    FindingNotFoundError,
    ValidationError,
)
from record_dedupe.loader import load_csv
from record_dedupe.models import (
    DetectionConfig,
    DuplicateFinding,
    FindingStatus,
    SimilarityThresholds,
)
from record_dedupe.service import DuplicateDetectionService
from record_dedupe.storage import SqliteStore

DEFAULT_DATABASE = os.environ.get("DUPLICATE_DB", "duplicates.db")
DEFAULT_SEED_CSV = os.environ.get("DUPLICATE_SEED_CSV")
DEFAULT_MAX_CANDIDATES = int(os.environ.get("DUPLICATE_MAX_CANDIDATES", "500"))
DEFAULT_MAX_WORKERS = int(os.environ.get("DUPLICATE_MAX_WORKERS", "1"))

GENERIC_FAILURE = "Failed to detect duplicates. Please try again."

app = FastAPI(title="Record Duplicate Detection Service")
service: Optional[DuplicateDetectionService] = None


class ThresholdsRequest(BaseModel):
    name: float = Field(0.85, ge=0.0, le=1.0)
    address: float = Field(0.90, ge=0.0, le=1.0)
    signature: float = Field(0.85, ge=0.0, le=1.0)


class DetectRequest(BaseModel):
    documentId: Optional[Union[str, int]] = None
    batchId: Optional[Union[str, int]] = None
    checkCrossBatch: bool = False
    thresholds: Optional[ThresholdsRequest] = None


class DuplicateFields(BaseModel):
    name: float
    address: float
    current_name: str
    candidate_name: str
    current_address: str
    candidate_address: str


class DuplicateResponse(BaseModel):
    duplicate_document_id: str
    duplicate_type: str
    similarity_score: float
    duplicate_fields: DuplicateFields


class DetectResponse(BaseModel):
    success: bool = True
    duplicates: List[DuplicateResponse]
    total_checked: int
    total_duplicates: int
    truncated: bool = False
    storage_failures: int = 0
    message: Optional[str] = None


class StoredFindingResponse(BaseModel):
    id: Optional[str]
    document_id: str
    batch_id: str
    duplicate_document_id: str
    duplicate_type: str
    similarity_score: float
    duplicate_fields: Dict[str, float]
    status: str


class ReviewRequest(BaseModel):
    status: FindingStatus
    reviewed_by: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _to_duplicate(finding: DuplicateFinding) -> DuplicateResponse:
    return DuplicateResponse(
        duplicate_document_id=finding.candidate_document_id,
        duplicate_type=finding.duplicate_type.value,
        similarity_score=finding.similarity_score,
        duplicate_fields=DuplicateFields(
            name=finding.field_scores.get("name", 0.0),
            address=finding.field_scores.get("address", 0.0),
            current_name=finding.source_key.name,
            candidate_name=finding.candidate_key.name,
            current_address=finding.source_key.address,
            candidate_address=finding.candidate_key.address,
        ),
    )


@app.on_event("startup")
async def startup_event() -> None:
    global service
    if service is not None:
        return

    store = SqliteStore(DEFAULT_DATABASE)
    if DEFAULT_SEED_CSV:
        loaded = load_csv(Path(DEFAULT_SEED_CSV), project_column="project_id")
        for item in loaded:
            store.add_document(item.record, project_id=item.project_id)
        logging.info("Seeded %d documents from %s", len(loaded), DEFAULT_SEED_CSV)
    config = DetectionConfig(
        max_candidates=DEFAULT_MAX_CANDIDATES,
        max_workers=DEFAULT_MAX_WORKERS,
    )
    service = DuplicateDetectionService(store, store, config=config)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/detect-duplicates", response_model=DetectResponse)
def detect_duplicates(req: DetectRequest):
    if not req.documentId or not req.batchId:
        return _error(400, "documentId and batchId are required")
    document_id = str(req.documentId)
    batch_id = str(req.batchId)
    if service is None:
        return _error(503, "Service not initialised")

    requested = req.thresholds or ThresholdsRequest()
    thresholds = SimilarityThresholds(
        name=requested.name,
        address=requested.address,
        signature=requested.signature,
    )
    try:
        outcome = service.detect(
            document_id,
            batch_id,
            check_cross_batch=req.checkCrossBatch,
            thresholds=thresholds,
        )
    except ValidationError as exc:
        return _error(400, str(exc))
    except DocumentNotFoundError:
        return _error(404, "Document not found")
    except Exception:
        logging.exception("Error in duplicate detection for document %s", document_id)
        return _error(500, GENERIC_FAILURE)

    duplicates = [_to_duplicate(finding) for finding in outcome.findings]
    return DetectResponse(
        duplicates=duplicates,
        total_checked=outcome.total_checked,
        total_duplicates=len(duplicates),
        truncated=outcome.truncated,
        storage_failures=len(outcome.failures),
        message=outcome.message,
    )


@app.get("/duplicates", response_model=List[StoredFindingResponse])
def list_duplicates(
    status: Optional[FindingStatus] = Query(None),
    document_id: Optional[str] = Query(None),
) -> List[StoredFindingResponse]:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    findings = service.finding_store.list_findings(document_id=document_id, status=status)
    return [
        StoredFindingResponse(
            id=finding.finding_id,
            document_id=finding.source_document_id,
            batch_id=finding.batch_id,
            duplicate_document_id=finding.candidate_document_id,
            duplicate_type=finding.duplicate_type.value,
            similarity_score=finding.similarity_score,
            duplicate_fields=finding.field_scores,
            status=finding.status.value,
        )
        for finding in findings
    ]


@app.post("/duplicates/{finding_id}/review")
def review_duplicate(finding_id: str, req: ReviewRequest) -> dict:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    if req.status == FindingStatus.PENDING:
        raise HTTPException(status_code=422, detail="Review status must be confirmed or dismissed")
    try:
        service.finding_store.update_status(finding_id, req.status, reviewed_by=req.reviewed_by)
    except FindingNotFoundError:
        raise HTTPException(status_code=404, detail="Finding not found")
    return {"status": "saved"}
