import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .classifier import MatchClassifier
from .emitter import FindingEmitter, FindingStore
from .errors import DocumentNotFoundError, RetrievalError, ValidationError
from .models import (
    DetectionConfig,
    DetectionOutcome,
    DocumentRecord,
    DuplicateFinding,
    NormalizedKey,
    SimilarityThresholds,
)
from .preprocess import Preprocessor
from .retriever import CandidateRetriever, DocumentStore

NO_DATA_MESSAGE = "No name or address data to compare"


class DuplicateDetectionService:
    """Name/address duplicate detection: normalize, retrieve, classify, emit."""

    def __init__(
        self,
        document_store: DocumentStore,
        finding_store: FindingStore,
        config: Optional[DetectionConfig] = None,
    ) -> None:
        self.config = config or DetectionConfig()
        self.preprocessor = Preprocessor(self.config)
        self.document_store = document_store
        self.finding_store = finding_store
        self.retriever = CandidateRetriever(
            document_store, max_candidates=self.config.max_candidates
        )
        self.emitter = FindingEmitter(finding_store)

    def detect(
        self,
        document_id: Optional[str],
        batch_id: Optional[str],
        check_cross_batch: bool = False,
        thresholds: Optional[SimilarityThresholds] = None,
    ) -> DetectionOutcome:
        if not document_id or not batch_id:
            raise ValidationError("documentId and batchId are required")

        logging.info(
            "Checking for duplicates: document=%s batch=%s cross_batch=%s",
            document_id,
            batch_id,
            check_cross_batch,
        )
        source = self._load_source(document_id)
        source_key = self.preprocessor.key_for(source)
        if source_key.is_empty:
            logging.info("Document %s has no name or address data", document_id)
            return DetectionOutcome(
                source_document_id=document_id,
                findings=[],
                total_checked=0,
                message=NO_DATA_MESSAGE,
            )

        candidates = self.retriever.retrieve(document_id, batch_id, check_cross_batch)
        classifier = MatchClassifier(thresholds, self.preprocessor)
        findings = self._classify_all(classifier, source_key, batch_id, candidates.documents)

        summary = self.emitter.emit(findings, total_checked=len(candidates.documents))
        logging.info(
            "Found %d potential duplicates for document %s (%d checked)",
            len(findings),
            document_id,
            summary.total_checked,
        )
        return DetectionOutcome(
            source_document_id=document_id,
            findings=findings,
            total_checked=summary.total_checked,
            truncated=candidates.truncated,
            failures=summary.failures,
        )

    def _load_source(self, document_id: str) -> DocumentRecord:
        try:
            source = self.document_store.get_document(document_id)
        except Exception as exc:
            raise RetrievalError(f"Failed to load document {document_id}") from exc
        if source is None:
            raise DocumentNotFoundError(document_id)
        return source

    def _classify_all(
        self,
        classifier: MatchClassifier,
        source_key: NormalizedKey,
        batch_id: str,
        candidates: Sequence[DocumentRecord],
    ) -> List[DuplicateFinding]:
        def compare(candidate: DocumentRecord) -> Optional[DuplicateFinding]:
            candidate_key = self.preprocessor.key_for(candidate)
            return classifier.classify_keys(source_key, candidate_key, batch_id)

        if self.config.max_workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                # map() yields in submission order regardless of completion order.
                results = list(pool.map(compare, candidates))
        else:
            results = [compare(candidate) for candidate in candidates]
        return [finding for finding in results if finding is not None]
