import logging
from typing import Optional

from .metrics import jaro_winkler, levenshtein_ratio
from .models import (
    DetectionConfig,
    DocumentRecord,
    DuplicateFinding,
    DuplicateType,
    FindingStatus,
    NormalizedKey,
    SimilarityThresholds,
)
from .preprocess import Preprocessor


class MatchClassifier:
    """Scores a document pair field by field and decides if it is a duplicate."""

    def __init__(
        self,
        thresholds: Optional[SimilarityThresholds] = None,
        preprocessor: Optional[Preprocessor] = None,
    ) -> None:
        self.thresholds = thresholds or SimilarityThresholds()
        self.preprocessor = preprocessor or Preprocessor()

    def classify(
        self, source: DocumentRecord, candidate: DocumentRecord
    ) -> Optional[DuplicateFinding]:
        return self.classify_keys(
            self.preprocessor.key_for(source),
            self.preprocessor.key_for(candidate),
            batch_id=source.batch_id,
        )

    def classify_keys(
        self,
        source_key: NormalizedKey,
        candidate_key: NormalizedKey,
        batch_id: str,
    ) -> Optional[DuplicateFinding]:
        # A source with no name and no address carries no signal at any threshold.
        if source_key.is_empty:
            return None

        name_score = (
            jaro_winkler(source_key.name, candidate_key.name)
            if source_key.name and candidate_key.name
            else 0.0
        )
        address_score = (
            levenshtein_ratio(source_key.address, candidate_key.address)
            if source_key.address and candidate_key.address
            else 0.0
        )

        name_flag = name_score >= self.thresholds.name
        address_flag = address_score >= self.thresholds.address
        if not name_flag and not address_flag:
            return None

        if name_flag and address_flag:
            duplicate_type = DuplicateType.COMBINED
        elif name_flag:
            duplicate_type = DuplicateType.NAME
        else:
            duplicate_type = DuplicateType.ADDRESS

        logging.debug(
            "Document %s -> %s flagged as %s: name %.3f, address %.3f",
            source_key.doc_id,
            candidate_key.doc_id,
            duplicate_type.value,
            name_score,
            address_score,
        )
        return DuplicateFinding(
            source_document_id=source_key.doc_id,
            candidate_document_id=candidate_key.doc_id,
            batch_id=batch_id,
            duplicate_type=duplicate_type,
            similarity_score=(name_score + address_score) / 2,
            field_scores={"name": name_score, "address": address_score},
            source_key=source_key,
            candidate_key=candidate_key,
            status=FindingStatus.PENDING,
        )


def classify(
    source: DocumentRecord,
    candidate: DocumentRecord,
    thresholds: Optional[SimilarityThresholds] = None,
    config: Optional[DetectionConfig] = None,
) -> Optional[DuplicateFinding]:
    classifier = MatchClassifier(thresholds, Preprocessor(config))
    return classifier.classify(source, candidate)
