import pytest

from conftest import make_document
from record_dedupe.classifier import MatchClassifier, classify
from record_dedupe.models import DuplicateType, FindingStatus, SimilarityThresholds


def test_identical_names_flag_name_duplicate() -> None:
    source = make_document("doc-1", name="Robert Smith", address="1 Oak Ave", city="Dayton")
    candidate = make_document("doc-2", name="ROBERT SMITH", address="77 Pine Rd", city="Toledo")

    finding = classify(source, candidate)

    assert finding is not None
    assert finding.duplicate_type == DuplicateType.NAME
    assert finding.field_scores["name"] == 1.0
    assert finding.status == FindingStatus.PENDING
    assert finding.source_document_id == "doc-1"
    assert finding.candidate_document_id == "doc-2"
    assert finding.batch_id == "batch-1"


def test_name_typo_flags_name_duplicate_with_defaults() -> None:
    source = make_document("doc-1", name="Robert Smith")
    candidate = make_document("doc-2", name="Robert Smitt")

    finding = classify(source, candidate)

    assert finding is not None
    assert finding.duplicate_type == DuplicateType.NAME
    assert finding.field_scores["name"] >= 0.85
    assert finding.field_scores["address"] == 0.0
    assert finding.similarity_score == pytest.approx(finding.field_scores["name"] / 2)


def test_expanded_street_suffix_flags_address_duplicate() -> None:
    source = make_document(
        "doc-1", name="Alice Walker", address="123 Main St", city="Springfield", zip_code="62701"
    )
    candidate = make_document(
        "doc-2", name="Zed Quinn", address="123 Main Street", city="Springfield", zip_code="62701"
    )

    finding = classify(source, candidate, SimilarityThresholds(address=0.85))

    assert finding is not None
    assert finding.duplicate_type == DuplicateType.ADDRESS
    assert finding.field_scores["address"] == pytest.approx(1 - 4 / 33)
    assert finding.source_key.address == "123 MAIN ST SPRINGFIELD 62701"
    assert finding.candidate_key.address == "123 MAIN STREET SPRINGFIELD 62701"


def test_expanded_street_suffix_stays_below_default_address_threshold() -> None:
    source = make_document("doc-1", address="123 Main St", city="Springfield", zip_code="62701")
    candidate = make_document("doc-2", address="123 Main Street", city="Springfield", zip_code="62701")

    assert classify(source, candidate) is None


def test_name_and_address_match_is_combined() -> None:
    source = make_document("doc-1", name="Jane Doe", address="12 Elm St", city="Dayton", zip_code="45402")
    candidate = make_document("doc-2", name="Jane Doe", address="12 Elm St.", city="Dayton", zip_code="45402")

    finding = classify(source, candidate)

    assert finding is not None
    assert finding.duplicate_type == DuplicateType.COMBINED
    assert finding.similarity_score == 1.0


def test_similarity_score_is_mean_of_both_fields() -> None:
    source = make_document("doc-1", name="Jane Doe", address="12 Elm St", city="Dayton")
    candidate = make_document("doc-2", name="Jane Doe", address="900 Broadway", city="Chicago")

    finding = classify(source, candidate)

    assert finding is not None
    assert finding.duplicate_type == DuplicateType.NAME
    name_score = finding.field_scores["name"]
    address_score = finding.field_scores["address"]
    assert 0.0 < address_score < 0.9
    assert finding.similarity_score == pytest.approx((name_score + address_score) / 2)


def test_unrelated_documents_produce_no_finding() -> None:
    source = make_document("doc-1", name="Jane Doe", address="12 Elm St", city="Dayton", zip_code="45402")
    candidate = make_document("doc-2", name="Xavier Quill", address="900 Broadway", city="Chicago", zip_code="60601")

    assert classify(source, candidate) is None


@pytest.mark.parametrize("name_threshold, address_threshold", [(0.0, 0.0), (0.5, 0.5), (1.0, 1.0)])
def test_empty_source_never_flags(name_threshold: float, address_threshold: float) -> None:
    source = make_document("doc-1", name="  ", address="...")
    candidate = make_document("doc-2", name="Jane Doe", address="12 Elm St")

    thresholds = SimilarityThresholds(name=name_threshold, address=address_threshold)
    assert classify(source, candidate, thresholds) is None


def test_empty_candidate_is_flagged_at_zero_thresholds() -> None:
    source = make_document("doc-1", name="Jane Doe", address="12 Elm St")
    candidate = make_document("doc-2")

    finding = classify(source, candidate, SimilarityThresholds(name=0.0, address=0.0))
    assert finding is not None
    assert finding.duplicate_type == DuplicateType.COMBINED
    assert finding.similarity_score == 0.0
    assert finding.field_scores == {"name": 0.0, "address": 0.0}


def test_empty_candidate_not_flagged_at_default_thresholds() -> None:
    source = make_document("doc-1", name="Jane Doe", address="12 Elm St")

    assert classify(source, make_document("doc-2")) is None


def test_zero_thresholds_flag_pairs_without_overlapping_fields() -> None:
    source = make_document("doc-1", name="Jane Doe")
    candidate = make_document("doc-2", address="12 Elm St")

    # Neither field is present on both sides, both scores are 0 and 0 >= 0.
    finding = classify(source, candidate, SimilarityThresholds(name=0.0, address=0.0))
    assert finding is not None
    assert finding.duplicate_type == DuplicateType.COMBINED
    assert finding.similarity_score == 0.0


def test_threshold_is_inclusive() -> None:
    source = make_document("doc-1", name="Robert Smith")
    candidate = make_document("doc-2", name="Robert Smitt")
    classifier = MatchClassifier()
    score = classifier.classify(source, candidate).field_scores["name"]

    at_score = MatchClassifier(SimilarityThresholds(name=score))
    assert at_score.classify(source, candidate) is not None


def test_raising_name_threshold_only_removes_name_findings() -> None:
    source = make_document("doc-0", name="Robert Smith", address="1 Oak Ave", city="Dayton")
    candidates = [
        make_document("doc-1", name="Robert Smith", address="1 Oak Ave", city="Dayton"),
        make_document("doc-2", name="Robert Smitt", address="55 Lake Dr", city="Akron"),
        make_document("doc-3", name="Roberta Smythe", address="55 Lake Dr", city="Akron"),
        make_document("doc-4", name="Lois Lane", address="1 Oak Ave.", city="Dayton"),
        make_document("doc-5", name="Bob Smith", address="1 Oak Avenue", city="Dayton"),
    ]

    def flagged(threshold: float) -> set:
        classifier = MatchClassifier(SimilarityThresholds(name=threshold))
        result = set()
        for candidate in candidates:
            finding = classifier.classify(source, candidate)
            if finding is not None and finding.duplicate_type != DuplicateType.ADDRESS:
                result.add(candidate.doc_id)
        return result

    previous = flagged(0.0)
    for threshold in (0.5, 0.7, 0.85, 0.9, 0.95, 0.99, 1.0):
        current = flagged(threshold)
        assert current <= previous
        previous = current


def test_invalid_threshold_is_rejected() -> None:
    with pytest.raises(ValueError):
        SimilarityThresholds(name=1.5)
    with pytest.raises(ValueError):
        SimilarityThresholds(address=-0.1)
