import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import make_document
from record_dedupe.classifier import classify
from record_dedupe.errors import FindingNotFoundError
from record_dedupe.models import DuplicateType, FindingStatus
from record_dedupe.service import DuplicateDetectionService
from record_dedupe.storage import InMemoryStore, SqliteStore


@pytest.fixture
def sqlite_store(tmp_path) -> SqliteStore:
    store = SqliteStore(f"sqlite:///{tmp_path / 'data' / 'duplicates.db'}")
    store.add_batch("batch-1", project_id="project-a")
    store.add_batch("batch-2", project_id="project-a")
    store.add_batch("batch-3", project_id="project-b")
    return store


def test_documents_round_trip(sqlite_store) -> None:
    document = make_document("doc-1", "batch-1", "Jane Doe", "12 Elm St", "Dayton", "45402")
    sqlite_store.add_document(document)

    assert sqlite_store.get_document("doc-1") == document
    assert sqlite_store.get_document("missing") is None


def test_batch_hierarchy(sqlite_store) -> None:
    sqlite_store.add_document(make_document("doc-1", "batch-4"), project_id="project-a")

    assert sqlite_store.get_project_id("batch-1") == "project-a"
    assert sqlite_store.get_project_id("unknown") is None
    assert sqlite_store.list_batch_ids("project-a") == ["batch-1", "batch-2", "batch-4"]


def test_adding_document_keeps_existing_project(sqlite_store) -> None:
    sqlite_store.add_document(make_document("doc-1", "batch-2"))

    assert sqlite_store.get_project_id("batch-2") == "project-a"


def test_find_documents_filters_orders_and_limits(sqlite_store) -> None:
    for doc_id, batch_id in [("c", "batch-1"), ("a", "batch-1"), ("b", "batch-2"), ("z", "batch-3")]:
        sqlite_store.add_document(make_document(doc_id, batch_id, name=doc_id))

    found = sqlite_store.find_documents(["batch-1", "batch-2"], exclude_id="a", limit=10)
    assert [doc.doc_id for doc in found] == ["b", "c"]

    limited = sqlite_store.find_documents(["batch-1", "batch-2"], exclude_id="a", limit=1)
    assert [doc.doc_id for doc in limited] == ["b"]

    assert sqlite_store.find_documents([], exclude_id="a", limit=10) == []


def test_findings_round_trip_and_review(sqlite_store) -> None:
    finding = classify(
        make_document("doc-1", name="Jane Doe", address="12 Elm St"),
        make_document("doc-2", name="Jane Doe", address="12 Elm St."),
    )
    finding_id = sqlite_store.save_finding(finding)

    stored = sqlite_store.list_findings(document_id="doc-1")
    assert len(stored) == 1
    assert stored[0].finding_id == finding_id
    assert stored[0].duplicate_type == DuplicateType.COMBINED
    assert stored[0].field_scores == {"name": 1.0, "address": 1.0}
    assert stored[0].candidate_key.address == "12 ELM ST"
    assert stored[0].status == FindingStatus.PENDING

    sqlite_store.update_status(finding_id, FindingStatus.DISMISSED, reviewed_by="reviewer-7")

    assert sqlite_store.list_findings(status=FindingStatus.PENDING) == []
    dismissed = sqlite_store.list_findings(status=FindingStatus.DISMISSED)
    assert [f.finding_id for f in dismissed] == [finding_id]


def test_review_of_unknown_finding(sqlite_store) -> None:
    with pytest.raises(FindingNotFoundError):
        sqlite_store.update_status("missing", FindingStatus.CONFIRMED)


def test_service_over_sqlite_store(sqlite_store) -> None:
    sqlite_store.add_documents(
        [
            make_document("src", "batch-1", "Robert Smith", "123 Main St", "Springfield", "62701"),
            make_document("dup", "batch-2", "Robert Smitt", "123 Main St", "Springfield", "62701"),
            make_document("far", "batch-3", "Robert Smith", "123 Main St", "Springfield", "62701"),
        ]
    )
    service = DuplicateDetectionService(sqlite_store, sqlite_store)

    first = service.detect("src", "batch-1", check_cross_batch=True)
    second = service.detect("src", "batch-1", check_cross_batch=True)

    assert [f.candidate_document_id for f in first.findings] == ["dup"]
    assert first.findings[0].duplicate_type == DuplicateType.COMBINED
    assert second.total_duplicates == 1
    # Re-running over the same pair records a second row.
    assert len(sqlite_store.list_findings(document_id="src")) == 2


def _pending_findings(store, count: int) -> list:
    finding_ids = []
    for idx in range(count):
        finding = classify(
            make_document(f"doc-{idx}", name="Jane Doe"),
            make_document(f"copy-{idx}", name="Jane Doe"),
        )
        finding_ids.append(store.save_finding(finding))
    return finding_ids


def test_in_memory_review_waits_for_store_lock() -> None:
    store = InMemoryStore()
    (finding_id,) = _pending_findings(store, 1)

    with store._lock:
        reviewer = threading.Thread(
            target=store.update_status, args=(finding_id, FindingStatus.CONFIRMED)
        )
        reviewer.start()
        reviewer.join(timeout=0.2)
        assert reviewer.is_alive()
        assert store.list_findings()[0].status == FindingStatus.PENDING

    reviewer.join()
    assert store.list_findings()[0].status == FindingStatus.CONFIRMED


def test_in_memory_concurrent_reviews_and_saves() -> None:
    store = InMemoryStore()
    finding_ids = _pending_findings(store, 50)

    def review(finding_id: str) -> None:
        store.update_status(finding_id, FindingStatus.DISMISSED, reviewed_by="reviewer-1")

    with ThreadPoolExecutor(max_workers=8) as pool:
        new_ids = pool.submit(_pending_findings, store, 20)
        list(pool.map(review, finding_ids))

    assert len(store.list_findings(status=FindingStatus.DISMISSED)) == 50
    assert len(store.list_findings(status=FindingStatus.PENDING)) == len(new_ids.result())


def test_in_memory_review_of_unknown_finding() -> None:
    with pytest.raises(FindingNotFoundError):
        InMemoryStore().update_status("missing", FindingStatus.CONFIRMED)
