import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from record_dedupe.loader import LoadedDocument, load_csv
from record_dedupe.models import DetectionConfig, DuplicateFinding, SimilarityThresholds
from record_dedupe.service import DuplicateDetectionService
from record_dedupe.storage import InMemoryStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run duplicate detection over every document of a CSV export"
    )
    parser.add_argument("dataset", type=Path, help="CSV with id, batch_id and field columns")
    parser.add_argument("output", type=Path, help="Where to write the findings CSV")
    parser.add_argument("--batch-id", help="Only scan documents of this batch")
    parser.add_argument("--project-column", help="CSV column holding the project id")
    parser.add_argument(
        "--cross-batch",
        action="store_true",
        help="Compare against all batches of the same project",
    )
    parser.add_argument("--name-threshold", type=float, default=0.85)
    parser.add_argument("--address-threshold", type=float, default=0.90)
    parser.add_argument(
        "--max-candidates",
        type=int,
        default=500,
        help="Maximum number of candidates compared per document",
    )
    parser.add_argument("--workers", type=int, default=1, help="Comparison worker threads")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    return parser.parse_args()


def build_service(
    documents: List[LoadedDocument], args: argparse.Namespace
) -> DuplicateDetectionService:
    store = InMemoryStore()
    for item in documents:
        store.add_document(item.record, project_id=item.project_id)
    config = DetectionConfig(
        max_candidates=args.max_candidates,
        max_workers=args.workers,
    )
    return DuplicateDetectionService(store, store, config=config)


def collect_findings(
    service: DuplicateDetectionService,
    documents: List[LoadedDocument],
    thresholds: SimilarityThresholds,
    cross_batch: bool,
    batch_id: Optional[str] = None,
) -> List[DuplicateFinding]:
    targets = [
        item.record
        for item in documents
        if batch_id is None or item.record.batch_id == batch_id
    ]
    findings: List[DuplicateFinding] = []
    truncated = 0
    for index, record in enumerate(targets, start=1):
        logging.debug("Scanning document %s (%d/%d)", record.doc_id, index, len(targets))
        outcome = service.detect(
            record.doc_id,
            record.batch_id,
            check_cross_batch=cross_batch,
            thresholds=thresholds,
        )
        findings.extend(outcome.findings)
        if outcome.truncated:
            truncated += 1
        if index % 100 == 0:
            logging.info("Processed %d/%d documents", index, len(targets))

    if truncated:
        logging.warning("%d documents had their candidate set truncated", truncated)
    return findings


def write_report(output_path: Path, findings: List[DuplicateFinding]) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        handle.write("document_id,duplicate_document_id,duplicate_type,similarity_score\n")
        for finding in findings:
            handle.write(
                f"{finding.source_document_id},{finding.candidate_document_id},"
                f"{finding.duplicate_type.value},{finding.similarity_score:.4f}\n"
            )


def main() -> None:
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(message)s",
    )

    logging.info("Loading documents from %s", args.dataset)
    documents = load_csv(args.dataset, project_column=args.project_column)
    if not documents:
        raise SystemExit("No documents loaded from the dataset")

    logging.info("Loaded %d documents. Building service...", len(documents))
    service = build_service(documents, args)
    thresholds = SimilarityThresholds(
        name=args.name_threshold,
        address=args.address_threshold,
    )

    logging.info("Collecting duplicate findings...")
    findings = collect_findings(
        service, documents, thresholds, args.cross_batch, batch_id=args.batch_id
    )

    logging.info("Writing %d findings to %s", len(findings), args.output)
    write_report(args.output, findings)
    logging.info("Done.")


if __name__ == "__main__":
    main()
