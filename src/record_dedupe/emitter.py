import logging
from typing import List, Optional, Protocol, Sequence

from .models import DuplicateFinding, EmissionFailure, EmissionSummary, FindingStatus


class FindingStore(Protocol):
    """Persistence for duplicate findings awaiting review."""

    def save_finding(self, finding: DuplicateFinding) -> str: ...

    def list_findings(
        self,
        document_id: Optional[str] = None,
        status: Optional[FindingStatus] = None,
    ) -> List[DuplicateFinding]: ...

    def update_status(
        self,
        finding_id: str,
        status: FindingStatus,
        reviewed_by: Optional[str] = None,
    ) -> None: ...


class FindingEmitter:
    def __init__(self, store: FindingStore) -> None:
        self.store = store

    def emit(self, findings: Sequence[DuplicateFinding], total_checked: int) -> EmissionSummary:
        emitted: List[DuplicateFinding] = []
        failures: List[EmissionFailure] = []
        for finding in findings:
            try:
                finding.finding_id = self.store.save_finding(finding)
            except Exception as exc:
                logging.exception(
                    "Failed to store finding %s -> %s",
                    finding.source_document_id,
                    finding.candidate_document_id,
                )
                failures.append(EmissionFailure(finding=finding, error=str(exc)))
                continue
            emitted.append(finding)

        if failures:
            logging.warning(
                "Stored %d of %d findings; %d failed",
                len(emitted),
                len(findings),
                len(failures),
            )
        return EmissionSummary(
            total_checked=total_checked,
            total_emitted=len(emitted),
            findings=emitted,
            failures=failures,
        )


def emit_findings(
    store: FindingStore, findings: Sequence[DuplicateFinding], total_checked: int
) -> EmissionSummary:
    return FindingEmitter(store).emit(findings, total_checked)
