import logging
from typing import List, Optional, Protocol, Sequence

from .errors import RetrievalError
from .models import CandidateSet, DocumentRecord


class DocumentStore(Protocol):
    """Read access to ingested documents and the batch/project hierarchy."""

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]: ...

    def get_project_id(self, batch_id: str) -> Optional[str]: ...

    def list_batch_ids(self, project_id: str) -> List[str]: ...

    def find_documents(
        self, batch_ids: Sequence[str], exclude_id: str, limit: int
    ) -> List[DocumentRecord]: ...


class CandidateRetriever:
    def __init__(self, store: DocumentStore, max_candidates: int = 500) -> None:
        if max_candidates < 1:
            raise ValueError("max_candidates must be positive")
        self.store = store
        self.max_candidates = max_candidates

    def retrieve(self, document_id: str, batch_id: str, cross_batch: bool = False) -> CandidateSet:
        try:
            batch_ids = self._scope(batch_id, cross_batch)
            # One extra row tells a full page apart from a truncated one.
            documents = self.store.find_documents(
                batch_ids, exclude_id=document_id, limit=self.max_candidates + 1
            )
        except RetrievalError:
            raise
        except Exception as exc:
            raise RetrievalError(
                f"Candidate lookup failed for document {document_id} in batch {batch_id}"
            ) from exc

        documents = [doc for doc in documents if doc.doc_id != document_id]
        truncated = len(documents) > self.max_candidates
        if truncated:
            logging.warning(
                "Candidate set for document %s truncated to %d (batches: %d)",
                document_id,
                self.max_candidates,
                len(batch_ids),
            )
            documents = documents[: self.max_candidates]
        logging.debug(
            "Retrieved %d candidates for document %s (cross_batch=%s)",
            len(documents),
            document_id,
            cross_batch,
        )
        return CandidateSet(documents=documents, truncated=truncated)

    def _scope(self, batch_id: str, cross_batch: bool) -> List[str]:
        if not cross_batch:
            return [batch_id]
        project_id = self.store.get_project_id(batch_id)
        if project_id is None:
            raise RetrievalError(f"Batch {batch_id} has no resolvable project")
        batch_ids = self.store.list_batch_ids(project_id)
        if batch_id not in batch_ids:
            batch_ids = [batch_id, *batch_ids]
        return batch_ids
