import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import FindingNotFoundError
from .models import (
    DocumentRecord,
    DuplicateFinding,
    DuplicateType,
    FindingStatus,
    NormalizedKey,
)


def _resolve_sqlite_path(database_url: str) -> Path:
    """Convert a SQLite URL or filesystem path into a Path instance."""
    if database_url.startswith("sqlite:///"):
        return Path(database_url[len("sqlite:///") :])
    return Path(database_url)


class InMemoryStore:
    """Dict-backed document and finding store for tests and offline scans."""

    def __init__(self) -> None:
        self._documents: Dict[str, DocumentRecord] = {}
        self._batch_projects: Dict[str, Optional[str]] = {}
        self._findings: Dict[str, DuplicateFinding] = {}
        self._lock = threading.Lock()

    def add_batch(self, batch_id: str, project_id: Optional[str] = None) -> None:
        self._batch_projects[batch_id] = project_id

    def add_document(self, document: DocumentRecord, project_id: Optional[str] = None) -> None:
        if project_id is not None or document.batch_id not in self._batch_projects:
            self._batch_projects[document.batch_id] = project_id
        self._documents[document.doc_id] = document

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        return self._documents.get(doc_id)

    def get_project_id(self, batch_id: str) -> Optional[str]:
        return self._batch_projects.get(batch_id)

    def list_batch_ids(self, project_id: str) -> List[str]:
        return sorted(
            batch_id
            for batch_id, owner in self._batch_projects.items()
            if owner == project_id
        )

    def find_documents(
        self, batch_ids: Sequence[str], exclude_id: str, limit: int
    ) -> List[DocumentRecord]:
        wanted = set(batch_ids)
        matches = [
            doc
            for doc_id, doc in sorted(self._documents.items())
            if doc.batch_id in wanted and doc_id != exclude_id
        ]
        return matches[:limit]

    def save_finding(self, finding: DuplicateFinding) -> str:
        finding_id = str(uuid.uuid4())
        with self._lock:
            self._findings[finding_id] = finding
        return finding_id

    def list_findings(
        self,
        document_id: Optional[str] = None,
        status: Optional[FindingStatus] = None,
    ) -> List[DuplicateFinding]:
        return [
            finding
            for finding in self._findings.values()
            if (document_id is None or finding.source_document_id == document_id)
            and (status is None or finding.status == status)
        ]

    def update_status(
        self,
        finding_id: str,
        status: FindingStatus,
        reviewed_by: Optional[str] = None,
    ) -> None:
        with self._lock:
            finding = self._findings.get(finding_id)
            if finding is None:
                raise FindingNotFoundError(finding_id)
            finding.status = status


class SqliteStore:
    """SQLite-backed store mirroring the capture database tables.

    Every call opens its own connection so the store can be shared between
    request threads.
    """

    def __init__(self, database_url: str) -> None:
        self.db_path = _resolve_sqlite_path(database_url)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_tables(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS batches (
                    id TEXT PRIMARY KEY,
                    project_id TEXT
                );
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    batch_id TEXT NOT NULL REFERENCES batches(id),
                    extracted_metadata TEXT NOT NULL DEFAULT '{}'
                );
                CREATE INDEX IF NOT EXISTS idx_documents_batch ON documents(batch_id);
                CREATE TABLE IF NOT EXISTS duplicate_detections (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    batch_id TEXT NOT NULL,
                    duplicate_type TEXT NOT NULL
                        CHECK (duplicate_type IN ('name', 'address', 'signature', 'combined')),
                    duplicate_document_id TEXT,
                    similarity_score REAL NOT NULL
                        CHECK (similarity_score >= 0 AND similarity_score <= 1),
                    duplicate_fields TEXT NOT NULL DEFAULT '{}',
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'confirmed', 'dismissed')),
                    reviewed_by TEXT,
                    reviewed_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    metadata TEXT NOT NULL DEFAULT '{}'
                );
                CREATE INDEX IF NOT EXISTS idx_duplicate_detections_document
                    ON duplicate_detections(document_id);
                CREATE INDEX IF NOT EXISTS idx_duplicate_detections_status
                    ON duplicate_detections(status);
                """
            )
            conn.commit()
        finally:
            conn.close()

    def add_batch(self, batch_id: str, project_id: Optional[str] = None) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO batches (id, project_id) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET project_id = COALESCE(excluded.project_id, project_id)
                """,
                (batch_id, project_id),
            )
            conn.commit()
        finally:
            conn.close()

    def add_document(self, document: DocumentRecord, project_id: Optional[str] = None) -> None:
        self.add_documents([document], project_id=project_id)

    def add_documents(
        self, documents: Iterable[DocumentRecord], project_id: Optional[str] = None
    ) -> None:
        conn = self._connect()
        try:
            for document in documents:
                conn.execute(
                    """
                    INSERT INTO batches (id, project_id) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET project_id = COALESCE(excluded.project_id, project_id)
                    """,
                    (document.batch_id, project_id),
                )
                conn.execute(
                    """
                    INSERT OR REPLACE INTO documents (id, batch_id, extracted_metadata)
                    VALUES (?, ?, ?)
                    """,
                    (document.doc_id, document.batch_id, json.dumps(document.fields)),
                )
            conn.commit()
        finally:
            conn.close()

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, batch_id, extracted_metadata FROM documents WHERE id = ?",
                (doc_id,),
            ).fetchone()
        finally:
            conn.close()
        return _document_from_row(row) if row is not None else None

    def get_project_id(self, batch_id: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT project_id FROM batches WHERE id = ?", (batch_id,)
            ).fetchone()
        finally:
            conn.close()
        return row["project_id"] if row is not None else None

    def list_batch_ids(self, project_id: str) -> List[str]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT id FROM batches WHERE project_id = ? ORDER BY id", (project_id,)
            ).fetchall()
        finally:
            conn.close()
        return [row["id"] for row in rows]

    def find_documents(
        self, batch_ids: Sequence[str], exclude_id: str, limit: int
    ) -> List[DocumentRecord]:
        if not batch_ids:
            return []
        placeholders = ", ".join("?" for _ in batch_ids)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"""
                SELECT id, batch_id, extracted_metadata FROM documents
                WHERE batch_id IN ({placeholders}) AND id != ?
                ORDER BY id
                LIMIT ?
                """,
                (*batch_ids, exclude_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [_document_from_row(row) for row in rows]

    def save_finding(self, finding: DuplicateFinding) -> str:
        finding_id = str(uuid.uuid4())
        metadata = {
            "current_name": finding.source_key.name,
            "candidate_name": finding.candidate_key.name,
            "current_address": finding.source_key.address,
            "candidate_address": finding.candidate_key.address,
        }
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO duplicate_detections (
                    id, document_id, batch_id, duplicate_type, duplicate_document_id,
                    similarity_score, duplicate_fields, status, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    finding_id,
                    finding.source_document_id,
                    finding.batch_id,
                    finding.duplicate_type.value,
                    finding.candidate_document_id,
                    finding.similarity_score,
                    json.dumps(finding.field_scores),
                    finding.status.value,
                    json.dumps(metadata),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return finding_id

    def list_findings(
        self,
        document_id: Optional[str] = None,
        status: Optional[FindingStatus] = None,
    ) -> List[DuplicateFinding]:
        query = "SELECT * FROM duplicate_detections WHERE 1 = 1"
        params: List[str] = []
        if document_id is not None:
            query += " AND document_id = ?"
            params.append(document_id)
        if status is not None:
            query += " AND status = ?"
            params.append(FindingStatus(status).value)
        query += " ORDER BY created_at DESC, rowid DESC"
        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [_finding_from_row(row) for row in rows]

    def update_status(
        self,
        finding_id: str,
        status: FindingStatus,
        reviewed_by: Optional[str] = None,
    ) -> None:
        reviewed_at = datetime.now(timezone.utc).isoformat()
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                UPDATE duplicate_detections
                SET status = ?, reviewed_by = ?, reviewed_at = ?
                WHERE id = ?
                """,
                (FindingStatus(status).value, reviewed_by, reviewed_at, finding_id),
            )
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()
        if updated == 0:
            raise FindingNotFoundError(finding_id)


def _document_from_row(row: sqlite3.Row) -> DocumentRecord:
    fields = json.loads(row["extracted_metadata"] or "{}")
    return DocumentRecord(doc_id=row["id"], batch_id=row["batch_id"], fields=fields)


def _finding_from_row(row: sqlite3.Row) -> DuplicateFinding:
    scores = json.loads(row["duplicate_fields"] or "{}")
    metadata = json.loads(row["metadata"] or "{}")
    return DuplicateFinding(
        finding_id=row["id"],
        source_document_id=row["document_id"],
        candidate_document_id=row["duplicate_document_id"],
        batch_id=row["batch_id"],
        duplicate_type=DuplicateType(row["duplicate_type"]),
        similarity_score=row["similarity_score"],
        field_scores={key: float(value) for key, value in scores.items()},
        source_key=NormalizedKey(
            doc_id=row["document_id"],
            name=metadata.get("current_name", ""),
            address=metadata.get("current_address", ""),
        ),
        candidate_key=NormalizedKey(
            doc_id=row["duplicate_document_id"],
            name=metadata.get("candidate_name", ""),
            address=metadata.get("candidate_address", ""),
        ),
        status=FindingStatus(row["status"]),
    )
