import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .models import DocumentRecord


@dataclass
class LoadedDocument:
    record: DocumentRecord
    project_id: Optional[str] = None


def load_jsonl(path: Path) -> List[LoadedDocument]:
    documents: List[LoadedDocument] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            payload = json.loads(line)
            fields = payload.get("fields")
            if fields is None:
                fields = {
                    k: v
                    for k, v in payload.items()
                    if k not in {"id", "batch_id", "project_id"}
                }
            documents.append(
                LoadedDocument(
                    record=DocumentRecord(
                        doc_id=str(payload["id"]),
                        batch_id=str(payload["batch_id"]),
                        fields=_stringify(fields),
                    ),
                    project_id=_optional_str(payload.get("project_id")),
                )
            )
    return documents


def load_csv(
    path: Path,
    id_column: str = "id",
    batch_column: str = "batch_id",
    project_column: Optional[str] = None,
) -> List[LoadedDocument]:
    frame = pd.read_csv(path, dtype=str)
    reserved = {id_column, batch_column}
    if project_column:
        reserved.add(project_column)
    documents: List[LoadedDocument] = []
    for idx, (_, row) in enumerate(frame.iterrows(), start=1):
        fields = {
            column: str(row[column])
            for column in frame.columns
            if column not in reserved and not pd.isna(row[column])
        }
        project_id = (
            str(row[project_column])
            if project_column and not pd.isna(row[project_column])
            else None
        )
        documents.append(
            LoadedDocument(
                record=DocumentRecord(
                    doc_id=str(row[id_column]),
                    batch_id=str(row[batch_column]),
                    fields=fields,
                ),
                project_id=project_id,
            )
        )
        if idx % 1000 == 0:
            logging.debug("Loaded %d rows from %s", idx, path)
    return documents


def _stringify(fields: Dict[str, object]) -> Dict[str, Optional[str]]:
    return {key: _optional_str(value) for key, value in fields.items()}


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)
