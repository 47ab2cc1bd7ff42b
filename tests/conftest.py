from typing import Dict, Optional

import pytest

from record_dedupe.models import DocumentRecord
from record_dedupe.storage import InMemoryStore


def make_document(
    doc_id: str,
    batch_id: str = "batch-1",
    name: Optional[str] = None,
    address: Optional[str] = None,
    city: Optional[str] = None,
    zip_code: Optional[str] = None,
) -> DocumentRecord:
    fields: Dict[str, Optional[str]] = {}
    if name is not None:
        fields["Printed_Name"] = name
    if address is not None:
        fields["Address"] = address
    if city is not None:
        fields["City"] = city
    if zip_code is not None:
        fields["Zip"] = zip_code
    return DocumentRecord(doc_id=doc_id, batch_id=batch_id, fields=fields)


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_batch("batch-1", project_id="project-a")
    store.add_batch("batch-2", project_id="project-a")
    store.add_batch("batch-3", project_id="project-b")
    return store
