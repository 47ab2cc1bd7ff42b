class DetectionError(Exception):
    """Base class for failures raised while detecting duplicates."""


class ValidationError(DetectionError):
    """The request is missing data needed before any comparison can run."""


class DocumentNotFoundError(DetectionError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class RetrievalError(DetectionError):
    """Candidate lookup or batch/project resolution failed in the store."""


class FindingNotFoundError(DetectionError):
    def __init__(self, finding_id: str) -> None:
        super().__init__(f"Finding {finding_id} not found")
        self.finding_id = finding_id
