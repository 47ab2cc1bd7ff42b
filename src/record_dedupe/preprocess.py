import re
from typing import Mapping, Optional, Sequence

from .models import DetectionConfig, DocumentRecord, NormalizedKey


_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """Uppercase, drop punctuation and collapse whitespace.

    Punctuation goes first so that removing it cannot leave a double space
    behind, which keeps ``normalize`` idempotent.
    """
    if not text:
        return ""
    normalized = _PUNCTUATION_RE.sub("", text.upper())
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def normalize_address(
    address: Optional[str], city: Optional[str], zip_code: Optional[str]
) -> str:
    parts = [part for part in (address, city, zip_code) if part]
    return normalize(" ".join(parts))


def first_value(fields: Mapping[str, Optional[str]], aliases: Sequence[str]) -> Optional[str]:
    for alias in aliases:
        value = fields.get(alias)
        if value is None:
            continue
        text = str(value)
        if text.strip():
            return text
    return None


class Preprocessor:
    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        self.config = config or DetectionConfig()

    def name_for(self, document: DocumentRecord) -> str:
        return normalize(first_value(document.fields, self.config.name_fields))

    def address_for(self, document: DocumentRecord) -> str:
        fields = document.fields
        return normalize_address(
            first_value(fields, self.config.address_fields),
            first_value(fields, self.config.city_fields),
            first_value(fields, self.config.zip_fields),
        )

    def key_for(self, document: DocumentRecord) -> NormalizedKey:
        return NormalizedKey(
            doc_id=document.doc_id,
            name=self.name_for(document),
            address=self.address_for(document),
        )
