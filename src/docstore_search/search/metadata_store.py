"""Thread-safe store of document metadata keyed by document id."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import threading

from docstore_search.domain.model import DocumentMetadata


class MetadataStore:
    """Holds one :class:`DocumentMetadata` record per document id.

    Records are immutable, so readers get them without copying; the lock
    only guards the mapping itself.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, DocumentMetadata] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return str(doc_id) in self._records

    def put(self, metadata: DocumentMetadata) -> None:
        with self._lock:
            self._records[metadata.id] = metadata

    def get(self, doc_id: str) -> DocumentMetadata | None:
        with self._lock:
            return self._records.get(str(doc_id))

    def get_many(self, doc_ids: Iterable[str]) -> dict[str, DocumentMetadata]:
        with self._lock:
            records = self._records
            return {doc_id: records[doc_id] for doc_id in doc_ids if doc_id in records}

    def remove(self, doc_id: str) -> bool:
        with self._lock:
            return self._records.pop(str(doc_id), None) is not None

    def remove_many(self, doc_ids: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for doc_id in doc_ids if self._records.pop(str(doc_id), None) is not None)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def for_tenant(self, tenant_id: str) -> list[DocumentMetadata]:
        with self._lock:
            return [record for record in self._records.values() if record.tenant_id == tenant_id]

    def snapshot(self) -> dict[str, DocumentMetadata]:
        with self._lock:
            return dict(self._records)

    def restore(self, records: Mapping[str, DocumentMetadata]) -> None:
        with self._lock:
            self._records = {str(doc_id): record for doc_id, record in records.items()}

    def clear(self) -> None:
        with self._lock:
            self._records = {}
