"""Sources of document metadata used to rebuild the index."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from docstore_search.domain.model import DocumentMetadata


@runtime_checkable
class DocumentSource(Protocol):
    def iter_documents(self, tenant_id: str | None = None) -> Iterator[DocumentMetadata]:
        """Yield every known document, or only ``tenant_id``'s documents."""
        ...


class StaticDocumentSource:
    """Serves a fixed list of documents, e.g. a catalogue export."""

    def __init__(self, documents: Iterable[DocumentMetadata] = ()) -> None:
        self._documents = list(documents)

    def add(self, document: DocumentMetadata) -> None:
        self._documents.append(document)

    def iter_documents(self, tenant_id: str | None = None) -> Iterator[DocumentMetadata]:
        for document in self._documents:
            if tenant_id is None or document.tenant_id == str(tenant_id):
                yield document
