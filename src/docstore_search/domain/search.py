"""Domain models returned by the search engine.

Value objects are immutable so a page handed to a caller never changes
underneath it.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from docstore_search.domain.model import DocumentMetadata


SearchMode = Literal["ranked", "boolean", "fuzzy"]


class SearchHit(BaseModel):
    """A single scored document.

    ``score`` is only comparable with other hits of the same ``ResultPage``:
    ranked pages carry BM25 scores, boolean pages the sum of matched raw
    term frequencies, fuzzy pages distance-weighted frequencies.
    """

    model_config = ConfigDict(frozen=True)

    doc_id: str
    score: float
    metadata: DocumentMetadata | None = None
    highlight: str = ""


class ResultPage(BaseModel):
    """One page of results plus the total number of filtered matches."""

    model_config = ConfigDict(frozen=True)

    query: str
    mode: SearchMode
    results: list[SearchHit] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    took_ms: float = 0.0
    aborted: bool = False

    @classmethod
    def empty(cls, query: str, mode: SearchMode, *, limit: int = 0, offset: int = 0) -> "ResultPage":
        return cls(query=query, mode=mode, limit=limit, offset=offset)

    @property
    def doc_ids(self) -> list[str]:
        return [hit.doc_id for hit in self.results]


class IndexStats(BaseModel):
    """Size and shape of the index."""

    model_config = ConfigDict(frozen=True)

    doc_count: int
    term_count: int
    avg_doc_length: float
    index_size_bytes: int
    metadata_size_bytes: int = 0


class RebuildReport(BaseModel):
    """Outcome of a bulk re-index from the document source."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str | None = None
    indexed: int = 0
    failed: int = 0
    removed: int = 0

    @property
    def attempted(self) -> int:
        return self.indexed + self.failed


class OptimizeReport(BaseModel):
    """Outcome of garbage-collecting documents whose content disappeared."""

    model_config = ConfigDict(frozen=True)

    removed_missing_content: int = 0
    removed_orphan_postings: int = 0
    removed_orphan_metadata: int = 0

    @property
    def removed_total(self) -> int:
        return self.removed_missing_content + self.removed_orphan_postings + self.removed_orphan_metadata
