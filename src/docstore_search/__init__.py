"""Full-text indexing and retrieval for a multi-tenant document store."""

from docstore_search.bootstrap import init_observability
from docstore_search.config import Settings, get_settings
from docstore_search.domain.filters import SearchFilters
from docstore_search.domain.model import DocumentMetadata
from docstore_search.domain.search import IndexStats, OptimizeReport, RebuildReport, ResultPage, SearchHit
from docstore_search.engine import SearchEngine
from docstore_search.exceptions import (
    InvalidFilterError,
    PersistenceError,
    SnapshotFormatError,
    UnextractableContentError,
)
from docstore_search.search.fuzzy import CancellationToken


__all__ = [
    "CancellationToken",
    "DocumentMetadata",
    "IndexStats",
    "InvalidFilterError",
    "OptimizeReport",
    "PersistenceError",
    "RebuildReport",
    "ResultPage",
    "SearchEngine",
    "SearchFilters",
    "SearchHit",
    "Settings",
    "SnapshotFormatError",
    "UnextractableContentError",
    "get_settings",
    "init_observability",
]
