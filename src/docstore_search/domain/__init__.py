"""Domain layer - document metadata, filters and result value objects.

This layer has no infrastructure dependencies: it holds immutable pydantic
models and plain predicates shared by the search stack and its callers.
"""

from docstore_search.domain.filters import (
    DateRangeFilter,
    FolderFilter,
    InvalidFilterError,
    MimeFilter,
    SearchFilters,
    SizeRangeFilter,
    TenantFilter,
)
from docstore_search.domain.model import DocumentMetadata
from docstore_search.domain.search import (
    IndexStats,
    OptimizeReport,
    RebuildReport,
    ResultPage,
    SearchHit,
    SearchMode,
)


__all__ = [
    "DateRangeFilter",
    "DocumentMetadata",
    "FolderFilter",
    "IndexStats",
    "InvalidFilterError",
    "MimeFilter",
    "OptimizeReport",
    "RebuildReport",
    "ResultPage",
    "SearchFilters",
    "SearchHit",
    "SearchMode",
    "SizeRangeFilter",
    "TenantFilter",
]
