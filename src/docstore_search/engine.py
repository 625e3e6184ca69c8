"""Search Engine - caller-facing facade.

Wires the index, metadata store, query engine, highlighter and snapshot
store together behind one synchronous, thread-safe interface:

- index_document(doc, content) / remove_document(doc_id)
- search / boolean_search / fuzzy_search -> ResultPage
- suggest(prefix, limit, tenant_id)
- rebuild_index(tenant_id) / optimize_index()
- save() / load() / stats()

Every query is bound to one tenant through its filters. Highlights are
computed only for the hits of the returned page, by re-reading content
through the extractor.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import logging
import time
from typing import Any

from opentelemetry.trace import Span

from docstore_search.adapters.document_source import DocumentSource
from docstore_search.adapters.extractors import ContentExtractor, TextFileExtractor
from docstore_search.adapters.snapshot_backend import FilesystemSnapshotBackend, SnapshotBackend
from docstore_search.config import Settings, get_settings
from docstore_search.domain.filters import SearchFilters
from docstore_search.domain.model import DocumentMetadata
from docstore_search.domain.search import (
    IndexStats,
    OptimizeReport,
    RebuildReport,
    ResultPage,
    SearchHit,
    SearchMode,
)
from docstore_search.exceptions import PersistenceError, UnextractableContentError
from docstore_search.observability.context import tenant_context
from docstore_search.observability.metrics import INDEX_DOC_COUNT, SEARCH_LATENCY, record_operation, track_latency
from docstore_search.observability.tracing import create_span
from docstore_search.search.analyzers import Analyzer, get_analyzer, tokenize
from docstore_search.search.fuzzy import CancellationToken
from docstore_search.search.index import InvertedIndex
from docstore_search.search.metadata_store import MetadataStore
from docstore_search.search.query import QueryEngine, QueryResult
from docstore_search.search.snapshot import SnapshotStore
from docstore_search.search.snippet import Highlighter


logger = logging.getLogger(__name__)

FilterInput = SearchFilters | Mapping[str, Any]


class SearchEngine:
    """Full-text search over a multi-tenant document store."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        backend: SnapshotBackend | None = None,
        extractor: ContentExtractor | None = None,
        source: DocumentSource | None = None,
        analyzer: Analyzer | str | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.analyzer = analyzer if callable(analyzer) else get_analyzer(analyzer)
        self.extractor = extractor or TextFileExtractor(max_bytes=self.settings.max_content_bytes)
        self.source = source

        self.index = InvertedIndex()
        self.metadata = MetadataStore()
        self.store = SnapshotStore(
            backend or FilesystemSnapshotBackend(self.settings.index_dir),
            index_name=self.settings.index_snapshot_name,
            metadata_name=self.settings.metadata_snapshot_name,
        )
        self.queries = QueryEngine(
            self.index,
            self.metadata,
            analyzer=self.analyzer,
            parameters=self.settings.bm25_parameters(),
            fuzzy_check_interval=self.settings.fuzzy_check_interval,
        )
        self.highlighter = Highlighter(
            window_tokens=self.settings.highlight_window_tokens,
            max_chars=self.settings.highlight_max_chars,
            style=self.settings.highlight_style,
            analyzer=self.analyzer,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def index_document(self, doc: DocumentMetadata | Mapping[str, Any], content: str | None = None) -> bool:
        """Index ``doc``, replacing any previous version with the same id.

        ``content`` is the document's plain text. When omitted it is pulled
        through the extractor from ``doc.path``. Returns False, leaving the
        index untouched, when no text could be obtained.
        """
        document = doc if isinstance(doc, DocumentMetadata) else DocumentMetadata.model_validate(doc)
        with (
            tenant_context(document.tenant_id),
            create_span("index.add_document", attributes={"doc.id": document.id, "doc.mime_type": document.mime_type}),
        ):
            indexed = self._index_one(document, content)
            record_operation("add", ok=indexed)
        if indexed:
            self._after_mutation()
        return indexed

    def remove_document(self, doc_id: str) -> bool:
        """Remove ``doc_id`` from the index and the metadata store."""
        doc_id = str(doc_id)
        with create_span("index.remove_document", attributes={"doc.id": doc_id}):
            in_index = self.index.remove_document(doc_id)
            in_metadata = self.metadata.remove(doc_id)
            removed = in_index or in_metadata
            record_operation("remove", ok=removed)
        if removed:
            logger.info("Removed document %s from index", doc_id)
            self._after_mutation()
        return removed

    def rebuild_index(self, tenant_id: str | None = None) -> RebuildReport:
        """Clear and repopulate the index from the document source.

        A tenant-scoped rebuild only replaces that tenant's documents.
        Individual extraction failures are counted, never fatal.
        """
        if self.source is None:
            raise RuntimeError("rebuild_index requires a document source")
        tenant = None if tenant_id is None else str(tenant_id)
        with tenant_context(tenant), create_span("index.rebuild", attributes={"tenant.id": tenant}) as span:
            if tenant is None:
                removed = self.index.doc_count
                self.index.clear()
                self.metadata.clear()
            else:
                doc_ids = [record.id for record in self.metadata.for_tenant(tenant)]
                self.index.remove_documents(doc_ids)
                removed = self.metadata.remove_many(doc_ids)

            indexed = failed = 0
            for document in self.source.iter_documents(tenant):
                if self._index_one(document, None):
                    indexed += 1
                else:
                    failed += 1

            report = RebuildReport(tenant_id=tenant, indexed=indexed, failed=failed, removed=removed)
            span.set_attribute("rebuild.indexed", indexed)
            span.set_attribute("rebuild.failed", failed)
            record_operation("rebuild", ok=failed == 0)
        logger.info(
            "Rebuilt index for %s: %d indexed, %d failed, %d removed",
            tenant or "all tenants",
            indexed,
            failed,
            removed,
        )
        self._after_mutation()
        return report

    def optimize_index(self) -> OptimizeReport:
        """Drop documents whose content is gone, orphans on either side, and recompute statistics.

        Documents indexed from caller-supplied content without a ``path``
        have nothing to check and are kept.
        """
        with create_span("index.optimize") as span:
            missing = [
                record.id
                for record in self.metadata.snapshot().values()
                if record.path and not self.extractor.exists(record.path)
            ]
            self.index.remove_documents(missing)
            removed_missing = self.metadata.remove_many(missing)

            indexed_ids = set(self.index.doc_ids())
            metadata_ids = set(self.metadata.ids())
            removed_postings = self.index.remove_documents(sorted(indexed_ids - metadata_ids))
            removed_metadata = self.metadata.remove_many(sorted(metadata_ids - indexed_ids))
            self.index.recompute_statistics()

            report = OptimizeReport(
                removed_missing_content=removed_missing,
                removed_orphan_postings=removed_postings,
                removed_orphan_metadata=removed_metadata,
            )
            span.set_attribute("optimize.removed", report.removed_total)
            record_operation("optimize")
        logger.info(
            "Optimized index: %d missing content, %d orphan postings, %d orphan metadata records removed",
            removed_missing,
            removed_postings,
            removed_metadata,
        )
        self._after_mutation()
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def search(
        self,
        query: str,
        filters: FilterInput,
        *,
        limit: int | None = None,
        offset: int = 0,
        highlight: bool = True,
    ) -> ResultPage:
        """Ranked BM25 search."""
        resolved = _coerce_filters(filters)
        page_size = self.settings.resolve_limit(limit)
        with self._query_scope("ranked", query, resolved) as span:
            started = time.perf_counter()
            result = self.queries.search(query, resolved, limit=page_size, offset=offset)
            return self._page(query, "ranked", result, page_size, offset, started, highlight, span)

    def boolean_search(
        self,
        query: str,
        filters: FilterInput,
        *,
        limit: int | None = None,
        offset: int = 0,
        highlight: bool = True,
    ) -> ResultPage:
        """Flat ``AND``/``OR``/``NOT`` search scored by matched term frequencies."""
        resolved = _coerce_filters(filters)
        page_size = self.settings.resolve_limit(limit)
        with self._query_scope("boolean", query, resolved) as span:
            started = time.perf_counter()
            result = self.queries.boolean_search(query, resolved, limit=page_size, offset=offset)
            return self._page(query, "boolean", result, page_size, offset, started, highlight, span)

    def fuzzy_search(
        self,
        query: str,
        filters: FilterInput,
        *,
        max_distance: int | None = None,
        limit: int | None = None,
        offset: int = 0,
        cancellation: CancellationToken | None = None,
        timeout: float | None = None,
        highlight: bool = True,
    ) -> ResultPage:
        """Edit-distance search over the vocabulary.

        ``timeout`` (seconds) is a shorthand for a deadline-only
        cancellation token. An aborted scan returns the partial page with
        ``aborted=True``.
        """
        resolved = _coerce_filters(filters)
        page_size = self.settings.resolve_limit(limit)
        distance = self.settings.fuzzy_max_distance if max_distance is None else max_distance
        if cancellation is None and timeout is not None:
            cancellation = CancellationToken.with_timeout(timeout)
        with self._query_scope("fuzzy", query, resolved) as span:
            span.set_attribute("search.max_distance", distance)
            started = time.perf_counter()
            result = self.queries.fuzzy_search(
                query,
                resolved,
                max_distance=distance,
                limit=page_size,
                offset=offset,
                cancellation=cancellation,
            )
            return self._page(query, "fuzzy", result, page_size, offset, started, highlight, span)

    def suggest(self, prefix: str, limit: int = 10, *, tenant_id: str | None = None) -> list[str]:
        """Autocomplete vocabulary terms for ``prefix``."""
        with create_span("search.suggest", attributes={"search.prefix": prefix[:50], "tenant.id": tenant_id}):
            return self.queries.suggest(prefix, limit, tenant_id=None if tenant_id is None else str(tenant_id))

    def analyze(self, text: str) -> list[str]:
        """Terms ``text`` produces under this engine's analyzer."""
        return tokenize(text, self.analyzer)

    # ------------------------------------------------------------------
    # Persistence and stats
    # ------------------------------------------------------------------
    def save(self) -> None:
        """Write index and metadata snapshots.

        Raises:
            PersistenceError: If a snapshot could not be written
        """
        with create_span("index.save"):
            try:
                self.store.save(self.index, self.metadata)
            except PersistenceError:
                record_operation("save", ok=False)
                logger.error("Saving index snapshot failed", exc_info=True)
                raise
            record_operation("save")

    def load(self) -> None:
        """Replace in-memory state with the stored snapshots."""
        with create_span("index.load"):
            loaded = self.store.load()
            self.index.restore(loaded.index)
            self.metadata.restore(loaded.metadata)
            record_operation("load")
        INDEX_DOC_COUNT.labels().set(self.index.doc_count)

    def stats(self) -> IndexStats:
        index_size, metadata_size = self.store.size_bytes()
        with self.index.reader() as view:
            return IndexStats(
                doc_count=view.doc_count,
                term_count=view.term_count,
                avg_doc_length=view.average_document_length(),
                index_size_bytes=index_size,
                metadata_size_bytes=metadata_size,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _index_one(self, document: DocumentMetadata, content: str | None) -> bool:
        if content is None:
            try:
                content = self.extractor.extract(document.path, document.mime_type)
            except UnextractableContentError as exc:
                logger.warning("Failed to index document %s: %s", document.id, exc)
                return False
        if not content or not content.strip():
            logger.warning("Failed to index document %s: no text content", document.id)
            return False

        terms = tokenize(content, self.analyzer)
        self.index.add_document(document.id, terms)
        self.metadata.put(document)
        logger.info("Indexed document %s with %d terms", document.id, len(terms))
        return True

    def _after_mutation(self) -> None:
        INDEX_DOC_COUNT.labels().set(self.index.doc_count)
        if self.settings.autosave:
            self.save()

    @contextmanager
    def _query_scope(self, mode: SearchMode, query: str, filters: SearchFilters) -> Iterator[Span]:
        with (
            tenant_context(filters.tenant_id),
            create_span(
                f"search.{mode}",
                attributes={"search.query": query[:100], "tenant.id": filters.tenant_id},
            ) as span,
            track_latency(SEARCH_LATENCY, mode=mode),
        ):
            yield span

    def _page(
        self,
        query: str,
        mode: SearchMode,
        result: QueryResult,
        limit: int,
        offset: int,
        started: float,
        highlight: bool,
        span: Span,
    ) -> ResultPage:
        hits = []
        for ranked in result.documents:
            metadata = self.metadata.get(ranked.doc_id)
            snippet = self._highlight(metadata, result.terms) if highlight else ""
            hits.append(SearchHit(doc_id=ranked.doc_id, score=ranked.score, metadata=metadata, highlight=snippet))
        span.set_attribute("search.result_count", len(hits))
        span.set_attribute("search.total", result.total)
        return ResultPage(
            query=query,
            mode=mode,
            results=hits,
            total=result.total,
            limit=limit,
            offset=offset,
            took_ms=(time.perf_counter() - started) * 1000,
            aborted=result.aborted,
        )

    def _highlight(self, metadata: DocumentMetadata | None, terms: tuple[str, ...]) -> str:
        if metadata is None or not metadata.path or not terms:
            return ""
        try:
            content = self.extractor.extract(metadata.path, metadata.mime_type)
        except UnextractableContentError:
            logger.debug("Content of %s unavailable for highlighting", metadata.id)
            return ""
        return self.highlighter.highlight(content, terms)


def _coerce_filters(filters: FilterInput) -> SearchFilters:
    if isinstance(filters, SearchFilters):
        return filters
    return SearchFilters.from_mapping(filters)
