"""Query engine: ranked BM25, flat boolean, fuzzy and prefix suggestion.

Every entry point follows the same shape: analyze the query with the
indexing analyzer, collect candidate scores while holding the index's shared
lock, then filter on metadata, sort and paginate outside of it.

Ordering is by descending score with ties broken by ascending document id,
so identical inputs always produce identical pages. Ids made only of digits
compare as numbers ("2" before "10") and sort ahead of any other id.

The three scorers are deliberately not unified. BM25 scores (ranked),
summed raw term frequencies (boolean) and distance-weighted frequencies
(fuzzy) live on different scales and must not be compared across modes.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import heapq
import logging

from docstore_search.domain.filters import SearchFilters
from docstore_search.search.analyzers import Analyzer, tokenize
from docstore_search.search.boolean import BooleanQuery, parse_boolean_query
from docstore_search.search.fuzzy import CancellationToken, SearchCancelled, find_fuzzy_matches, fuzzy_weight
from docstore_search.search.index import InvertedIndex
from docstore_search.search.metadata_store import MetadataStore
from docstore_search.search.stats import BM25Parameters, bm25, calculate_idf


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedDocument:
    """Represents a scored document produced by the query engine."""

    doc_id: str
    score: float


@dataclass(frozen=True)
class QueryResult:
    """A filtered, ordered and paginated slice of scored documents."""

    documents: tuple[RankedDocument, ...]
    total: int
    terms: tuple[str, ...]
    aborted: bool = False

    @classmethod
    def empty(cls, terms: tuple[str, ...] = ()) -> QueryResult:
        return cls((), 0, terms)


class QueryEngine:
    """Runs queries against an :class:`InvertedIndex` and a :class:`MetadataStore`."""

    def __init__(
        self,
        index: InvertedIndex,
        metadata: MetadataStore,
        *,
        analyzer: Analyzer | None = None,
        parameters: BM25Parameters | None = None,
        fuzzy_check_interval: int = 256,
    ) -> None:
        self.index = index
        self.metadata = metadata
        self.analyzer = analyzer
        self.parameters = parameters or BM25Parameters()
        self.fuzzy_check_interval = fuzzy_check_interval

    def query_terms(self, text: str) -> tuple[str, ...]:
        """Return the unique analyzed terms of ``text`` in first-seen order."""
        return tuple(dict.fromkeys(tokenize(text, self.analyzer)))

    # ------------------------------------------------------------------
    # Ranked search
    # ------------------------------------------------------------------
    def search(self, query: str, filters: SearchFilters, *, limit: int, offset: int = 0) -> QueryResult:
        _check_window(limit, offset)
        terms = self.query_terms(query)
        if not terms:
            return QueryResult.empty()

        params = self.parameters
        scores: dict[str, float] = defaultdict(float)
        with self.index.reader() as view:
            total_docs = view.doc_count
            if not total_docs:
                return QueryResult.empty(terms)
            avg_length = view.average_document_length()
            for term in terms:
                postings = view.postings(term)
                if not postings:
                    continue
                idf = calculate_idf(len(postings), total_docs, mode=params.idf_mode, floor=params.idf_floor)
                for doc_id, tf in postings.items():
                    weight = bm25(tf, view.document_length(doc_id), avg_length, k1=params.k1, b=params.b)
                    scores[doc_id] += idf * weight

        return self._rank(scores, filters, terms, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Boolean search
    # ------------------------------------------------------------------
    def parse_boolean(self, query: str) -> BooleanQuery:
        return parse_boolean_query(query, self.analyzer)

    def boolean_search(self, query: str, filters: SearchFilters, *, limit: int, offset: int = 0) -> QueryResult:
        _check_window(limit, offset)
        parsed = self.parse_boolean(query)
        positive = parsed.positive_terms
        if parsed.is_empty():
            return QueryResult.empty(positive)

        scores: dict[str, float] = {}
        with self.index.reader() as view:
            if parsed.must:
                matched = _intersect(view.postings(term).keys() for term in parsed.must)
            else:
                matched = set()
                for term in parsed.should:
                    matched.update(view.postings(term).keys())
            for term in parsed.must_not:
                matched.difference_update(view.postings(term).keys())
            for doc_id in matched:
                scores[doc_id] = float(sum(view.term_frequency(doc_id, term) for term in positive))

        return self._rank(scores, filters, positive, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Fuzzy search
    # ------------------------------------------------------------------
    def fuzzy_search(
        self,
        query: str,
        filters: SearchFilters,
        *,
        max_distance: int,
        limit: int,
        offset: int = 0,
        cancellation: CancellationToken | None = None,
    ) -> QueryResult:
        """Score documents holding vocabulary terms close to the query terms.

        Each match adds ``(1 - distance / max_distance) * tf``. A document
        qualifies as soon as one of its terms lies within ``max_distance``,
        even when that weight is zero. A fired cancellation token stops the
        scan and the partial result comes back with ``aborted=True``.
        """
        _check_window(limit, offset)
        if max_distance < 0:
            raise ValueError(f"max_distance must be non-negative, got {max_distance}")
        terms = self.query_terms(query)
        if not terms:
            return QueryResult.empty()

        scores: dict[str, float] = defaultdict(float)
        matched_terms: list[str] = []
        aborted = False
        with self.index.reader() as view:
            vocabulary = view.vocabulary()
            for term in terms:
                if cancellation is not None and cancellation.is_cancelled():
                    aborted = True
                    break
                try:
                    matches = find_fuzzy_matches(
                        term,
                        vocabulary,
                        max_distance,
                        cancellation=cancellation,
                        check_interval=self.fuzzy_check_interval,
                    )
                except SearchCancelled as exc:
                    matches = exc.partial
                    aborted = True
                for vocabulary_term, distance in matches:
                    matched_terms.append(vocabulary_term)
                    weight = fuzzy_weight(distance, max_distance)
                    for doc_id, tf in view.postings(vocabulary_term).items():
                        scores[doc_id] += weight * tf
                if aborted:
                    break

        if aborted:
            logger.warning("Fuzzy search for %r aborted after scoring %d candidates", query, len(scores))
        result = self._rank(scores, filters, tuple(dict.fromkeys(matched_terms)), limit=limit, offset=offset)
        if aborted:
            return QueryResult(result.documents, result.total, result.terms, aborted=True)
        return result

    # ------------------------------------------------------------------
    # Suggest
    # ------------------------------------------------------------------
    def suggest(self, prefix: str, limit: int = 10, *, tenant_id: str | None = None) -> list[str]:
        """Vocabulary terms starting with ``prefix``, most frequent first.

        Frequency is the corpus-wide occurrence count of the term, or the
        count over ``tenant_id``'s documents when a tenant is given. Ties
        are broken alphabetically.
        """
        normalized = prefix.strip().lower()
        if not normalized or limit <= 0:
            return []

        tenant_docs: set[str] | None = None
        if tenant_id is not None:
            tenant_docs = {record.id for record in self.metadata.for_tenant(tenant_id)}
            if not tenant_docs:
                return []

        counted: list[tuple[int, str]] = []
        with self.index.reader() as view:
            for term in view.vocabulary():
                if not term.startswith(normalized):
                    continue
                if tenant_docs is None:
                    count = view.term_total(term)
                else:
                    count = sum(tf for doc_id, tf in view.postings(term).items() if doc_id in tenant_docs)
                if count > 0:
                    counted.append((count, term))

        best = heapq.nsmallest(limit, counted, key=lambda item: (-item[0], item[1]))
        return [term for _count, term in best]

    # ------------------------------------------------------------------
    # Shared ranking
    # ------------------------------------------------------------------
    def _rank(
        self,
        scores: Mapping[str, float],
        filters: SearchFilters,
        terms: tuple[str, ...],
        *,
        limit: int,
        offset: int,
    ) -> QueryResult:
        if not scores:
            return QueryResult.empty(terms)
        records = self.metadata.get_many(scores.keys())
        kept = [
            RankedDocument(doc_id=doc_id, score=score)
            for doc_id, score in scores.items()
            if filters.matches(records.get(doc_id))
        ]
        kept.sort(key=lambda entry: (-entry.score, *id_sort_key(entry.doc_id)))
        page = tuple(kept[offset : offset + limit])
        return QueryResult(page, len(kept), terms)


def id_sort_key(doc_id: str) -> tuple[int, int, str]:
    """Ascending id order, numeric for ids that are plain integers."""
    if doc_id.isascii() and doc_id.isdigit():
        return (0, int(doc_id), doc_id)
    return (1, 0, doc_id)


def _intersect(posting_keys: Iterable[Iterable[str]]) -> set[str]:
    result: set[str] | None = None
    for keys in posting_keys:
        result = set(keys) if result is None else result.intersection(keys)
        if not result:
            return set()
    return result or set()


def _check_window(limit: int, offset: int) -> None:
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")
    if offset < 0:
        raise ValueError(f"offset must be non-negative, got {offset}")
