"""In-memory inverted index with incrementally maintained corpus statistics.

The index owns every piece of term state:

* per-document raw term counts and document lengths,
* the inverted map ``term -> {doc_id: count}`` whose size is ``df(term)``,
* per-term corpus-wide occurrence totals (used by autocomplete),
* the total token count and a lazily cached average document length.

The vocabulary is the key set of the inverted map, so a term leaves the
vocabulary exactly when its document frequency reaches zero.

Mutations hold the exclusive side of a readers/writer lock; lookups hold the
shared side. Callers that need several lookups against one consistent state
use :meth:`InvertedIndex.reader`.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from types import MappingProxyType

from docstore_search.search.locking import ReadWriteLock


logger = logging.getLogger(__name__)

_EMPTY_POSTINGS: Mapping[str, int] = MappingProxyType({})


@dataclass(frozen=True)
class IndexSnapshot:
    """Detached copy of the per-document term counts."""

    documents: dict[str, dict[str, int]]

    @property
    def doc_count(self) -> int:
        return len(self.documents)


class IndexView:
    """Lock-free accessors used while the caller holds the shared lock."""

    __slots__ = ("_index",)

    def __init__(self, index: InvertedIndex) -> None:
        self._index = index

    @property
    def doc_count(self) -> int:
        return len(self._index._doc_terms)

    @property
    def term_count(self) -> int:
        return len(self._index._postings)

    def contains(self, doc_id: str) -> bool:
        return doc_id in self._index._doc_terms

    def doc_ids(self) -> list[str]:
        return list(self._index._doc_terms)

    def vocabulary(self) -> Iterable[str]:
        return self._index._postings.keys()

    def postings(self, term: str) -> Mapping[str, int]:
        postings = self._index._postings.get(term)
        if postings is None:
            return _EMPTY_POSTINGS
        return MappingProxyType(postings)

    def document_terms(self, doc_id: str) -> Mapping[str, int]:
        terms = self._index._doc_terms.get(doc_id)
        if terms is None:
            return _EMPTY_POSTINGS
        return MappingProxyType(terms)

    def term_frequency(self, doc_id: str, term: str) -> int:
        return self._index._doc_terms.get(doc_id, {}).get(term, 0)

    def document_frequency(self, term: str) -> int:
        return len(self._index._postings.get(term, ()))

    def document_length(self, doc_id: str) -> int:
        return self._index._doc_lengths.get(doc_id, 0)

    def term_total(self, term: str) -> int:
        return self._index._term_totals.get(term, 0)

    def average_document_length(self) -> float:
        index = self._index
        cached = index._avg_length
        if cached is None:
            cached = index._total_length / len(index._doc_lengths) if index._doc_lengths else 0.0
            index._avg_length = cached
        return cached

    def snapshot(self) -> IndexSnapshot:
        return IndexSnapshot(documents={doc_id: dict(terms) for doc_id, terms in self._index._doc_terms.items()})


class InvertedIndex:
    """Term/posting/statistics store keyed by document id."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._doc_terms: dict[str, dict[str, int]] = {}
        self._doc_lengths: dict[str, int] = {}
        self._postings: dict[str, dict[str, int]] = {}
        self._term_totals: dict[str, int] = {}
        self._total_length = 0
        self._avg_length: float | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @contextmanager
    def reader(self) -> Iterator[IndexView]:
        """Hold the shared lock and yield a view over the live state."""
        with self._lock.read():
            yield IndexView(self)

    @property
    def doc_count(self) -> int:
        with self.reader() as view:
            return view.doc_count

    @property
    def term_count(self) -> int:
        with self.reader() as view:
            return view.term_count

    def __contains__(self, doc_id: object) -> bool:
        with self.reader() as view:
            return view.contains(str(doc_id))

    def __len__(self) -> int:
        return self.doc_count

    def doc_ids(self) -> list[str]:
        with self.reader() as view:
            return view.doc_ids()

    def vocabulary(self) -> set[str]:
        with self.reader() as view:
            return set(view.vocabulary())

    def postings(self, term: str) -> dict[str, int]:
        with self.reader() as view:
            return dict(view.postings(term))

    def term_frequency(self, doc_id: str, term: str) -> int:
        with self.reader() as view:
            return view.term_frequency(str(doc_id), term)

    def document_frequency(self, term: str) -> int:
        with self.reader() as view:
            return view.document_frequency(term)

    def document_length(self, doc_id: str) -> int:
        with self.reader() as view:
            return view.document_length(str(doc_id))

    def term_total(self, term: str) -> int:
        with self.reader() as view:
            return view.term_total(term)

    def average_document_length(self) -> float:
        with self.reader() as view:
            return view.average_document_length()

    def snapshot(self) -> IndexSnapshot:
        """Copy the per-document counts under the shared lock."""
        with self.reader() as view:
            return view.snapshot()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_document(self, doc_id: str, terms: Iterable[str] | Mapping[str, int], length: int | None = None) -> None:
        """Index ``terms`` for ``doc_id``, replacing any previous version.

        ``terms`` is either the ordered term sequence of the document or a
        mapping of term to raw count. When ``length`` is given it must equal
        the number of term occurrences.
        """
        counts = _count_terms(terms)
        total = sum(counts.values())
        if length is not None and length != total:
            raise ValueError(f"Document length {length} does not match {total} term occurrences for {doc_id!r}")

        doc_id = str(doc_id)
        with self._lock.write():
            previous = self._doc_terms.get(doc_id)
            if previous is not None:
                self._drop_postings(doc_id, previous)
            for term, count in counts.items():
                self._postings.setdefault(term, {})[doc_id] = count
                self._term_totals[term] = self._term_totals.get(term, 0) + count
            self._doc_terms[doc_id] = counts
            self._doc_lengths[doc_id] = total
            self._total_length += total
            self._avg_length = None

    def remove_document(self, doc_id: str) -> bool:
        """Remove ``doc_id``; returns False when it was not indexed."""
        doc_id = str(doc_id)
        with self._lock.write():
            return self._remove_locked(doc_id)

    def remove_documents(self, doc_ids: Iterable[str]) -> int:
        """Remove several documents under a single exclusive section."""
        with self._lock.write():
            return sum(1 for doc_id in doc_ids if self._remove_locked(str(doc_id)))

    def clear(self) -> None:
        with self._lock.write():
            self._reset_locked()

    def restore(self, snapshot: IndexSnapshot) -> None:
        """Replace the whole state with the documents of ``snapshot``."""
        with self._lock.write():
            self._reset_locked()
            for doc_id, terms in snapshot.documents.items():
                counts = {term: int(count) for term, count in terms.items() if int(count) > 0}
                self._doc_terms[str(doc_id)] = counts
            self._rebuild_statistics_locked()

    def recompute_statistics(self) -> None:
        """Rebuild postings, totals and lengths from the per-document counts."""
        with self._lock.write():
            self._rebuild_statistics_locked()

    # ------------------------------------------------------------------
    # Internals (caller holds the exclusive lock)
    # ------------------------------------------------------------------
    def _remove_locked(self, doc_id: str) -> bool:
        previous = self._doc_terms.pop(doc_id, None)
        if previous is None:
            return False
        self._drop_postings(doc_id, previous)
        self._avg_length = None
        return True

    def _drop_postings(self, doc_id: str, counts: Mapping[str, int]) -> None:
        for term, count in counts.items():
            postings = self._postings.get(term)
            if postings is not None:
                postings.pop(doc_id, None)
                if not postings:
                    del self._postings[term]
            remaining = self._term_totals.get(term, 0) - count
            if remaining > 0:
                self._term_totals[term] = remaining
            else:
                self._term_totals.pop(term, None)
        self._total_length -= self._doc_lengths.pop(doc_id, 0)

    def _reset_locked(self) -> None:
        self._doc_terms = {}
        self._doc_lengths = {}
        self._postings = {}
        self._term_totals = {}
        self._total_length = 0
        self._avg_length = None

    def _rebuild_statistics_locked(self) -> None:
        postings: dict[str, dict[str, int]] = {}
        totals: dict[str, int] = {}
        lengths: dict[str, int] = {}
        for doc_id, counts in self._doc_terms.items():
            for term, count in counts.items():
                postings.setdefault(term, {})[doc_id] = count
                totals[term] = totals.get(term, 0) + count
            lengths[doc_id] = sum(counts.values())
        self._postings = postings
        self._term_totals = totals
        self._doc_lengths = lengths
        self._total_length = sum(lengths.values())
        self._avg_length = None
        logger.debug("Recomputed statistics for %d documents and %d terms", len(lengths), len(postings))


def _count_terms(terms: Iterable[str] | Mapping[str, int]) -> dict[str, int]:
    if isinstance(terms, Mapping):
        counts: dict[str, int] = {}
        for term, count in terms.items():
            value = int(count)
            if value < 0:
                raise ValueError(f"Negative count {value} for term {term!r}")
            if value:
                counts[str(term)] = value
        return counts
    return dict(Counter(str(term) for term in terms if term))
