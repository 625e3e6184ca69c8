"""Unit tests for ranked, boolean, fuzzy and suggest queries."""

from datetime import datetime, timezone

import pytest

from docstore_search.domain.filters import SearchFilters
from docstore_search.domain.model import DocumentMetadata
from docstore_search.search.analyzers import tokenize
from docstore_search.search.fuzzy import CancellationToken
from docstore_search.search.index import InvertedIndex
from docstore_search.search.metadata_store import MetadataStore
from docstore_search.search.query import QueryEngine


CREATED = datetime(2024, 3, 1, tzinfo=timezone.utc)


def build_engine(documents: dict[str, tuple[str, str]]) -> QueryEngine:
    """``documents`` maps doc id to ``(tenant_id, text)``."""
    index = InvertedIndex()
    metadata = MetadataStore()
    for doc_id, (tenant_id, text) in documents.items():
        index.add_document(doc_id, tokenize(text))
        metadata.put(DocumentMetadata(id=doc_id, tenant_id=tenant_id, mime_type="text/plain", created_at=CREATED))
    return QueryEngine(index, metadata)


T1 = SearchFilters.build("t1")


class TestRankedSearch:
    def test_matching_documents_ranked_by_bm25(self):
        engine = build_engine(
            {
                "d1": ("t1", "budget budget budget review"),
                "d2": ("t1", "budget planning session with several other words"),
                "d3": ("t1", "holiday schedule"),
                "d4": ("t1", "office supplies"),
            }
        )
        result = engine.search("budget", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1", "d2"]
        assert result.total == 2
        assert result.documents[0].score > result.documents[1].score > 0

    def test_union_of_query_terms(self):
        engine = build_engine({"d1": ("t1", "alpha"), "d2": ("t1", "beta"), "d3": ("t1", "gamma")})
        result = engine.search("alpha beta", T1, limit=10)
        assert sorted(doc.doc_id for doc in result.documents) == ["d1", "d2"]

    def test_ties_break_by_ascending_id(self):
        engine = build_engine({"d2": ("t1", "alpha"), "d1": ("t1", "alpha"), "d3": ("t1", "alpha")})
        result = engine.search("alpha", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1", "d2", "d3"]

    def test_numeric_ids_tie_break_in_numeric_order(self):
        engine = build_engine({doc_id: ("t1", "alpha") for doc_id in ("10", "2", "d1", "1")})
        result = engine.search("alpha", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["1", "2", "10", "d1"]

    def test_boolean_ties_use_numeric_id_order(self):
        engine = build_engine({"10": ("t1", "budget"), "2": ("t1", "budget")})
        result = engine.boolean_search("budget", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["2", "10"]

    def test_scores_stay_non_negative_for_common_terms(self):
        engine = build_engine({f"d{i}": ("t1", "common") for i in range(5)})
        result = engine.search("common", T1, limit=10)
        assert result.total == 5
        assert all(doc.score > 0 for doc in result.documents)

    def test_pagination_reports_filtered_total(self):
        engine = build_engine({f"d{i}": ("t1", "alpha " * (i + 1)) for i in range(5)})
        page = engine.search("alpha", T1, limit=2, offset=2)
        assert page.total == 5
        assert len(page.documents) == 2
        full = engine.search("alpha", T1, limit=10)
        assert page.documents == full.documents[2:4]

    def test_offset_past_end(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        result = engine.search("alpha", T1, limit=10, offset=5)
        assert result.documents == ()
        assert result.total == 1

    def test_tenant_isolation(self):
        engine = build_engine({"a1": ("t1", "secret plan"), "b1": ("t2", "secret plan")})
        result = engine.search("secret", SearchFilters.build("t2"), limit=10)
        assert [doc.doc_id for doc in result.documents] == ["b1"]

    def test_unknown_tenant_is_empty(self):
        engine = build_engine({"a1": ("t1", "secret")})
        assert engine.search("secret", SearchFilters.build("nobody"), limit=10).total == 0

    def test_documents_without_metadata_never_match(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        engine.index.add_document("ghost", ["alpha"])
        result = engine.search("alpha", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1"]

    def test_empty_query_and_empty_index(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        assert engine.search("", T1, limit=10).total == 0
        assert engine.search("the and of", T1, limit=10).total == 0
        assert build_engine({}).search("alpha", T1, limit=10).total == 0

    def test_unknown_term(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        assert engine.search("zzzz", T1, limit=10).documents == ()

    def test_negative_window_rejected(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        with pytest.raises(ValueError):
            engine.search("alpha", T1, limit=-1)
        with pytest.raises(ValueError):
            engine.search("alpha", T1, limit=10, offset=-1)

    def test_query_terms_are_analyzed_and_unique(self):
        engine = build_engine({})
        assert engine.query_terms("Indexing the indexed INDEX") == ("index",)

    def test_term_frequency_raises_score(self):
        engine = build_engine({"d1": ("t1", "alpha beta beta"), "d2": ("t1", "alpha alpha beta")})
        result = engine.search("alpha", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d2", "d1"]


class TestBooleanSearch:
    CORPUS = {
        "d1": ("t1", "alpha beta"),
        "d2": ("t1", "alpha beta gamma"),
        "d3": ("t1", "alpha gamma"),
        "d4": ("t1", "beta delta"),
    }

    def test_and_not(self):
        engine = build_engine(self.CORPUS)
        result = engine.boolean_search("alpha AND beta NOT gamma", T1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1"]

    def test_or_is_union(self):
        engine = build_engine(self.CORPUS)
        result = engine.boolean_search("gamma OR delta", T1, limit=10)
        assert sorted(doc.doc_id for doc in result.documents) == ["d2", "d3", "d4"]

    def test_must_ignores_should_for_membership(self):
        engine = build_engine(self.CORPUS)
        result = engine.boolean_search("alpha AND beta OR delta", T1, limit=10)
        assert sorted(doc.doc_id for doc in result.documents) == ["d1", "d2"]

    def test_score_is_sum_of_matched_raw_frequencies(self):
        engine = build_engine({"d1": ("t1", "alpha alpha beta"), "d2": ("t1", "alpha beta beta beta")})
        result = engine.boolean_search("alpha AND beta", T1, limit=10)
        assert [(doc.doc_id, doc.score) for doc in result.documents] == [("d2", 4.0), ("d1", 3.0)]

    def test_only_negative_terms_yield_empty(self):
        engine = build_engine(self.CORPUS)
        result = engine.boolean_search("NOT gamma", T1, limit=10)
        assert result.total == 0

    def test_terms_reported_for_highlighting(self):
        engine = build_engine(self.CORPUS)
        result = engine.boolean_search("alpha AND beta NOT gamma", T1, limit=10)
        assert result.terms == ("alpha", "beta")


class TestFuzzySearch:
    def test_transposed_letters_find_term(self):
        engine = build_engine({"d1": ("t1", "file cabinet"), "d2": ("t1", "holiday")})
        result = engine.fuzzy_search("flie", T1, max_distance=2, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1"]
        assert result.documents[0].score == pytest.approx(0.5)
        assert "file" in result.terms

    def test_closer_matches_score_higher(self):
        engine = build_engine({"d1": ("t1", "budget"), "d2": ("t1", "budgie")})
        result = engine.fuzzy_search("budget", T1, max_distance=2, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["d1", "d2"]

    def test_match_at_max_distance_is_included_with_zero_weight(self):
        engine = build_engine({"d1": ("t1", "cart")})
        result = engine.fuzzy_search("card", T1, max_distance=1, limit=10)
        assert [(doc.doc_id, doc.score) for doc in result.documents] == [("d1", 0.0)]

    def test_zero_distance_behaves_like_exact_match(self):
        engine = build_engine({"d1": ("t1", "alpha alpha"), "d2": ("t1", "alphx")})
        result = engine.fuzzy_search("alpha", T1, max_distance=0, limit=10)
        assert [(doc.doc_id, doc.score) for doc in result.documents] == [("d1", 2.0)]

    def test_negative_distance_rejected(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        with pytest.raises(ValueError):
            engine.fuzzy_search("alpha", T1, max_distance=-1, limit=10)

    def test_cancelled_search_is_flagged_aborted(self):
        engine = build_engine({"d1": ("t1", "alpha")})
        token = CancellationToken()
        token.cancel()
        result = engine.fuzzy_search("alpha", T1, max_distance=1, limit=10, cancellation=token)
        assert result.aborted
        assert result.documents == ()

    def test_tenant_filter_applies(self):
        engine = build_engine({"a1": ("t1", "file"), "b1": ("t2", "file")})
        result = engine.fuzzy_search("flie", SearchFilters.build("t2"), max_distance=1, limit=10)
        assert [doc.doc_id for doc in result.documents] == ["b1"]


class TestSuggest:
    def test_orders_by_corpus_frequency_then_term(self):
        engine = build_engine(
            {
                "d1": ("t1", "test test team tech"),
                "d2": ("t1", "test team tech ten"),
                "d3": ("t1", "other words"),
            }
        )
        assert engine.suggest("te") == ["test", "team", "tech", "ten"]

    def test_limit(self):
        engine = build_engine({"d1": ("t1", "test test team tech ten")})
        assert engine.suggest("te", limit=2) == ["test", "team"]

    def test_prefix_is_lowercased(self):
        engine = build_engine({"d1": ("t1", "budget")})
        assert engine.suggest("BUD") == ["budget"]

    def test_empty_prefix_or_zero_limit(self):
        engine = build_engine({"d1": ("t1", "budget")})
        assert engine.suggest("") == []
        assert engine.suggest("bu", limit=0) == []

    def test_tenant_scope_recounts(self):
        engine = build_engine(
            {
                "a1": ("t1", "team team team"),
                "b1": ("t2", "tech tech team"),
            }
        )
        assert engine.suggest("te") == ["team", "tech"]
        assert engine.suggest("te", tenant_id="t2") == ["tech", "team"]
        assert engine.suggest("te", tenant_id="t3") == []
