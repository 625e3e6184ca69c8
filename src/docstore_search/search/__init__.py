"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- analyzers: Tokenizer and filters (lowercase, length, stop, suffix stemming)
- index: In-memory inverted index with incremental corpus statistics
- locking: Writer-preferring readers/writer lock guarding the index
- metadata_store: Per-document metadata records
- stats: BM25 and IDF scoring helpers
- query: Ranked, boolean, fuzzy and suggest query engine
- boolean, fuzzy: Flat boolean parsing and edit-distance matching
- snippet: Query-term highlighting
- snapshot: Versioned snapshot codec and store
"""
