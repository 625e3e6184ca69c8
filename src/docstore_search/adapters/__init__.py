"""Adapters layer - snapshot storage, content extraction and document sources."""

from .document_source import DocumentSource, StaticDocumentSource
from .extractors import ContentExtractor, TextFileExtractor
from .snapshot_backend import FilesystemSnapshotBackend, InMemorySnapshotBackend, SnapshotBackend


__all__ = [
    "ContentExtractor",
    "DocumentSource",
    "FilesystemSnapshotBackend",
    "InMemorySnapshotBackend",
    "SnapshotBackend",
    "StaticDocumentSource",
    "TextFileExtractor",
]
