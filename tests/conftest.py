"""Shared test fixtures and configuration."""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docstore_search.adapters.document_source import StaticDocumentSource
from docstore_search.adapters.snapshot_backend import InMemorySnapshotBackend
from docstore_search.config import Settings
from docstore_search.domain.model import DocumentMetadata
from docstore_search.engine import SearchEngine
from docstore_search.exceptions import UnextractableContentError


BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeExtractor:
    """Serves content from a dict keyed by path; unknown paths are unextractable."""

    def __init__(self, contents: dict[str, str] | None = None) -> None:
        self.contents = dict(contents or {})
        self.calls: list[str] = []

    def extract(self, path: str, mime_type: str) -> str:
        self.calls.append(path)
        if path not in self.contents:
            raise UnextractableContentError(f"no content at {path}")
        return self.contents[path]

    def exists(self, path: str) -> bool:
        return path in self.contents


def build_doc(doc_id: str, tenant_id: str = "t1", **overrides) -> DocumentMetadata:
    fields = {
        "id": doc_id,
        "tenant_id": tenant_id,
        "path": f"/files/{tenant_id}/{doc_id}.txt",
        "name": f"{doc_id}.txt",
        "mime_type": "text/plain",
        "size_bytes": 100,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    fields.update(overrides)
    return DocumentMetadata(**fields)


@pytest.fixture
def make_doc() -> Callable[..., DocumentMetadata]:
    return build_doc


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(index_dir=tmp_path / "index", log_json=False, _env_file=None)


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def backend() -> InMemorySnapshotBackend:
    return InMemorySnapshotBackend()


@pytest.fixture
def source() -> StaticDocumentSource:
    return StaticDocumentSource()


@pytest.fixture
def engine(settings, backend, extractor, source) -> SearchEngine:
    return SearchEngine(settings, backend=backend, extractor=extractor, source=source)


@pytest.fixture
def add_doc(engine: SearchEngine, extractor: FakeExtractor) -> Callable[..., DocumentMetadata]:
    """Index ``content`` for a new document through the extractor."""

    def _add(doc_id: str, content: str, tenant_id: str = "t1", **overrides) -> DocumentMetadata:
        doc = build_doc(doc_id, tenant_id, **overrides)
        extractor.contents[doc.path] = content
        assert engine.index_document(doc)
        return doc

    return _add
