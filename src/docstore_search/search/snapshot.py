"""Versioned snapshot codec and the store that saves and loads it.

Index and metadata are persisted as two independent orjson blobs::

    {"schema_version": 1, "kind": "index", "saved_at": "...",
     "documents": {"<doc_id>": {"terms": {"<term>": <count>}, "length": <n>}}}

    {"schema_version": 1, "kind": "metadata", "saved_at": "...",
     "documents": {"<doc_id>": {<DocumentMetadata fields>}}}

Blobs without ``schema_version`` come from the legacy service, which keyed
documents the same way but stored term frequencies as fractions of the
document length, timestamps as unix seconds and the file size as ``size``.
They are migrated on load and rewritten in the current format on the next
save.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import threading
from typing import Any, TypeVar

import orjson
from pydantic import ValidationError

from docstore_search.adapters.snapshot_backend import SnapshotBackend
from docstore_search.domain.model import DocumentMetadata
from docstore_search.exceptions import PersistenceError, SnapshotFormatError
from docstore_search.search.index import IndexSnapshot, InvertedIndex
from docstore_search.search.metadata_store import MetadataStore


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
INDEX_KIND = "index"
METADATA_KIND = "metadata"

T = TypeVar("T")


# ----------------------------------------------------------------------
# Codec
# ----------------------------------------------------------------------
def encode_index(snapshot: IndexSnapshot, *, saved_at: datetime | None = None) -> bytes:
    documents = {
        doc_id: {"terms": terms, "length": sum(terms.values())} for doc_id, terms in snapshot.documents.items()
    }
    return _encode(INDEX_KIND, documents, saved_at)


def encode_metadata(records: Mapping[str, DocumentMetadata], *, saved_at: datetime | None = None) -> bytes:
    documents = {doc_id: record.model_dump(mode="json") for doc_id, record in records.items()}
    return _encode(METADATA_KIND, documents, saved_at)


def decode_index(payload: bytes) -> IndexSnapshot:
    """Decode an index blob, migrating the legacy layout.

    Raises:
        SnapshotFormatError: If the blob is not a readable index snapshot
    """
    data = _decode(payload, INDEX_KIND)
    if data is None:
        return IndexSnapshot(documents={})
    version, documents = data
    decoded: dict[str, dict[str, int]] = {}
    for doc_id, entry in documents.items():
        if not isinstance(entry, Mapping) or not isinstance(entry.get("terms", {}), Mapping):
            raise SnapshotFormatError(f"index entry for {doc_id!r} is malformed")
        terms = entry.get("terms", {})
        try:
            if version is None:
                counts = _legacy_counts(terms, entry.get("length", 0))
            else:
                counts = {str(term): int(count) for term, count in terms.items() if int(count) > 0}
        except (TypeError, ValueError) as exc:
            raise SnapshotFormatError(f"index entry for {doc_id!r} has invalid counts") from exc
        decoded[str(doc_id)] = counts
    return IndexSnapshot(documents=decoded)


def decode_metadata(payload: bytes) -> dict[str, DocumentMetadata]:
    """Decode a metadata blob, migrating the legacy layout.

    Raises:
        SnapshotFormatError: If the blob is not a readable metadata snapshot
    """
    data = _decode(payload, METADATA_KIND)
    if data is None:
        return {}
    version, documents = data
    records: dict[str, DocumentMetadata] = {}
    for doc_id, entry in documents.items():
        if not isinstance(entry, Mapping):
            raise SnapshotFormatError(f"metadata entry for {doc_id!r} is malformed")
        fields = dict(entry) if version is not None else _legacy_metadata_fields(entry)
        fields.setdefault("id", str(doc_id))
        try:
            record = DocumentMetadata.model_validate(fields)
        except ValidationError as exc:
            raise SnapshotFormatError(f"metadata entry for {doc_id!r} is invalid: {exc}") from exc
        records[record.id] = record
    return records


def _encode(kind: str, documents: dict[str, Any], saved_at: datetime | None) -> bytes:
    stamp = saved_at or datetime.now(timezone.utc)
    return orjson.dumps(
        {
            "schema_version": SCHEMA_VERSION,
            "kind": kind,
            "saved_at": stamp.isoformat(),
            "documents": documents,
        }
    )


def _decode(payload: bytes, kind: str) -> tuple[int | None, Mapping[str, Any]] | None:
    """Return ``(schema_version, documents)``; version is None for legacy blobs."""
    if not payload.strip():
        return None
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise SnapshotFormatError(f"{kind} snapshot is not valid JSON: {exc}") from exc

    # The legacy service wrote ``[]`` for an empty store
    if data == []:
        return None
    if not isinstance(data, dict):
        raise SnapshotFormatError(f"{kind} snapshot must be a JSON object")

    if "schema_version" not in data:
        return None, data

    version = data["schema_version"]
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise SnapshotFormatError(f"{kind} snapshot has invalid schema_version {version!r}")
    if version > SCHEMA_VERSION:
        raise SnapshotFormatError(f"{kind} snapshot version {version} is newer than supported {SCHEMA_VERSION}")
    if data.get("kind") != kind:
        raise SnapshotFormatError(f"expected a {kind} snapshot, found {data.get('kind')!r}")
    documents = data.get("documents", {})
    if not isinstance(documents, dict):
        raise SnapshotFormatError(f"{kind} snapshot documents must be an object")
    return version, documents


def _legacy_counts(terms: Mapping[str, Any], length: Any) -> dict[str, int]:
    doc_length = int(length)
    counts: dict[str, int] = {}
    for term, fraction in terms.items():
        count = round(float(fraction) * doc_length)
        if count > 0:
            counts[str(term)] = count
    return counts


def _legacy_metadata_fields(entry: Mapping[str, Any]) -> dict[str, Any]:
    fields = {key: value for key, value in entry.items() if key in DocumentMetadata.model_fields}
    if "size" in entry and "size_bytes" not in entry:
        fields["size_bytes"] = entry["size"]
    for key in ("created_at", "updated_at"):
        value = entry.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            fields[key] = datetime.fromtimestamp(value, tz=timezone.utc)
    if fields.get("folder_id") is None:
        fields.pop("folder_id", None)
    if fields.get("checksum") is None or fields.get("checksum") is False:
        fields.pop("checksum", None)
    return fields


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class LoadedSnapshot:
    index: IndexSnapshot
    metadata: dict[str, DocumentMetadata]


class SnapshotStore:
    """Saves and loads the index and metadata through a :class:`SnapshotBackend`."""

    def __init__(
        self,
        backend: SnapshotBackend,
        *,
        index_name: str = "index.json",
        metadata_name: str = "metadata.json",
    ) -> None:
        self.backend = backend
        self.index_name = index_name
        self.metadata_name = metadata_name
        self._save_lock = threading.Lock()

    def save(self, index: InvertedIndex, metadata: MetadataStore) -> None:
        """Persist both stores.

        Both stores are copied back to back while the index read lock is
        held. The metadata copy can still differ from the index by the one
        record an in-flight ``index_document`` or ``remove_document`` has not
        reached yet; ``optimize_index`` drops such orphans. Saves run one at a
        time and write in the order their copies were taken.

        Raises:
            PersistenceError: If either blob could not be written
        """
        with self._save_lock:
            with index.reader() as view:
                index_snapshot = view.snapshot()
                records = metadata.snapshot()
            saved_at = datetime.now(timezone.utc)
            try:
                index_blob = encode_index(index_snapshot, saved_at=saved_at)
                metadata_blob = encode_metadata(records, saved_at=saved_at)
            except (TypeError, orjson.JSONEncodeError) as exc:
                raise PersistenceError(f"Failed to serialise snapshot: {exc}") from exc

            self.backend.write(self.index_name, index_blob)
            self.backend.write(self.metadata_name, metadata_blob)
        logger.info(
            "Saved snapshot with %d documents and %d metadata records",
            index_snapshot.doc_count,
            len(records),
        )

    def load(self) -> LoadedSnapshot:
        """Read both blobs; a missing or unreadable blob yields an empty store."""
        index_snapshot = self._load_blob(self.index_name, decode_index, IndexSnapshot(documents={}))
        records = self._load_blob(self.metadata_name, decode_metadata, {})
        logger.info(
            "Loaded snapshot with %d documents and %d metadata records",
            index_snapshot.doc_count,
            len(records),
        )
        return LoadedSnapshot(index=index_snapshot, metadata=records)

    def _load_blob(self, name: str, decoder: Callable[[bytes], T], empty: T) -> T:
        payload = self.backend.read(name)
        if payload is None:
            logger.warning("Snapshot %s not found, starting with an empty store", name)
            return empty
        try:
            return decoder(payload)
        except SnapshotFormatError as exc:
            logger.warning("Snapshot %s is unreadable, starting with an empty store: %s", name, exc)
            return empty

    def size_bytes(self) -> tuple[int, int]:
        """Stored sizes of the index and metadata blobs."""
        return self.backend.size(self.index_name), self.backend.size(self.metadata_name)
