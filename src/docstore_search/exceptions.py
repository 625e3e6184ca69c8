"""Exception types raised across the package."""

from docstore_search.domain.filters import InvalidFilterError


class PersistenceError(RuntimeError):
    """A snapshot could not be written. In-memory state is unaffected."""


class SnapshotFormatError(ValueError):
    """A snapshot blob could not be decoded or has an unsupported version."""


class UnextractableContentError(ValueError):
    """Text could not be extracted from a document's stored content."""


__all__ = [
    "InvalidFilterError",
    "PersistenceError",
    "SnapshotFormatError",
    "UnextractableContentError",
]
