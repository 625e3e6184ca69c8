"""Result filters.

Filters form a closed set of immutable predicates over
:class:`~docstore_search.domain.model.DocumentMetadata`. Each one validates
its arguments at construction so a malformed filter never reaches a query.
:class:`SearchFilters` bundles them and enforces that every query is bound
to exactly one tenant.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Union

from docstore_search.domain.model import DocumentMetadata


class InvalidFilterError(ValueError):
    """Raised when a filter is constructed with malformed values."""


@dataclass(frozen=True)
class TenantFilter:
    tenant_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise InvalidFilterError("tenant_id must be a non-empty string")

    def matches(self, metadata: DocumentMetadata) -> bool:
        return metadata.tenant_id == self.tenant_id


@dataclass(frozen=True)
class FolderFilter:
    folder_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.folder_id, str) or not self.folder_id.strip():
            raise InvalidFilterError("folder_id must be a non-empty string")

    def matches(self, metadata: DocumentMetadata) -> bool:
        return metadata.folder_id == self.folder_id


@dataclass(frozen=True)
class DateRangeFilter:
    """Inclusive range over ``created_at``; either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is None and self.end is None:
            raise InvalidFilterError("date range needs at least one bound")
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, datetime):
                raise InvalidFilterError(f"{name} must be a datetime, got {type(value).__name__}")
            if value is not None and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidFilterError("date range start is after its end")

    def matches(self, metadata: DocumentMetadata) -> bool:
        created = metadata.created_at
        if self.start is not None and created < self.start:
            return False
        return not (self.end is not None and created > self.end)


@dataclass(frozen=True)
class MimeFilter:
    mime_types: frozenset[str]

    def __post_init__(self) -> None:
        if isinstance(self.mime_types, str):
            raise InvalidFilterError("mime_types must be a collection, not a single string")
        normalized = frozenset(str(mime).strip().lower() for mime in self.mime_types if str(mime).strip())
        if not normalized:
            raise InvalidFilterError("mime filter needs at least one mime type")
        object.__setattr__(self, "mime_types", normalized)

    def matches(self, metadata: DocumentMetadata) -> bool:
        return metadata.mime_type.lower() in self.mime_types


@dataclass(frozen=True)
class SizeRangeFilter:
    """Inclusive range over ``size_bytes``; either bound may be open."""

    min_bytes: int | None = None
    max_bytes: int | None = None

    def __post_init__(self) -> None:
        if self.min_bytes is None and self.max_bytes is None:
            raise InvalidFilterError("size range needs at least one bound")
        for name in ("min_bytes", "max_bytes"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidFilterError(f"{name} must be a non-negative integer")
        if self.min_bytes is not None and self.max_bytes is not None and self.min_bytes > self.max_bytes:
            raise InvalidFilterError("size range minimum exceeds its maximum")

    def matches(self, metadata: DocumentMetadata) -> bool:
        if self.min_bytes is not None and metadata.size_bytes < self.min_bytes:
            return False
        return not (self.max_bytes is not None and metadata.size_bytes > self.max_bytes)


Filter = Union[TenantFilter, FolderFilter, DateRangeFilter, MimeFilter, SizeRangeFilter]

_OPTIONAL_FILTER_TYPES = (FolderFilter, DateRangeFilter, MimeFilter, SizeRangeFilter)


@dataclass(frozen=True)
class SearchFilters:
    """The tenant filter plus at most one of each optional filter."""

    tenant: TenantFilter
    extras: tuple[Filter, ...] = field(default=())

    def __post_init__(self) -> None:
        if not isinstance(self.tenant, TenantFilter):
            raise InvalidFilterError("queries must be bound to exactly one tenant")
        seen: set[type] = set()
        for item in self.extras:
            if isinstance(item, TenantFilter):
                raise InvalidFilterError("queries must be bound to exactly one tenant")
            if not isinstance(item, _OPTIONAL_FILTER_TYPES):
                raise InvalidFilterError(f"unsupported filter {item!r}")
            if type(item) in seen:
                raise InvalidFilterError(f"duplicate {type(item).__name__}")
            seen.add(type(item))

    @property
    def tenant_id(self) -> str:
        return self.tenant.tenant_id

    @classmethod
    def build(
        cls,
        tenant_id: str,
        *,
        folder_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        mime_types: Iterable[str] | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ) -> SearchFilters:
        extras: list[Filter] = []
        if folder_id is not None:
            extras.append(FolderFilter(str(folder_id)))
        if date_from is not None or date_to is not None:
            extras.append(DateRangeFilter(date_from, date_to))
        if mime_types is not None:
            extras.append(MimeFilter(frozenset([mime_types] if isinstance(mime_types, str) else mime_types)))
        if min_size is not None or max_size is not None:
            extras.append(SizeRangeFilter(min_size, max_size))
        return cls(TenantFilter(str(tenant_id)), tuple(extras))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SearchFilters:
        """Build filters from the loose key/value shape callers send.

        Recognised keys: ``tenant_id`` (required), ``folder_id``,
        ``date_from``/``date_to`` (datetimes, dates or ISO strings),
        ``mime_type`` (string or list) and ``min_size``/``max_size``.
        """
        unknown = set(raw) - {"tenant_id", "folder_id", "date_from", "date_to", "mime_type", "min_size", "max_size"}
        if unknown:
            raise InvalidFilterError(f"unknown filter keys: {sorted(unknown)}")
        tenant_id = raw.get("tenant_id")
        if tenant_id is None or tenant_id == "":
            raise InvalidFilterError("tenant_id is required")
        mime = raw.get("mime_type")
        if isinstance(mime, str):
            mime = [mime]
        return cls.build(
            str(tenant_id),
            folder_id=None if raw.get("folder_id") in (None, "") else str(raw["folder_id"]),
            date_from=_parse_bound(raw.get("date_from"), end_of_day=False),
            date_to=_parse_bound(raw.get("date_to"), end_of_day=True),
            mime_types=mime,
            min_size=_parse_size(raw.get("min_size")),
            max_size=_parse_size(raw.get("max_size")),
        )

    def matches(self, metadata: DocumentMetadata | None) -> bool:
        if metadata is None or not self.tenant.matches(metadata):
            return False
        return all(item.matches(metadata) for item in self.extras)


def _parse_bound(value: Any, *, end_of_day: bool) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            if len(value) == 10:
                return _parse_bound(date.fromisoformat(value), end_of_day=end_of_day)
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise InvalidFilterError(f"invalid date bound {value!r}") from exc
    raise InvalidFilterError(f"invalid date bound {value!r}")


def _parse_size(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFilterError(f"invalid size bound {value!r}") from exc
