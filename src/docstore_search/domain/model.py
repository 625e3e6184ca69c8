"""Domain model for indexed documents.

Metadata is kept apart from term data: it drives filtering, display and
snippet lookup but never ranking. Records are immutable value objects; a
re-index replaces the stored record wholesale.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentMetadata(BaseModel):
    """Attributes of a document, keyed by its id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    folder_id: str | None = None
    owner_id: str = ""
    path: str = ""
    name: str = ""
    mime_type: str = ""
    size_bytes: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    checksum: str = ""

    @field_validator("id", "tenant_id", "owner_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: object) -> object:
        # Ids arrive as ints from relational sources; the index keys on strings
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("folder_id", mode="before")
    @classmethod
    def _coerce_folder(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if value == "":
            return None
        return value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.path:
            return self.path.replace("\\", "/").rsplit("/", 1)[-1]
        return self.id
