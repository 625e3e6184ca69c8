"""Centralized configuration for docstore-search using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docstore_search.search.stats import BM25Parameters


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``SEARCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Persistence
    index_dir: Path = Field(default=Path("var/search"), description="Directory holding index snapshots")
    index_snapshot_name: str = Field(default="index.json", min_length=1, description="Index snapshot file name")
    metadata_snapshot_name: str = Field(
        default="metadata.json", min_length=1, description="Metadata snapshot file name"
    )
    autosave: bool = Field(default=False, description="Save snapshots after every mutation")

    # Ranking
    bm25_k1: float = Field(default=1.2, ge=0.0, description="BM25 term frequency saturation")
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0, description="BM25 length normalization")
    idf_mode: Literal["classic", "lucene"] = Field(
        default="classic", description="classic: ln((N-df+0.5)/(df+0.5)); lucene: ln(1 + ...)"
    )
    idf_floor: float = Field(default=1e-6, ge=0.0, description="Lower bound applied to classic IDF")

    # Pagination
    default_limit: int = Field(default=50, ge=0, description="Page size when the caller gives none")
    max_limit: int = Field(default=1000, ge=1, description="Largest page size a caller may request")

    # Highlighting
    highlight_window_tokens: int = Field(default=30, ge=1, description="Snippet window size in analyzed tokens")
    highlight_max_chars: int = Field(default=5000, ge=0, description="Content prefix scanned for snippets")
    highlight_style: Literal["html", "plain"] = Field(default="html", description="Highlight marker style")

    # Fuzzy search
    fuzzy_max_distance: int = Field(default=2, ge=0, description="Default edit distance for fuzzy search")
    fuzzy_check_interval: int = Field(
        default=256, ge=1, description="Vocabulary terms scanned between cancellation checks"
    )

    # Extraction
    max_content_bytes: int = Field(default=10 * 1024 * 1024, ge=1, description="Largest file the extractor reads")

    # Observability
    service_name: str = Field(default="docstore-search", min_length=1, description="Service name on logs and telemetry")
    resource_attributes: dict[str, str] = Field(
        default_factory=dict, description="Extra OpenTelemetry resource attributes (JSON object)"
    )
    log_level: str = Field(
        default="info", pattern=r"^(debug|info|warning|error|critical)$", description="Root logging level"
    )
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    log_logger_levels: dict[str, str] = Field(
        default_factory=dict, description="Per-logger level overrides (JSON object of logger name -> level)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_logger_levels")
    @classmethod
    def _check_logger_levels(cls, value: dict[str, str]) -> dict[str, str]:
        allowed_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = {name: level.strip().lower() for name, level in value.items()}
        invalid = {name: level for name, level in normalized.items() if level not in allowed_levels}
        if invalid:
            details = ", ".join(f"{name}={level}" for name, level in invalid.items())
            raise ValueError(
                f"Invalid log level(s) in log_logger_levels; allowed levels are {sorted(allowed_levels)}; "
                f"got: {details}"
            )
        return normalized

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"SEARCH_DEFAULT_LIMIT ({self.default_limit}) must not exceed SEARCH_MAX_LIMIT ({self.max_limit})"
            )
        return self

    def bm25_parameters(self) -> BM25Parameters:
        return BM25Parameters(k1=self.bm25_k1, b=self.bm25_b, idf_mode=self.idf_mode, idf_floor=self.idf_floor)

    def resolve_limit(self, limit: int | None) -> int:
        """Return the page size to use for ``limit``, clamped to ``max_limit``.

        Raises:
            ValueError: If ``limit`` is negative
        """
        if limit is None:
            return self.default_limit
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        return min(limit, self.max_limit)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
