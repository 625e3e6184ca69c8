"""Unit tests for engine settings."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from docstore_search.config import Settings, get_settings
from docstore_search.search.stats import BM25Parameters


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.index_dir == Path("var/search")
        assert settings.default_limit == 50
        assert settings.max_limit == 1000
        assert settings.autosave is False
        assert settings.bm25_parameters() == BM25Parameters(k1=1.2, b=0.75, idf_mode="classic", idf_floor=1e-6)

    def test_environment_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SEARCH_INDEX_DIR", str(tmp_path))
        monkeypatch.setenv("SEARCH_AUTOSAVE", "true")
        monkeypatch.setenv("SEARCH_BM25_K1", "1.5")
        monkeypatch.setenv("search_idf_mode", "lucene")

        settings = Settings(_env_file=None)
        assert settings.index_dir == tmp_path
        assert settings.autosave is True
        assert settings.bm25_parameters().k1 == 1.5
        assert settings.idf_mode == "lucene"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SEARCH_DEFAULT_LIMIT=5\nSEARCH_HIGHLIGHT_STYLE=plain\n")
        settings = Settings(_env_file=env_file)
        assert settings.default_limit == 5
        assert settings.highlight_style == "plain"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"bm25_b": 1.5},
            {"bm25_k1": -1.0},
            {"idf_mode": "okapi"},
            {"highlight_style": "ansi"},
            {"max_limit": 0},
            {"default_limit": 20, "max_limit": 10},
            {"log_level": "verbose"},
            {"log_logger_levels": {"docstore_search.engine": "loud"}},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_resolve_limit(self):
        settings = Settings(_env_file=None, default_limit=10, max_limit=100)
        assert settings.resolve_limit(None) == 10
        assert settings.resolve_limit(0) == 0
        assert settings.resolve_limit(25) == 25
        assert settings.resolve_limit(5000) == 100
        with pytest.raises(ValueError, match="non-negative"):
            settings.resolve_limit(-1)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_observability_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("SEARCH_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("SEARCH_LOG_JSON", "false")
        monkeypatch.setenv("SEARCH_LOG_LOGGER_LEVELS", '{"docstore_search.engine": "DEBUG"}')
        monkeypatch.setenv("SEARCH_RESOURCE_ATTRIBUTES", '{"deployment.environment": "staging"}')

        settings = Settings(_env_file=None)
        assert settings.log_level == "warning"
        assert settings.log_json is False
        assert settings.log_logger_levels == {"docstore_search.engine": "debug"}
        assert settings.resource_attributes == {"deployment.environment": "staging"}
        assert settings.service_name == "docstore-search"
