"""Unit tests for start-up wiring of logging, metrics and tracing."""

import logging

import pytest

from docstore_search import Settings, bootstrap, init_observability
from docstore_search.observability import JsonFormatter


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    logging.getLogger("docstore_search.search").setLevel(logging.NOTSET)


@pytest.fixture
def provider_calls(monkeypatch):
    calls = {}

    def fake_init_metrics(**kwargs):
        calls["metrics"] = kwargs

    def fake_init_tracing(**kwargs):
        calls["tracing"] = kwargs

    monkeypatch.setattr(bootstrap, "init_metrics", fake_init_metrics)
    monkeypatch.setattr(bootstrap, "init_tracing", fake_init_tracing)
    return calls


@pytest.mark.unit
@pytest.mark.usefixtures("restore_logging")
class TestInitObservability:
    def test_settings_drive_logging_and_providers(self, provider_calls):
        settings = Settings(
            _env_file=None,
            log_level="warning",
            log_json=True,
            log_logger_levels={"docstore_search.search": "debug"},
            service_name="search-api",
            resource_attributes={"deployment.environment": "staging"},
        )
        readers, processors = [object()], [object()]

        applied = init_observability(settings, metric_readers=readers, span_processors=processors)

        assert applied is settings
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert logging.getLogger("docstore_search.search").level == logging.DEBUG
        (formatter,) = [h.formatter for h in root.handlers if isinstance(h.formatter, JsonFormatter)]
        assert formatter.service == "search-api"

        expected_attributes = {"deployment.environment": "staging"}
        assert provider_calls["metrics"] == {
            "service_name": "search-api",
            "resource_attributes": expected_attributes,
            "metric_readers": readers,
        }
        assert provider_calls["tracing"] == {
            "service_name": "search-api",
            "resource_attributes": expected_attributes,
            "span_processors": processors,
        }

    def test_plain_text_logging(self, provider_calls):
        init_observability(Settings(_env_file=None, log_json=False, log_level="error"))

        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
        assert provider_calls["tracing"]["service_name"] == "docstore-search"

    def test_defaults_come_from_environment(self, provider_calls, monkeypatch):
        monkeypatch.setenv("SEARCH_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("SEARCH_SERVICE_NAME", "env-search")
        bootstrap.get_settings.cache_clear()
        try:
            applied = init_observability()
        finally:
            bootstrap.get_settings.cache_clear()

        assert applied.log_level == "debug"
        assert logging.getLogger().level == logging.DEBUG
        assert provider_calls["metrics"]["service_name"] == "env-search"
