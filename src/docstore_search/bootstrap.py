"""Process start-up wiring for logging, metrics and tracing.

Applications embedding the engine call :func:`init_observability` once before
building a :class:`~docstore_search.engine.SearchEngine`::

    settings = init_observability()
    engine = SearchEngine(settings, source=my_source)
"""

from __future__ import annotations

import logging

from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.trace import SpanProcessor

from docstore_search.config import Settings, get_settings
from docstore_search.observability import configure_logging, init_metrics, init_tracing


logger = logging.getLogger(__name__)


def init_observability(
    settings: Settings | None = None,
    *,
    metric_readers: list[MetricReader] | None = None,
    span_processors: list[SpanProcessor] | None = None,
) -> Settings:
    """Configure logging, metrics and tracing from ``settings``.

    Logging comes first so that provider set-up messages use the configured
    format. Exporters are supplied by the caller as metric readers and span
    processors.

    Returns:
        The settings that were applied, loaded from the environment when
        none were given.
    """
    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        logger_levels=settings.log_logger_levels,
        service=settings.service_name,
    )
    resource_attributes = dict(settings.resource_attributes)
    init_metrics(
        service_name=settings.service_name,
        resource_attributes=resource_attributes,
        metric_readers=metric_readers,
    )
    init_tracing(
        service_name=settings.service_name,
        resource_attributes=resource_attributes,
        span_processors=span_processors,
    )
    logger.info("Observability initialized for %s at level %s", settings.service_name, settings.log_level)
    return settings
