"""Structured JSON logging with trace correlation.

Each entry carries the active trace and span ids plus the tenant bound by
:func:`~docstore_search.observability.context.tenant_context`. Fields passed
through ``extra=`` are merged into the entry with secrets masked at any
nesting depth.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import logging
from pathlib import PurePath
import sys
from typing import IO, Any

import orjson
from pydantic import BaseModel

from docstore_search.observability.context import get_trace_context


_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Set on handlers installed by configure_logging so a second call swaps only them
_OWNED_HANDLER_ATTR = "_docstore_search_owned"

REDACTED = "[REDACTED]"


def resolve_level(level: str | int) -> int:
    """Map a level name such as ``"warning"`` to its numeric value.

    Raises:
        ValueError: If ``level`` names no standard level
    """
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}; expected one of {sorted(_LEVELS)}") from None


def _clip(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return list(value)
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return repr(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, correlated with the current trace."""

    SECRET_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})

    def __init__(
        self,
        *,
        service: str | None = None,
        max_message_chars: int = 2000,
        max_field_chars: int = 500,
    ) -> None:
        super().__init__()
        self.service = service
        self.max_message_chars = max_message_chars
        self.max_field_chars = max_field_chars

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_trace_context()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _clip(record.getMessage(), self.max_message_chars),
            "trace_id": ctx.get("trace_id", ""),
            "span_id": ctx.get("span_id", ""),
        }
        if self.service:
            entry["service"] = self.service
        if "." in record.name:
            entry["component"] = record.name.rsplit(".", 1)[-1]
        if tenant := ctx.get("tenant"):
            entry["tenant"] = tenant
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = self._scrub(key, value)

        return orjson.dumps(entry, default=_to_json, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")

    def _scrub(self, key: str, value: Any) -> Any:
        if key.lower() in self.SECRET_KEYS:
            return REDACTED
        if isinstance(value, Mapping):
            return {inner_key: self._scrub(str(inner_key), inner) for inner_key, inner in value.items()}
        if isinstance(value, str):
            return _clip(value, self.max_field_chars)
        return value


def configure_logging(
    level: str | int = "info",
    json_output: bool = True,
    *,
    logger_levels: Mapping[str, str] | None = None,
    service: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Install the stdout handler on the root logger and apply level overrides.

    Calling this again replaces the handler from the previous call. Handlers
    added by the host application or the test runner are left in place.

    Args:
        level: Root log level name (debug, info, warning, error, critical)
        json_output: Emit structured JSON logs when True
        logger_levels: Per-logger level overrides (logger name -> level name)
        service: Service name stamped on every JSON entry
        stream: Destination stream, stdout when omitted

    Raises:
        ValueError: If a level name is unknown
    """
    root_level = resolve_level(level)
    overrides = {name: resolve_level(value) for name, value in (logger_levels or {}).items()}

    root = logging.getLogger()
    for handler in root.handlers[:]:
        if getattr(handler, _OWNED_HANDLER_ATTR, False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    setattr(handler, _OWNED_HANDLER_ATTR, True)
    if json_output:
        handler.setFormatter(JsonFormatter(service=service))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(handler)
    root.setLevel(root_level)

    for logger_name, logger_level in overrides.items():
        logging.getLogger(logger_name).setLevel(logger_level)
    return handler
