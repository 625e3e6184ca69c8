"""Text extraction from stored document content.

Only text-like formats are handled here. Binary formats (PDF, office
documents, archives) belong to dedicated extractors supplied by the
embedding application through the :class:`ContentExtractor` protocol.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from lxml import etree, html  # type: ignore[import-untyped]
import orjson

from docstore_search.exceptions import UnextractableContentError


logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024


@runtime_checkable
class ContentExtractor(Protocol):
    def extract(self, path: str, mime_type: str) -> str:
        """Return the plain text of the document stored at ``path``.

        Raises:
            UnextractableContentError: If the content is missing, too large,
                malformed or of an unsupported type
        """
        ...

    def exists(self, path: str) -> bool:
        """Whether content is still stored at ``path``."""
        ...


def normalize_mime(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()


def strip_markup(raw: str | bytes, encoding: str = "utf-8") -> str:
    """Visible text of an HTML fragment or page.

    Bytes are decoded by lxml itself using ``encoding``. XHTML files start
    with an XML declaration, which lxml rejects on already-decoded text.
    """
    if not raw.strip():
        return ""
    try:
        if isinstance(raw, bytes):
            root = html.fromstring(raw, parser=html.HTMLParser(encoding=encoding))
        else:
            root = html.fromstring(raw)
    except (etree.LxmlError, ValueError) as exc:
        raise UnextractableContentError(f"unparsable HTML: {exc}") from exc
    for element in root.xpath("//script|//style"):
        element.drop_tree()
    return " ".join(" ".join(root.xpath(".//text()")).split())


def xml_text(raw: bytes) -> str:
    """Concatenated character data of an XML document."""
    if not raw.strip():
        return ""
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(raw, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise UnextractableContentError(f"unparsable XML: {exc}") from exc
    return " ".join(" ".join(root.xpath(".//text()")).split())


def flatten_json(value: Any) -> str:
    """Space-joined scalar values of a decoded JSON document; keys are ignored."""
    if isinstance(value, dict):
        return " ".join(part for part in (flatten_json(item) for item in value.values()) if part)
    if isinstance(value, list):
        return " ".join(part for part in (flatten_json(item) for item in value) if part)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class TextFileExtractor:
    """Reads text, HTML, XML and JSON files from the local filesystem."""

    def __init__(self, *, max_bytes: int = DEFAULT_MAX_BYTES, encoding: str = "utf-8") -> None:
        self.max_bytes = max_bytes
        self.encoding = encoding
        self._handlers: dict[str, Callable[[bytes], str]] = {
            "text/html": self._html,
            "application/xhtml+xml": self._html,
            "text/xml": xml_text,
            "application/xml": xml_text,
            "application/json": self._json,
        }

    def supports(self, mime_type: str) -> bool:
        mime = normalize_mime(mime_type)
        return mime in self._handlers or mime.startswith("text/")

    def exists(self, path: str) -> bool:
        return bool(path) and Path(path).is_file()

    def extract(self, path: str, mime_type: str) -> str:
        mime = normalize_mime(mime_type)
        handler = self._handlers.get(mime)
        if handler is None:
            if not mime.startswith("text/"):
                raise UnextractableContentError(f"unsupported mime type {mime_type!r}")
            handler = self._text

        raw = self._read(path)
        return handler(raw)

    def _read(self, path: str) -> bytes:
        file_path = Path(path)
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            raise UnextractableContentError(f"content not available at {path}") from exc
        if size > self.max_bytes:
            raise UnextractableContentError(f"{path} is {size} bytes, limit is {self.max_bytes}")
        try:
            return file_path.read_bytes()
        except OSError as exc:
            raise UnextractableContentError(f"failed to read {path}: {exc}") from exc

    def _text(self, raw: bytes) -> str:
        return raw.decode(self.encoding, errors="replace")

    def _html(self, raw: bytes) -> str:
        return strip_markup(raw, self.encoding)

    def _json(self, raw: bytes) -> str:
        if not raw.strip():
            return ""
        try:
            return flatten_json(orjson.loads(raw))
        except orjson.JSONDecodeError as exc:
            raise UnextractableContentError(f"unparsable JSON: {exc}") from exc
