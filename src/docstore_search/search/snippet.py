"""Snippet extraction with query-term highlighting.

The document is re-analyzed with the indexing analyzer so a query term
matches the same surface forms it matched at index time ("indexing" is
highlighted for the query "index"). A fixed window of analyzed tokens
slides over the document; the first window holding the most query-term
hits becomes the snippet. The snippet is cut out of the original text
using token offsets, so dropped words and punctuation survive.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import Literal

from docstore_search.search.analyzers import Analyzer, StandardAnalyzer, Token


HighlightStyle = Literal["html", "plain"]

_MARKERS: dict[str, tuple[str, str]] = {
    "html": ("<mark>", "</mark>"),
    "plain": ("[[", "]]"),
}

ELLIPSIS = "..."


@dataclass(frozen=True)
class Highlighter:
    """Builds highlighted snippets for ranked documents."""

    window_tokens: int = 30
    max_chars: int = 5000
    style: HighlightStyle = "html"
    analyzer: Analyzer | None = None

    def __post_init__(self) -> None:
        if self.window_tokens <= 0:
            raise ValueError("window_tokens must be positive")
        if self.style not in _MARKERS:
            raise ValueError(f"Unknown highlight style '{self.style}'. Available: {sorted(_MARKERS)}")

    def highlight(self, content: str | None, query_terms: Collection[str]) -> str:
        """Return the best snippet of ``content`` for ``query_terms``.

        Unavailable or empty content yields an empty snippet.
        """
        if not content:
            return ""
        text = content[: self.max_chars] if self.max_chars > 0 else content
        analyzer = self.analyzer or _DEFAULT_ANALYZER
        tokens = analyzer(text)
        if not tokens:
            return ""

        terms = frozenset(query_terms)
        start = best_window_start(tokens, terms, self.window_tokens)
        window = tokens[start : start + self.window_tokens]
        return ELLIPSIS + self._render(text, window, terms) + ELLIPSIS

    def _render(self, text: str, window: list[Token], terms: frozenset[str]) -> str:
        open_mark, close_mark = _MARKERS[self.style]
        begin = window[0].start_char
        parts: list[str] = []
        cursor = begin
        for token in window:
            if token.text not in terms:
                continue
            parts.append(text[cursor : token.start_char])
            parts.append(open_mark + text[token.start_char : token.end_char] + close_mark)
            cursor = token.end_char
        parts.append(text[cursor : window[-1].end_char])
        return " ".join("".join(parts).split())


def best_window_start(tokens: list[Token], terms: Collection[str], window: int) -> int:
    """Index of the first window of ``window`` tokens with the most hits."""

    if len(tokens) <= window:
        return 0
    hits = [1 if token.text in terms else 0 for token in tokens]
    current = sum(hits[:window])
    best_score, best_start = current, 0
    for start in range(1, len(tokens) - window + 1):
        current += hits[start + window - 1] - hits[start - 1]
        if current > best_score:
            best_score, best_start = current, start
    return best_start


_DEFAULT_ANALYZER = StandardAnalyzer()
