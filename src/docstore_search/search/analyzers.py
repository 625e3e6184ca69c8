"""Analyzer utilities for the document search stack.

Text goes through a composable tokenizer/filter pipeline, in the spirit of
Whoosh, so the same normalisation runs for indexed documents and for
queries. Tokens keep their character offsets which the highlighter uses to
cut snippets out of the original text.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
import re
from typing import Any, Protocol


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int

    def copy_with(self, **updates: Any) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }
        data.update(updates)
        return Token(**data)


class Analyzer(Protocol):
    """Protocol implemented by analyzers."""

    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class Stemmer(Protocol):
    """Strategy that maps a normalized word to its index term."""

    def __call__(self, word: str) -> str:  # pragma: no cover - interface definition
        ...


# Letters and digits only; punctuation, symbols and underscores act as separators.
_WORD_PATTERN = r"[^\W_]+"


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens."""

    def __init__(self, pattern: str = _WORD_PATTERN, flags: int = re.UNICODE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


class MinLengthFilter:
    """Drops tokens that are not longer than ``min_exclusive`` characters."""

    def __init__(self, min_exclusive: int = 2) -> None:
        self.min_exclusive = min_exclusive

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) > self.min_exclusive:
                yield token


DEFAULT_STOPWORDS = (
    "a",
    "all",
    "an",
    "and",
    "are",
    "as",
    "at",
    "be",
    "been",
    "by",
    "for",
    "from",
    "has",
    "he",
    "how",
    "i",
    "in",
    "is",
    "it",
    "its",
    "of",
    "on",
    "that",
    "the",
    "their",
    "them",
    "there",
    "these",
    "they",
    "this",
    "those",
    "to",
    "was",
    "we",
    "what",
    "when",
    "where",
    "which",
    "who",
    "why",
    "will",
    "with",
    "would",
    "you",
)


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.lower() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


STRIPPED_SUFFIXES: tuple[str, ...] = ("ing", "ed", "es", "s", "ly", "tion", "ment", "ness", "ful", "less")


class SuffixStripStemmer:
    """Heuristic stemmer that strips one trailing suffix.

    The suffixes form an end-anchored regex alternation, so the suffix that
    starts earliest in the word wins ("kindness" loses "ness", "files"
    loses "es"). This is an approximation of stemming, not a real stemmer.
    """

    def __init__(self, suffixes: Sequence[str] = STRIPPED_SUFFIXES) -> None:
        self._pattern = re.compile("(?:" + "|".join(re.escape(s) for s in suffixes) + ")$")

    def __call__(self, word: str) -> str:
        return self._pattern.sub("", word, count=1)


class NullStemmer:
    """Stemmer that leaves words untouched."""

    def __call__(self, word: str) -> str:
        return word


class StemFilter:
    """Applies a stemming strategy to every token."""

    def __init__(self, stemmer: Stemmer | None = None) -> None:
        self.stemmer = stemmer or SuffixStripStemmer()

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            stemmed = self.stemmer(token.text)
            if not stemmed:
                continue
            yield token if stemmed == token.text else token.copy_with(text=stemmed)


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


class StandardAnalyzer:
    """Default analyzer shared by indexing and querying."""

    def __init__(
        self,
        *,
        stopwords: Sequence[str] | None = None,
        stemmer: Stemmer | None = None,
        min_length: int = 2,
    ) -> None:
        filters: list[TokenFilter] = [
            LowercaseFilter(),
            MinLengthFilter(min_length),
            StopFilter(stopwords),
            StemFilter(stemmer),
        ]
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        return self.pipeline(text)


_ANALYZER_FACTORIES: dict[str, Callable[[], Analyzer]] = {
    "default": lambda: StandardAnalyzer(),
    "english": lambda: StandardAnalyzer(),
    "english-nostem": lambda: StandardAnalyzer(stemmer=NullStemmer()),
}


def get_analyzer(name: str | None) -> Analyzer:
    """Return analyzer by name, defaulting to the standard analyzer."""

    if name is None:
        return _ANALYZER_FACTORIES["default"]()
    normalized = name.lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZER_FACTORIES)}"
        raise ValueError(msg)
    return _ANALYZER_FACTORIES[normalized]()


_DEFAULT_ANALYZER = StandardAnalyzer()


def tokenize(text: str, analyzer: Analyzer | None = None) -> list[str]:
    """Return the ordered index terms for ``text``."""

    active = analyzer or _DEFAULT_ANALYZER
    return [token.text for token in active(text)]
