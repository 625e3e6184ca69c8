"""Flat boolean query parsing.

Queries are scanned left to right. The case-insensitive keywords ``AND``,
``OR`` and ``NOT`` switch the group that following words join:

* ``AND`` -> MUST (every term required)
* ``OR``  -> SHOULD (any term suffices when there is no MUST term)
* ``NOT`` -> MUST_NOT (excluded)

Words before the first keyword default to MUST, except when that first
keyword is ``OR``: ``alpha OR beta`` puts both words in SHOULD. There is no
precedence and no grouping; parentheses are ordinary characters that the
analyzer discards. Nested grouping would need a recursive-descent parser
producing an ``And | Or | Not | Term`` tree instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from docstore_search.search.analyzers import Analyzer, tokenize


class Occur(str, Enum):
    MUST = "must"
    SHOULD = "should"
    MUST_NOT = "must_not"


_KEYWORDS = {"and": Occur.MUST, "or": Occur.SHOULD, "not": Occur.MUST_NOT}


@dataclass(frozen=True)
class BooleanQuery:
    """Analyzed term groups of a flat boolean query."""

    must: tuple[str, ...] = ()
    should: tuple[str, ...] = ()
    must_not: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        """True when nothing can match: no MUST and no SHOULD terms."""
        return not self.must and not self.should

    @property
    def positive_terms(self) -> tuple[str, ...]:
        seen: set[str] = set()
        ordered: list[str] = []
        for term in (*self.must, *self.should):
            if term not in seen:
                seen.add(term)
                ordered.append(term)
        return tuple(ordered)


def parse_boolean_query(query: str, analyzer: Analyzer | None = None) -> BooleanQuery:
    """Split ``query`` into MUST/SHOULD/MUST_NOT term groups."""

    groups: dict[Occur, list[str]] = {occur: [] for occur in Occur}
    leading: list[str] = []
    current: Occur | None = None

    for word in query.split():
        occur = _KEYWORDS.get(word.lower())
        if occur is not None:
            if current is None:
                target = Occur.SHOULD if occur is Occur.SHOULD else Occur.MUST
                groups[target].extend(leading)
                leading = []
            current = occur
            continue
        terms = tokenize(word, analyzer)
        if current is None:
            leading.extend(terms)
        else:
            groups[current].extend(terms)

    groups[Occur.MUST].extend(leading)
    return BooleanQuery(
        must=_dedupe(groups[Occur.MUST]),
        should=_dedupe(groups[Occur.SHOULD]),
        must_not=_dedupe(groups[Occur.MUST_NOT]),
    )


def _dedupe(terms: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(terms))
